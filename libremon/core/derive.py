"""Calibrated measurements for one decode cycle."""

from __future__ import annotations

from dataclasses import dataclass

from libremon.core.frame import SensorFrame
from libremon.core.model import CalibrationModel, Measurement


@dataclass(frozen=True)
class DerivedMeasurements:
    """Trend and history series of one frame; index 0 is the newest sample."""

    frame: SensorFrame
    calibration: CalibrationModel
    trend: tuple[Measurement, ...]
    history: tuple[Measurement, ...]

    @property
    def current(self) -> Measurement:
        return self.trend[0]


def derive_measurements(frame: SensorFrame, calibration: CalibrationModel) -> DerivedMeasurements:
    calibration = calibration.normalized()
    return DerivedMeasurements(
        frame=frame,
        calibration=calibration,
        trend=tuple(frame.trend_measurements(calibration.offset, calibration.slope)),
        history=tuple(frame.history_measurements(calibration.offset, calibration.slope)),
    )
