"""Entry point for apps that consume Libre sensor data from a BLE relay.

`Client` bundles the stored calibration with message and frame decoding,
trend assessment and history reconciliation. Decoding never raises for bad
payloads; check ``DecodeResult.ok`` instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from libremon.collaborators.base import GlucoseStore, Notifier, Uploader
from libremon.core.derive import DerivedMeasurements, derive_measurements
from libremon.core.errors import (
    LibremonError,
    MalformedPayloadError,
    OutOfRangeIndexError,
    SettingsLoadError,
    SettingsValidationError,
    UnknownMessageError,
)
from libremon.core.frame import SensorFrame
from libremon.core.messages import decode_message, message_type_from_name
from libremon.core.model import (
    AlertLevel,
    BatteryRecord,
    CalibrationModel,
    DecodeResult,
    GlucoseNotification,
    IDNRecord,
    Measurement,
    MessageType,
    NFCStateRecord,
    PersistedGlucoseEntry,
    SensorState,
    SystemInfoRecord,
    TrendAssessment,
    UploadEntry,
)
from libremon.core.reconcile import reconcile
from libremon.core.service import CycleReport, MonitorService
from libremon.core.settings import Settings, load_settings, save_settings
from libremon.core.trend import assess_trend, build_notification

__all__ = [
    "LibremonError",
    "MalformedPayloadError",
    "OutOfRangeIndexError",
    "SettingsLoadError",
    "SettingsValidationError",
    "UnknownMessageError",
    "AlertLevel",
    "BatteryRecord",
    "CalibrationModel",
    "DecodeResult",
    "GlucoseNotification",
    "IDNRecord",
    "Measurement",
    "MessageType",
    "NFCStateRecord",
    "PersistedGlucoseEntry",
    "SensorFrame",
    "SensorState",
    "SystemInfoRecord",
    "TrendAssessment",
    "UploadEntry",
    "CycleReport",
    "DerivedMeasurements",
    "Settings",
    "Client",
]


class Client:
    """Public client for decoding sensor data and deriving glucose values.

    A `Client` instance wraps settings loading, message decoding, trend
    assessment and history reconciliation behind a stable API intended for
    third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        settings_path: Path | None = None,
    ) -> None:
        self._settings_path = settings_path
        self._settings = settings or load_settings(settings_path)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def calibration(self) -> CalibrationModel:
        return self._settings.calibration

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._settings.warnings

    def set_calibration(self, *, offset: float, slope: float, persist: bool = True) -> CalibrationModel:
        calibration = CalibrationModel(offset=offset, slope=slope).normalized()
        self._settings = replace(self._settings, calibration=calibration)
        if persist:
            save_settings(self._settings, self._settings_path)
        return calibration

    def decode_message(
        self,
        message: int | str,
        payload: bytes,
        *,
        observed_at: datetime | None = None,
        uid: bytes | None = None,
    ) -> DecodeResult[Any]:
        """Decode one payload by identifier or by name; failures land in ``error``."""
        if isinstance(message, str):
            try:
                message = int(message_type_from_name(message))
            except UnknownMessageError as exc:
                return DecodeResult(message_type=MessageType.UNKNOWN, error=str(exc))
        return decode_message(message, payload, observed_at=observed_at, uid=uid)

    def decode_frame(
        self,
        data: bytes,
        *,
        observed_at: datetime | None = None,
        uid: bytes | None = None,
    ) -> DecodeResult[SensorFrame]:
        return decode_message(int(MessageType.ALL_BYTES), data, observed_at=observed_at, uid=uid)

    def derive(self, frame: SensorFrame) -> DerivedMeasurements:
        return derive_measurements(frame, self.calibration)

    def assess(self, trend: Sequence[Measurement]) -> TrendAssessment:
        return assess_trend(trend)

    def notification_for(self, assessment: TrendAssessment) -> GlucoseNotification | None:
        return build_notification(assessment)

    def reconcile(
        self,
        history: Iterable[Measurement],
        existing: Sequence[PersistedGlucoseEntry],
    ) -> list[PersistedGlucoseEntry]:
        return reconcile(history, existing, self.calibration)

    def monitor(
        self,
        *,
        store: GlucoseStore | None = None,
        notifier: Notifier | None = None,
        uploader: Uploader | None = None,
    ) -> MonitorService:
        return MonitorService(settings=self._settings, store=store, notifier=notifier, uploader=uploader)
