"""Short and long term glucose trend arithmetic and alert classification."""

from __future__ import annotations

from collections.abc import Sequence

from libremon.core.errors import MalformedPayloadError
from libremon.core.model import AlertLevel, GlucoseNotification, Measurement, TrendAssessment

MINIMUM_TREND_LENGTH = 16
HIGH_PREDICTION = 180.0
LOW_LONG_PREDICTION = 60.0
LOW_SHORT_PREDICTION = 66.0
RAPID_DELTA = 30.0

_SHORT_INDEX = 8
_LONG_INDEX = 15
# Eight one-minute steps scaled to the fifteen minute horizon of the long delta.
_SHORT_SCALE = 2.0 * 16.0 / 15.0

_TITLES = {
    AlertLevel.HIGH: "High Glucose",
    AlertLevel.LOW: "Low Glucose",
}


def classify_alert(
    long_delta: float,
    short_delta: float,
    long_prediction: float,
    short_prediction: float,
) -> AlertLevel:
    if (
        long_prediction > HIGH_PREDICTION
        or short_prediction > HIGH_PREDICTION
        or (long_delta > RAPID_DELTA and short_delta > RAPID_DELTA)
    ):
        return AlertLevel.HIGH
    if (
        0 < long_prediction < LOW_LONG_PREDICTION
        or 0 < short_prediction < LOW_SHORT_PREDICTION
        or (long_delta < -RAPID_DELTA and short_delta < -RAPID_DELTA)
    ):
        return AlertLevel.LOW
    return AlertLevel.NONE


def assess_trend(trend: Sequence[Measurement]) -> TrendAssessment:
    if len(trend) < MINIMUM_TREND_LENGTH:
        raise MalformedPayloadError(
            f"Trend assessment needs {MINIMUM_TREND_LENGTH} measurements, got {len(trend)}"
        )
    current = trend[0].glucose
    long_delta = current - trend[_LONG_INDEX].glucose
    short_delta = (current - trend[_SHORT_INDEX].glucose) * _SHORT_SCALE
    long_prediction = current + long_delta
    short_prediction = current + short_delta
    return TrendAssessment(
        current_glucose=current,
        long_delta=long_delta,
        short_delta=short_delta,
        long_prediction=long_prediction,
        short_prediction=short_prediction,
        alert_level=classify_alert(long_delta, short_delta, long_prediction, short_prediction),
    )


def build_notification(assessment: TrendAssessment) -> GlucoseNotification | None:
    title = _TITLES.get(assessment.alert_level)
    if title is None:
        return None
    body = (
        f"{assessment.current_glucose:.0f} --> {assessment.long_prediction:.0f} "
        f"({assessment.short_prediction:.0f}), Delta: {assessment.long_delta:.0f} "
        f"({assessment.short_delta:.0f})"
    )
    return GlucoseNotification(
        alert_level=assessment.alert_level,
        title=title,
        body=body,
        badge_value=assessment.badge_value,
    )
