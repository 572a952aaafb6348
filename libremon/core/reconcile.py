"""Merge of newly read history values into the persisted glucose series."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from libremon.core.model import CalibrationModel, Measurement, PersistedGlucoseEntry, UploadEntry

LOGGER = logging.getLogger(__name__)

DEDUP_WINDOW_SECONDS = 120.0
DATE_STRING_FORMAT = "%Y-%m-%d %H:%M:%S"


def _already_stored(measurement: Measurement, existing: Sequence[PersistedGlucoseEntry]) -> bool:
    return any(
        abs((entry.date - measurement.date).total_seconds()) < DEDUP_WINDOW_SECONDS
        for entry in existing
    )


def is_plausible(measurement: Measurement, calibration: CalibrationModel) -> bool:
    return measurement.glucose > calibration.offset and measurement.glucose > 0.0


def reconcile(
    new_history: Iterable[Measurement],
    existing: Sequence[PersistedGlucoseEntry],
    calibration: CalibrationModel,
) -> list[PersistedGlucoseEntry]:
    """Return the entries to insert for ``new_history``.

    Each measurement is checked against ``existing`` only; entries emitted in
    the same call never suppress each other.
    """
    existing = tuple(existing)
    inserts: list[PersistedGlucoseEntry] = []
    for measurement in new_history:
        if _already_stored(measurement, existing):
            continue
        if not is_plausible(measurement, calibration):
            LOGGER.debug("Skipping implausible value %.1f at %s", measurement.glucose, measurement.date)
            continue
        inserts.append(
            PersistedGlucoseEntry(
                value=measurement.glucose,
                date=measurement.date,
                date_string=measurement.date.strftime(DATE_STRING_FORMAT),
                bytes=measurement.byte_string,
            )
        )
    return inserts


def upload_entries(entries: Iterable[PersistedGlucoseEntry], device_label: str) -> list[UploadEntry]:
    return [
        UploadEntry(glucose=int(entry.value), timestamp=entry.date, device=device_label)
        for entry in entries
    ]
