"""Reading service used by CLI and future UI frontends.

The relay sends one cycle of messages per scan: system information first,
then battery, all bytes and finally IDN data. The service turns each message
into decoded records and hands the results of a full frame to the store,
notifier and uploader collaborators.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from libremon.collaborators.base import GlucoseStore, Notifier, Uploader
from libremon.core.derive import DerivedMeasurements, derive_measurements
from libremon.core.frame import SensorFrame
from libremon.core.messages import decode_message
from libremon.core.model import (
    BatteryRecord,
    CalibrationModel,
    DecodeResult,
    GlucoseNotification,
    IDNRecord,
    MessageType,
    NFCStateRecord,
    PersistedGlucoseEntry,
    SystemInfoRecord,
    TrendAssessment,
    UploadEntry,
)
from libremon.core.reconcile import reconcile, upload_entries
from libremon.core.settings import Settings, load_settings
from libremon.core.trend import assess_trend, build_notification

LOGGER = logging.getLogger(__name__)

STALE_SCAN_SECONDS = 240.0


@dataclass(frozen=True)
class ScanTimings:
    transmission: timedelta
    nfc_reading: timedelta | None
    bluetooth_transmission: timedelta | None


@dataclass(frozen=True)
class CycleReport:
    """Everything derived from one ALL_BYTES message."""

    frame: SensorFrame
    measurements: DerivedMeasurements
    assessment: TrendAssessment | None
    notification: GlucoseNotification | None
    inserted: tuple[PersistedGlucoseEntry, ...]
    uploaded: tuple[UploadEntry, ...]


@dataclass
class ScanCycle:
    started_at: datetime
    system_info: SystemInfoRecord | None = None
    battery: BatteryRecord | None = None
    battery_received_at: datetime | None = None
    report: CycleReport | None = None
    idn: IDNRecord | None = None
    completed_at: datetime | None = None
    timings: ScanTimings | None = None

    def is_stale(self, now: datetime) -> bool:
        return (now - self.started_at).total_seconds() > STALE_SCAN_SECONDS


@dataclass(frozen=True)
class MessageOutcome:
    result: DecodeResult[Any]
    report: CycleReport | None = None


class MonitorService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        store: GlucoseStore | None = None,
        notifier: Notifier | None = None,
        uploader: Uploader | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or load_settings()
        self.load_warnings = self.settings.warnings
        self.store = store
        self.notifier = notifier
        self.uploader = uploader
        self._clock = clock
        self._calibration = self.settings.calibration.normalized()
        self._cycle: ScanCycle | None = None
        self._last_scan: ScanCycle | None = None
        self._pending_uploads: list[UploadEntry] = []

    @property
    def calibration(self) -> CalibrationModel:
        return self._calibration

    @property
    def current_cycle(self) -> ScanCycle | None:
        return self._cycle

    @property
    def last_scan(self) -> ScanCycle | None:
        return self._last_scan

    def update_calibration(self, offset: float, slope: float) -> CalibrationModel:
        self._calibration = CalibrationModel(offset=offset, slope=slope).normalized()
        LOGGER.info(
            "Calibration set to offset %.0f mg/dl, slope %.4f",
            self._calibration.offset,
            self._calibration.slope,
        )
        return self._calibration

    def handle_message(self, identifier: int, payload: bytes) -> MessageOutcome:
        now = self._clock()
        LOGGER.debug("Received message with identifier %s", identifier)
        uid = self._cycle.system_info.uid if self._cycle and self._cycle.system_info else None
        result = decode_message(identifier, payload, observed_at=now, uid=uid)
        if not result.ok:
            if result.message_type is MessageType.ALL_BYTES and self._cycle is not None:
                self._cycle.report = None
            return MessageOutcome(result=result)

        if result.message_type is MessageType.SYSTEM_INFORMATION_DATA:
            self._start_cycle(result.value, now)
        elif result.message_type is MessageType.BATTERY_DATA:
            self._handle_battery(result.value, now)
        elif result.message_type is MessageType.ALL_BYTES:
            report = self.process_frame(result.value)
            self._ensure_cycle(now).report = report
            return MessageOutcome(result=result, report=report)
        elif result.message_type is MessageType.IDN_DATA:
            self._complete_cycle(result.value, now)
        elif result.message_type is MessageType.NFC_STATE:
            self._handle_nfc_state(result.value)
        return MessageOutcome(result=result)

    def process_frame(self, frame: SensorFrame) -> CycleReport:
        """Derive, assess and reconcile one decoded frame."""
        measurements = derive_measurements(frame, self._calibration)

        assessment: TrendAssessment | None = None
        notification: GlucoseNotification | None = None
        if frame.body_crc_valid:
            assessment = assess_trend(measurements.trend)
            notification = build_notification(assessment)
            self._notify(assessment, notification)
        else:
            LOGGER.warning("Body CRC invalid, skipping glucose alerting")

        inserted: tuple[PersistedGlucoseEntry, ...] = ()
        uploaded: tuple[UploadEntry, ...] = ()
        if frame.is_trustworthy and self.store is not None:
            inserted = self._store_history(measurements)
            uploaded = self._upload(upload_entries(inserted, self.settings.upload.device_label))
        elif not frame.is_trustworthy:
            LOGGER.info("Frame not trustworthy (state: %s), history not stored", frame.state.description)

        return CycleReport(
            frame=frame,
            measurements=measurements,
            assessment=assessment,
            notification=notification,
            inserted=inserted,
            uploaded=uploaded,
        )

    def _store_history(self, measurements: DerivedMeasurements) -> tuple[PersistedGlucoseEntry, ...]:
        try:
            entries = reconcile(measurements.history, self.store.existing_entries(), self._calibration)
            if entries:
                self.store.insert(entries)
        except Exception:
            LOGGER.warning("Glucose store failed, history not stored", exc_info=True)
            return ()
        if entries:
            LOGGER.info("Stored %d new history values", len(entries))
        return tuple(entries)

    def _notify(self, assessment: TrendAssessment, notification: GlucoseNotification | None) -> None:
        if self.notifier is None:
            return
        try:
            if notification is not None:
                self.notifier.glucose_alert(notification)
            self.notifier.set_badge(assessment.badge_value)
        except Exception:
            LOGGER.warning("Notifier failed", exc_info=True)

    def _upload(self, entries: list[UploadEntry]) -> tuple[UploadEntry, ...]:
        """Dispatch ``entries`` with anything left over from a failed dispatch."""
        if not self.settings.upload.enabled or self.uploader is None:
            return ()
        self._pending_uploads.extend(entries)
        if not self._pending_uploads:
            return ()
        batch = tuple(self._pending_uploads)
        try:
            self.uploader.dispatch(batch)
        except Exception:
            LOGGER.warning("Upload of %d entries failed, keeping them for the next frame", len(batch), exc_info=True)
            return ()
        self._pending_uploads.clear()
        return batch

    def _start_cycle(self, system_info: SystemInfoRecord, now: datetime) -> None:
        if self._cycle is not None and self._cycle.completed_at is None:
            LOGGER.info("New scan started before previous cycle completed, discarding it")
        self._cycle = ScanCycle(started_at=now, system_info=system_info)
        LOGGER.info("System information data is %s", system_info.description)

    def _ensure_cycle(self, now: datetime) -> ScanCycle:
        if self._cycle is None:
            self._cycle = ScanCycle(started_at=now)
        return self._cycle

    def _handle_battery(self, battery: BatteryRecord, now: datetime) -> None:
        cycle = self._ensure_cycle(now)
        cycle.battery = battery
        cycle.battery_received_at = now
        LOGGER.info("Battery data is %s", battery.description)
        if battery.is_low and self.notifier is not None:
            try:
                self.notifier.low_battery(battery.voltage)
            except Exception:
                LOGGER.warning("Notifier failed", exc_info=True)

    def _complete_cycle(self, idn: IDNRecord, now: datetime) -> None:
        cycle = self._ensure_cycle(now)
        cycle.idn = idn
        cycle.completed_at = now
        received = cycle.battery_received_at
        cycle.timings = ScanTimings(
            transmission=now - cycle.started_at,
            nfc_reading=received - cycle.started_at if received else None,
            bluetooth_transmission=now - received if received else None,
        )
        self._last_scan = cycle
        LOGGER.info("Idn data is %s", idn.description)

    @staticmethod
    def _handle_nfc_state(state: NFCStateRecord) -> None:
        LOGGER.info("NFCState is %s", state.ready)
