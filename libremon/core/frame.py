"""Decoding of the 344 byte sensor FRAM image.

The image is 43 blocks of 8 bytes. Blocks 0..2 form the header, 3..39 the
body and 40..42 the footer; each region starts with its own CRC. The body
holds two ring buffers of 6 byte records: 16 trend entries (one per minute)
and 32 history entries (one per 15 minutes).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from libremon.core.bits import bits_to_int, read_u16_le
from libremon.core.crc import has_valid_crc16_in_first_two_bytes
from libremon.core.errors import MalformedPayloadError, OutOfRangeIndexError
from libremon.core.model import CalibrationModel, Measurement, SensorState, serial_number_from_uid

LOGGER = logging.getLogger(__name__)

BLOCK_SIZE = 8
BLOCK_COUNT = 43
FRAME_LENGTH = BLOCK_SIZE * BLOCK_COUNT
HEADER_RANGE = range(0, 24)
BODY_RANGE = range(24, 320)
FOOTER_RANGE = range(320, FRAME_LENGTH)

STATE_BYTE = 4
NEXT_TREND_BYTE = 2
NEXT_HISTORY_BYTE = 3
MINUTES_COUNTER_OFFSET = 292

RECORD_SIZE = 6
RAW_VALUE_BITS = 13
TREND_RING_OFFSET = 4
TREND_RING_SIZE = 16
HISTORY_RING_OFFSET = TREND_RING_OFFSET + TREND_RING_SIZE * RECORD_SIZE
HISTORY_RING_SIZE = 32
HISTORY_CADENCE_MINUTES = 15
# History entries are written a few minutes after the quarter hour.
HISTORY_WRITE_DELAY_MINUTES = 3

TREND_TEMPERATURE_MASK = 0x3F
HISTORY_TEMPERATURE_MASK = 0x1F


def _region(data: bytes, region: range) -> bytes:
    return data[region.start : region.stop]


@dataclass(frozen=True)
class SensorFrame:
    data: bytes
    observed_at: datetime
    header_crc_valid: bool
    body_crc_valid: bool
    footer_crc_valid: bool
    next_trend_block: int
    next_history_block: int
    minutes_since_start: int
    state: SensorState
    uid: bytes | None = None

    @classmethod
    def decode(cls, data: bytes, observed_at: datetime, *, uid: bytes | None = None) -> SensorFrame:
        if len(data) != FRAME_LENGTH:
            raise MalformedPayloadError(f"Sensor frame must be {FRAME_LENGTH} bytes, got {len(data)}")
        data = bytes(data)
        header = _region(data, HEADER_RANGE)
        body = _region(data, BODY_RANGE)
        footer = _region(data, FOOTER_RANGE)

        next_trend_block = body[NEXT_TREND_BYTE]
        next_history_block = body[NEXT_HISTORY_BYTE]
        if next_trend_block >= TREND_RING_SIZE:
            raise OutOfRangeIndexError(
                f"Trend pointer {next_trend_block} outside ring of {TREND_RING_SIZE}"
            )
        if next_history_block >= HISTORY_RING_SIZE:
            raise OutOfRangeIndexError(
                f"History pointer {next_history_block} outside ring of {HISTORY_RING_SIZE}"
            )

        frame = cls(
            data=data,
            observed_at=observed_at,
            header_crc_valid=has_valid_crc16_in_first_two_bytes(header),
            body_crc_valid=has_valid_crc16_in_first_two_bytes(body),
            footer_crc_valid=has_valid_crc16_in_first_two_bytes(footer),
            next_trend_block=next_trend_block,
            next_history_block=next_history_block,
            minutes_since_start=read_u16_le(body, MINUTES_COUNTER_OFFSET),
            state=SensorState.from_byte(header[STATE_BYTE]),
            uid=uid,
        )
        if not frame.all_crcs_valid:
            LOGGER.warning(
                "Sensor frame CRC mismatch: header=%s body=%s footer=%s",
                frame.header_crc_valid,
                frame.body_crc_valid,
                frame.footer_crc_valid,
            )
        return frame

    @property
    def header(self) -> bytes:
        return _region(self.data, HEADER_RANGE)

    @property
    def body(self) -> bytes:
        return _region(self.data, BODY_RANGE)

    @property
    def footer(self) -> bytes:
        return _region(self.data, FOOTER_RANGE)

    @property
    def serial_number(self) -> str | None:
        if self.uid is None:
            return None
        return serial_number_from_uid(self.uid)

    @property
    def all_crcs_valid(self) -> bool:
        return self.header_crc_valid and self.body_crc_valid and self.footer_crc_valid

    @property
    def is_trustworthy(self) -> bool:
        """Whether history may be persisted from this frame."""
        return self.header_crc_valid and self.body_crc_valid and self.state is SensorState.READY

    @property
    def sensor_age(self) -> timedelta:
        return timedelta(minutes=self.minutes_since_start)

    @property
    def sensor_age_text(self) -> str:
        days, rest = divmod(self.minutes_since_start, 24 * 60)
        hours, minutes = divmod(rest, 60)
        return f"{days} day(s), {hours} hour(s) and {minutes} minute(s) ago"

    def trend_measurements(self, offset: float = 0.0, slope: float = 1.0) -> list[Measurement]:
        """Trend ring, most recent first; one entry per minute."""
        calibration = CalibrationModel(offset=offset, slope=slope)
        measurements = []
        # The sensor FRAM pointer names the slot it writes next, which still
        # holds the oldest value; the newest sample sits one slot behind it.
        for index in range(TREND_RING_SIZE):
            slot = (self.next_trend_block - 1 - index) % TREND_RING_SIZE
            measurements.append(
                self._measurement(
                    TREND_RING_OFFSET + slot * RECORD_SIZE,
                    counter=self.minutes_since_start - index,
                    calibration=calibration,
                    temperature_mask=TREND_TEMPERATURE_MASK,
                )
            )
        return measurements

    def history_measurements(self, offset: float = 0.0, slope: float = 1.0) -> list[Measurement]:
        """History ring, most recent first; one entry per 15 minutes.

        Slots that were never written are still returned; their dates lie
        before the sensor start and callers filter them by value.
        """
        calibration = CalibrationModel(offset=offset, slope=slope)
        most_recent = self.most_recent_history_counter()
        measurements = []
        for index in range(HISTORY_RING_SIZE):
            slot = (self.next_history_block - 1 - index) % HISTORY_RING_SIZE
            measurements.append(
                self._measurement(
                    HISTORY_RING_OFFSET + slot * RECORD_SIZE,
                    counter=most_recent - index * HISTORY_CADENCE_MINUTES,
                    calibration=calibration,
                    temperature_mask=HISTORY_TEMPERATURE_MASK,
                )
            )
        return measurements

    def most_recent_history_counter(self) -> int:
        """Sensor minute of the newest history entry.

        The history pointer normally advances together with the minutes
        counter. When it has already moved on while the counter has not, the
        newest entry is one cadence later.
        """
        minutes = self.minutes_since_start
        since_write = minutes - HISTORY_WRITE_DELAY_MINUTES
        delay = since_write % HISTORY_CADENCE_MINUTES + HISTORY_WRITE_DELAY_MINUTES
        expected_block = (since_write // HISTORY_CADENCE_MINUTES) % HISTORY_RING_SIZE
        if expected_block == self.next_history_block:
            return minutes - delay
        return minutes - delay + HISTORY_CADENCE_MINUTES

    def _measurement(
        self,
        body_offset: int,
        *,
        counter: int,
        calibration: CalibrationModel,
        temperature_mask: int,
    ) -> Measurement:
        record = self.body[body_offset : body_offset + RECORD_SIZE]
        raw_value = bits_to_int(record, 0, 0, RAW_VALUE_BITS)
        return Measurement(
            raw_bytes=record,
            raw_value=raw_value,
            counter=counter,
            date=self.observed_at - timedelta(minutes=self.minutes_since_start - counter),
            glucose=calibration.apply(raw_value),
            offset=calibration.offset,
            slope=calibration.slope,
            temperature_mask=temperature_mask,
        )

    @property
    def description(self) -> str:
        lines = [
            f"Sensor frame observed at {self.observed_at.isoformat(sep=' ', timespec='seconds')}",
            f"  serial: {self.serial_number or '-'}",
            f"  state: {self.state.description}",
            f"  crcs: header={self.header_crc_valid}, body={self.body_crc_valid}, footer={self.footer_crc_valid}",
            f"  blocks: trend={self.next_trend_block}, history={self.next_history_block}, "
            f"minutes={self.minutes_since_start}",
        ]
        return "\n".join(lines)
