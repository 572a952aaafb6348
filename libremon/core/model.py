"""Core data models used across decoders, service, and CLI."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Generic, TypeVar

from libremon.core.bits import hex_string, masked_big_endian

T = TypeVar("T")

SERIAL_ALPHABET = "0123456789ACDEFGHJKLMNPQRTUVWXYZ"
LOW_BATTERY_VOLTS = 3.5
CRITICAL_BATTERY_VOLTS = 3.0
MINIMUM_SLOPE = 0.00001
ABSOLUTE_ZERO_CELSIUS = 273.16
# Relay ADC is 10 bit over a 3.6 V range; die temperature comes in quarter degrees.
VOLTAGE_SCALE = 3.6 / 1023.0
TEMPERATURE_SCALE = 0.25
TEMPERATURE_OFFSET = 0.0


class MessageType(IntEnum):
    UNKNOWN = -1
    NFC_STATE = 0
    SYSTEM_INFORMATION_DATA = 1
    BATTERY_DATA = 2
    IDN_DATA = 3
    ALL_BYTES = 4

    @classmethod
    def from_identifier(cls, identifier: int) -> MessageType:
        if identifier < 0:
            return cls.UNKNOWN
        try:
            return cls(identifier)
        except ValueError:
            return cls.UNKNOWN


class SensorState(Enum):
    NOT_YET_STARTED = 0x01
    WARMING_UP = 0x02
    READY = 0x03
    EXPIRED = 0x04
    SHUTDOWN = 0x05
    FAILURE = 0x06
    UNKNOWN = None

    @classmethod
    def from_byte(cls, value: int) -> SensorState:
        for state in cls:
            if state.value == value:
                return state
        return cls.UNKNOWN

    @property
    def description(self) -> str:
        return _STATE_DESCRIPTIONS[self]


_STATE_DESCRIPTIONS = {
    SensorState.NOT_YET_STARTED: "Sensor not yet started",
    SensorState.WARMING_UP: "Sensor in starting phase",
    SensorState.READY: "Sensor is ready",
    SensorState.EXPIRED: "Sensor is expired",
    SensorState.SHUTDOWN: "Sensor is shut down",
    SensorState.FAILURE: "Sensor has failure",
    SensorState.UNKNOWN: "Unknown sensor state",
}


class AlertLevel(Enum):
    NONE = "none"
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class SystemInfoRecord:
    result_code: int
    response_flags: int
    info_flags: int
    error_code: int
    uid: bytes

    @property
    def uid_string(self) -> str:
        return hex_string(self.uid, separator=":")

    @property
    def serial_number(self) -> str:
        return serial_number_from_uid(self.uid)

    @property
    def description(self) -> str:
        return (
            f"RESULT CODE: {self.result_code}, RESPONSE FLAGS: {self.response_flags:02X}, "
            f"INFO FLAGS: {self.info_flags:02X}, ERROR CODE: {self.error_code}, UID: {self.uid_string}"
        )


@dataclass(frozen=True)
class BatteryRecord:
    voltage_raw: int
    temperature_raw: int

    @property
    def voltage(self) -> float:
        return self.voltage_raw * VOLTAGE_SCALE

    @property
    def temperature(self) -> float:
        return self.temperature_raw * TEMPERATURE_SCALE - TEMPERATURE_OFFSET

    @property
    def is_low(self) -> bool:
        return self.voltage < LOW_BATTERY_VOLTS

    @property
    def is_critical(self) -> bool:
        return self.voltage < CRITICAL_BATTERY_VOLTS

    @property
    def description(self) -> str:
        return f"{self.voltage:3.1f} V, {self.temperature:4.1f} °C"


@dataclass(frozen=True)
class IDNRecord:
    response_code: int
    length: int
    device_id: bytes
    rom_crc: int

    @property
    def device_id_pretty(self) -> str:
        terminated = self.device_id.split(b"\x00", 1)[0]
        return hex_string(terminated, separator=" ")

    @property
    def description(self) -> str:
        return (
            f"RESPONSE CODE: {self.response_code} LENGTH: {self.length}, "
            f"DEVICE ID: {self.device_id_pretty}, ROM CRC: {self.rom_crc:04X}"
        )


@dataclass(frozen=True)
class NFCStateRecord:
    ready: bool


@dataclass(frozen=True)
class CalibrationModel:
    offset: float = 0.0
    slope: float = 1.0

    def normalized(self) -> CalibrationModel:
        if self.slope <= MINIMUM_SLOPE:
            return CalibrationModel(offset=self.offset, slope=1.0)
        return self

    def apply(self, raw_value: int) -> float:
        return self.offset + self.slope * raw_value


@dataclass(frozen=True)
class Measurement:
    """One six byte trend or history sub-record with its calibrated value.

    The temperature sub-field shares bytes 4..5 with other flags; the usable
    width differs between the trend (0x3F) and history (0x1F) rings, so the
    mask travels with the measurement.
    """

    raw_bytes: bytes
    raw_value: int
    counter: int
    date: datetime
    glucose: float
    offset: float
    slope: float
    temperature_mask: int

    @property
    def byte_string(self) -> str:
        return hex_string(self.raw_bytes)

    @property
    def temperature_raw(self) -> int:
        return masked_big_endian(self.raw_bytes, 4, self.temperature_mask)

    @property
    def temperature(self) -> float:
        raw = self.temperature_raw
        return 0.5 * (-ABSOLUTE_ZERO_CELSIUS + math.sqrt(abs(ABSOLUTE_ZERO_CELSIUS**2 + 4.0 * raw)))


@dataclass(frozen=True)
class TrendAssessment:
    current_glucose: float
    long_delta: float
    short_delta: float
    long_prediction: float
    short_prediction: float
    alert_level: AlertLevel

    @property
    def badge_value(self) -> int:
        return round_half_away_from_zero(self.long_prediction)

    @property
    def needs_attention(self) -> bool:
        return (
            self.long_prediction < 70.0
            or self.short_prediction < 70.0
            or self.long_prediction > 180.0
            or self.short_prediction > 180.0
            or (abs(self.long_delta) > 30.0 and abs(self.short_delta) > 30.0)
        )

    @property
    def summary(self) -> str:
        return (
            f"{self.current_glucose:.0f}, Delta: {self.long_delta:.0f} ({self.short_delta:.0f}), "
            f"Prognosis: {self.long_prediction:.0f} ({self.short_prediction:.0f})"
        )


@dataclass(frozen=True)
class GlucoseNotification:
    alert_level: AlertLevel
    title: str
    body: str
    badge_value: int


@dataclass(frozen=True)
class PersistedGlucoseEntry:
    value: float
    date: datetime
    date_string: str
    bytes: str


@dataclass(frozen=True)
class UploadEntry:
    glucose: int
    timestamp: datetime
    device: str
    source_type: str = "sensor"


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of a boundary decode call; exactly one of value/error is set."""

    message_type: MessageType
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def serial_number_from_uid(uid: bytes) -> str:
    if len(uid) != 8:
        return ""
    # Bytes 2..7 carry the serial; pad to 64 bits and read ten 5-bit digits.
    bits = int.from_bytes(uid[2:8], "big") << 16
    digits = [SERIAL_ALPHABET[(bits >> (59 - 5 * i)) & 0x1F] for i in range(10)]
    return "0" + "".join(digits)


def round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))
