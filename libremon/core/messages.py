"""Decoders for the fixed-length messages sent by the relay."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from libremon.core.bits import bits_to_int, read_i16_le, read_u16_be, read_u16_le
from libremon.core.errors import MalformedPayloadError, UnknownMessageError
from libremon.core.frame import FRAME_LENGTH, SensorFrame
from libremon.core.model import (
    BatteryRecord,
    DecodeResult,
    IDNRecord,
    MessageType,
    NFCStateRecord,
    SystemInfoRecord,
)

LOGGER = logging.getLogger(__name__)

PAYLOAD_LENGTHS: dict[MessageType, int] = {
    MessageType.NFC_STATE: 1,
    MessageType.SYSTEM_INFORMATION_DATA: 12,
    MessageType.BATTERY_DATA: 4,
    MessageType.IDN_DATA: 17,
    MessageType.ALL_BYTES: FRAME_LENGTH,
}

_NFC_READY_BIT = 0
_UID_OFFSET = 4
_UID_LENGTH = 8
_DEVICE_ID_OFFSET = 2
_DEVICE_ID_LENGTH = 13


def _require_length(payload: bytes, message_type: MessageType) -> bytes:
    expected = PAYLOAD_LENGTHS[message_type]
    if len(payload) != expected:
        raise MalformedPayloadError(
            f"{message_type.name} payload must be {expected} bytes, got {len(payload)}"
        )
    return bytes(payload)


def decode_nfc_state(payload: bytes) -> NFCStateRecord:
    data = _require_length(payload, MessageType.NFC_STATE)
    return NFCStateRecord(ready=bits_to_int(data, 0, _NFC_READY_BIT, 1) == 1)


def decode_system_information(payload: bytes) -> SystemInfoRecord:
    data = _require_length(payload, MessageType.SYSTEM_INFORMATION_DATA)
    return SystemInfoRecord(
        result_code=data[0],
        response_flags=data[1],
        info_flags=data[2],
        error_code=data[3],
        uid=data[_UID_OFFSET : _UID_OFFSET + _UID_LENGTH],
    )


def decode_battery(payload: bytes) -> BatteryRecord:
    data = _require_length(payload, MessageType.BATTERY_DATA)
    return BatteryRecord(voltage_raw=read_u16_le(data, 0), temperature_raw=read_i16_le(data, 2))


def decode_idn(payload: bytes) -> IDNRecord:
    data = _require_length(payload, MessageType.IDN_DATA)
    end = _DEVICE_ID_OFFSET + _DEVICE_ID_LENGTH
    return IDNRecord(
        response_code=data[0],
        length=data[1],
        device_id=data[_DEVICE_ID_OFFSET:end],
        rom_crc=read_u16_be(data, end),
    )


def decode_all_bytes(payload: bytes, observed_at: datetime | None = None, uid: bytes | None = None) -> SensorFrame:
    data = _require_length(payload, MessageType.ALL_BYTES)
    return SensorFrame.decode(data, observed_at or datetime.now(), uid=uid)


DECODERS: dict[MessageType, Callable[..., Any]] = {
    MessageType.NFC_STATE: decode_nfc_state,
    MessageType.SYSTEM_INFORMATION_DATA: decode_system_information,
    MessageType.BATTERY_DATA: decode_battery,
    MessageType.IDN_DATA: decode_idn,
    MessageType.ALL_BYTES: decode_all_bytes,
}


def message_type_from_name(name: str) -> MessageType:
    normalized = name.strip().upper().replace("-", "_")
    aliases = {
        "NFC": MessageType.NFC_STATE,
        "SYSTEM_INFORMATION": MessageType.SYSTEM_INFORMATION_DATA,
        "SYSTEM_INFO": MessageType.SYSTEM_INFORMATION_DATA,
        "BATTERY": MessageType.BATTERY_DATA,
        "IDN": MessageType.IDN_DATA,
    }
    if normalized in aliases:
        return aliases[normalized]
    try:
        message_type = MessageType[normalized]
    except KeyError:
        message_type = MessageType.UNKNOWN
    if message_type is MessageType.UNKNOWN:
        available = ", ".join(t.name.lower() for t in DECODERS)
        raise UnknownMessageError(f"Unknown message type '{name}'. Available: {available}")
    return message_type


def decode_message(
    identifier: int,
    payload: bytes,
    *,
    observed_at: datetime | None = None,
    uid: bytes | None = None,
) -> DecodeResult[Any]:
    """Decode one relay message without raising for bad input."""
    message_type = MessageType.from_identifier(identifier)
    if message_type is MessageType.UNKNOWN:
        LOGGER.info("Received message with unknown identifier %s", identifier)
        return DecodeResult(message_type=message_type, error=f"Unknown message identifier {identifier}")

    try:
        if message_type is MessageType.ALL_BYTES:
            value = decode_all_bytes(payload, observed_at, uid)
        else:
            value = DECODERS[message_type](payload)
    except MalformedPayloadError as exc:
        LOGGER.warning("Discarding %s message: %s", message_type.name, exc)
        return DecodeResult(message_type=message_type, error=str(exc))

    return DecodeResult(message_type=message_type, value=value)
