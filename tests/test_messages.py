from __future__ import annotations

from datetime import datetime

import pytest

from libremon.core.errors import MalformedPayloadError, UnknownMessageError
from libremon.core.frame import SensorFrame
from libremon.core.messages import (
    DECODERS,
    PAYLOAD_LENGTHS,
    decode_battery,
    decode_idn,
    decode_message,
    decode_nfc_state,
    decode_system_information,
    message_type_from_name,
)
from libremon.core.model import MessageType

from frame_builder import build_frame

UID = bytes.fromhex("E007A000000C48BD")
IDN_PAYLOAD = bytes.fromhex("000F" + "4E4643204653324A41535432" + "00" + "75D2")


def test_decoder_table_covers_every_known_message() -> None:
    known = {t for t in MessageType if t is not MessageType.UNKNOWN}
    assert set(DECODERS) == known
    assert set(PAYLOAD_LENGTHS) == known


def test_system_information_uid_and_serial() -> None:
    record = decode_system_information(bytes(4) + UID)
    assert record.uid == UID
    assert record.uid_string == "E0:07:A0:00:00:0C:48:BD"
    assert record.serial_number == "0M0000328QM"


def test_battery_conversion() -> None:
    record = decode_battery(bytes([0xFF, 0x03, 0x64, 0x00]))
    assert record.voltage == pytest.approx(3.6)
    assert record.temperature == pytest.approx(25.0)
    assert not record.is_low

    cold = decode_battery(bytes([0x84, 0x03, 0xF8, 0xFF]))
    assert cold.temperature == pytest.approx(-2.0)
    assert cold.voltage == pytest.approx(900 * 3.6 / 1023)
    assert cold.is_low
    assert not cold.is_critical


def test_idn_pretty_device_id_stops_at_null() -> None:
    record = decode_idn(IDN_PAYLOAD)
    assert record.response_code == 0
    assert record.length == 15
    assert record.device_id_pretty == "4E 46 43 20 46 53 32 4A 41 53 54 32"
    assert record.rom_crc == 0x75D2
    assert record.description == (
        "RESPONSE CODE: 0 LENGTH: 15, DEVICE ID: 4E 46 43 20 46 53 32 4A 41 53 54 32, ROM CRC: 75D2"
    )


def test_nfc_state_reads_ready_bit() -> None:
    assert decode_nfc_state(b"\x01").ready is True
    assert decode_nfc_state(b"\x02").ready is False


def test_wrong_length_is_not_truncated() -> None:
    with pytest.raises(MalformedPayloadError):
        decode_battery(bytes(5))
    with pytest.raises(MalformedPayloadError):
        decode_idn(IDN_PAYLOAD[:-1])


def test_decode_message_returns_error_result_instead_of_raising() -> None:
    result = decode_message(int(MessageType.BATTERY_DATA), bytes(3))
    assert not result.ok
    assert result.message_type is MessageType.BATTERY_DATA
    assert "4 bytes" in result.error


def test_decode_message_unknown_identifier() -> None:
    result = decode_message(99, b"\x00")
    assert result.message_type is MessageType.UNKNOWN
    assert not result.ok
    assert result.value is None


def test_decode_message_all_bytes_builds_frame() -> None:
    observed_at = datetime(2024, 3, 1, 8, 0, 0)
    result = decode_message(
        int(MessageType.ALL_BYTES),
        build_frame(trend=[100] * 16),
        observed_at=observed_at,
        uid=UID,
    )
    assert result.ok
    assert isinstance(result.value, SensorFrame)
    assert result.value.observed_at == observed_at
    assert result.value.serial_number == "0M0000328QM"


def test_message_type_from_name() -> None:
    assert message_type_from_name("battery") is MessageType.BATTERY_DATA
    assert message_type_from_name("all-bytes") is MessageType.ALL_BYTES
    assert message_type_from_name("System-Info") is MessageType.SYSTEM_INFORMATION_DATA
    with pytest.raises(UnknownMessageError) as exc:
        message_type_from_name("bogus")
    assert "Available:" in str(exc.value)
