from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from libremon.api import Client, MessageType, SensorFrame, Settings
from libremon.core.model import CalibrationModel
from libremon.core.settings import load_settings

from frame_builder import build_frame, synced_history_block

OBSERVED_AT = datetime(2024, 3, 1, 8, 0, 0)


def _frame_bytes() -> bytes:
    return build_frame(
        trend=[110 + i for i in range(16)],
        history=[140 - i for i in range(32)],
        next_trend_block=3,
        next_history_block=synced_history_block(1000),
        minutes=1000,
    )


def test_public_client_decode_message_by_name() -> None:
    client = Client(settings=Settings())
    result = client.decode_message("battery", bytes([0xFF, 0x03, 0x64, 0x00]))
    assert result.ok
    assert result.message_type is MessageType.BATTERY_DATA
    assert result.value.voltage == pytest.approx(3.6)


def test_public_client_decode_frame_and_derive() -> None:
    client = Client(settings=Settings(calibration=CalibrationModel(offset=-10.0, slope=1.0)))
    result = client.decode_frame(_frame_bytes(), observed_at=OBSERVED_AT)
    assert result.ok
    assert result.message_type is MessageType.ALL_BYTES
    assert isinstance(result.value, SensorFrame)
    frame = result.value

    derived = client.derive(frame)
    assert derived.current.glucose == 100.0
    assert len(derived.history) == 32

    assessment = client.assess(derived.trend)
    assert assessment.current_glucose == 100.0
    assert client.notification_for(assessment) is None


def test_public_client_decode_frame_reports_bad_length() -> None:
    result = Client(settings=Settings()).decode_frame(bytes(100))
    assert not result.ok
    assert result.value is None
    assert result.message_type is MessageType.ALL_BYTES
    assert "344 bytes" in result.error


def test_public_client_decode_message_reports_unknown_name() -> None:
    result = Client(settings=Settings()).decode_message("bogus", b"\x00")
    assert not result.ok
    assert result.message_type is MessageType.UNKNOWN
    assert "Available:" in result.error


def test_public_client_reconcile_filters_existing() -> None:
    client = Client(settings=Settings())
    history = client.derive(client.decode_frame(_frame_bytes(), observed_at=OBSERVED_AT).value).history
    first = client.reconcile(history, [])
    assert len(first) == 32
    assert client.reconcile(history, first) == []


def test_public_client_set_calibration_persists(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    client = Client(settings_path=path)
    calibration = client.set_calibration(offset=12.0, slope=0.0)
    assert calibration == CalibrationModel(offset=12.0, slope=1.0)
    assert client.calibration == calibration
    assert load_settings(path).calibration == calibration


def test_public_client_set_calibration_without_persist(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    client = Client(settings_path=path)
    client.set_calibration(offset=5.0, slope=1.2, persist=False)
    assert not path.exists()


def test_public_client_monitor_uses_client_settings() -> None:
    settings = Settings(calibration=CalibrationModel(offset=3.0, slope=1.0))
    service = Client(settings=settings).monitor()
    assert service.calibration == settings.calibration
    outcome = service.handle_message(int(MessageType.NFC_STATE), b"\x01")
    assert outcome.result.ok
