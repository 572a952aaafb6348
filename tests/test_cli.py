from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from libremon import cli

from frame_builder import build_frame, synced_history_block

runner = CliRunner()

UID = "E007A000000C48BD"


def _frame_bytes(trend_value: int = 100) -> bytes:
    return build_frame(
        trend=[trend_value] * 16,
        history=[130 - i for i in range(32)],
        next_trend_block=9,
        next_history_block=synced_history_block(1000),
        minutes=1000,
    )


def _env(tmp_path: Path) -> dict[str, str]:
    return {"LIBREMON_SETTINGS": str(tmp_path / "settings.yaml")}


def test_frame_command_with_hex_dump(tmp_path: Path) -> None:
    dump = tmp_path / "frame.hex"
    dump.write_text(_frame_bytes().hex(), encoding="ascii")
    result = runner.invoke(
        cli.app,
        ["frame", str(dump), "--uid", UID, "--observed-at", "2024-03-01T08:00:00"],
        env=_env(tmp_path),
    )
    assert result.exit_code == 0
    assert "Sensor SN: 0M0000328QM, crcs: True, True, True" in result.stdout
    assert "Sensor status: Sensor is ready" in result.stdout
    assert "Blocks: Trend: 9, history: 2, minutes: 1000" in result.stdout
    assert "Offset / Slope: 0 mg/dl, 1.0000" in result.stdout
    assert "Glucose: 100, Delta: 0 (0), Prognosis: 100 (100)" in result.stdout
    assert "Last 15 minutes:" in result.stdout
    assert "Last eight hours:" in result.stdout
    assert "Alert:" not in result.stdout
    assert "raw=100     1.1 C 640000000123 2024-03-01" in result.stdout


def test_frame_command_with_binary_dump_and_alert(tmp_path: Path) -> None:
    dump = tmp_path / "frame.bin"
    dump.write_bytes(_frame_bytes(trend_value=250))
    result = runner.invoke(
        cli.app,
        ["frame", str(dump), "--observed-at", "2024-03-01T08:00:00"],
        env=_env(tmp_path),
    )
    assert result.exit_code == 0
    assert "Sensor SN: -" in result.stdout
    assert "Alert: High Glucose: 250 --> 250 (250), Delta: 0 (0)" in result.stdout
    assert "Glucose: 250, Delta: 0 (0), Prognosis: 250 (250) (!)" in result.stdout


def test_frame_command_calibration_override_is_not_saved(tmp_path: Path) -> None:
    dump = tmp_path / "frame.bin"
    dump.write_bytes(_frame_bytes())
    result = runner.invoke(
        cli.app,
        ["frame", str(dump), "--offset", "10", "--slope", "0.5", "--observed-at", "2024-03-01T08:00:00"],
        env=_env(tmp_path),
    )
    assert result.exit_code == 0
    assert "Offset / Slope: 10 mg/dl, 0.5000" in result.stdout
    assert "Glucose: 60," in result.stdout
    assert not (tmp_path / "settings.yaml").exists()


def test_message_command_system_info(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["message", "system-info", "00000000" + UID], env=_env(tmp_path))
    assert result.exit_code == 0
    assert "SYSTEM_INFORMATION_DATA:" in result.stdout
    assert "Sensor SN: 0M0000328QM" in result.stdout


def test_message_command_battery(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["message", "battery", "FF036400"], env=_env(tmp_path))
    assert result.exit_code == 0
    assert result.stdout.startswith("BATTERY_DATA:")


def test_message_command_unknown_type_is_clean(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["message", "bogus", "00"], env=_env(tmp_path))
    assert result.exit_code == 1
    assert "Error: " in result.stderr
    assert "Available:" in result.stderr
    assert "Traceback" not in result.stdout


def test_calibration_show_and_update(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["calibration"], env=_env(tmp_path))
    assert result.exit_code == 0
    assert "Offset / Slope: 0 mg/dl, 1.0000" in result.stdout

    result = runner.invoke(cli.app, ["calibration", "--offset", "-15", "--slope", "1.1"], env=_env(tmp_path))
    assert result.exit_code == 0
    assert "Offset / Slope: -15 mg/dl, 1.1000" in result.stdout

    result = runner.invoke(cli.app, ["calibration"], env=_env(tmp_path))
    assert "Offset / Slope: -15 mg/dl, 1.1000" in result.stdout


def test_invalid_settings_file_is_clean(tmp_path: Path) -> None:
    (tmp_path / "settings.yaml").write_text("calibration: [1, 2]\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["calibration"], env=_env(tmp_path))
    assert result.exit_code == 1
    assert "Error: Schema validation failed" in result.stderr


def test_frame_command_error_is_clean(tmp_path: Path) -> None:
    dump = tmp_path / "short.bin"
    dump.write_bytes(b"\x00\x01\x02")
    result = runner.invoke(cli.app, ["frame", str(dump)], env=_env(tmp_path))
    assert result.exit_code == 1
    assert "Error: " in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr
