"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import string
from datetime import datetime
from pathlib import Path

import typer

from libremon.api import Client
from libremon.core.errors import LibremonError, MalformedPayloadError
from libremon.core.model import Measurement
from libremon.core.trend import build_notification

app = typer.Typer(help="Decode Libre sensor data received through a BLE relay")

_TIME_FORMAT = "%H:%M:%S"
_DATE_FORMAT = "%Y-%m-%d"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log decoding details")) -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
    )


def _build_client() -> Client:
    client = Client()
    for warning in client.load_warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _parse_hex(text: str, *, context: str) -> bytes:
    normalized = "".join(text.split()).replace(":", "")
    if normalized.lower().startswith("0x"):
        normalized = normalized[2:]
    try:
        return bytes.fromhex(normalized)
    except ValueError as exc:
        raise MalformedPayloadError(f"{context} is not valid hex") from exc


def _read_dump(path: Path) -> bytes:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MalformedPayloadError(f"Could not read {path}: {exc}") from exc
    text = data.decode("ascii", errors="ignore")
    if len(text) == len(data) and text.strip() and all(c in string.hexdigits + string.whitespace + ":" for c in text):
        return _parse_hex(text, context=str(path))
    return data


def _measurement_line(index: int, measurement: Measurement) -> str:
    return (
        f"  {index:2d} {measurement.date.strftime(_TIME_FORMAT)} {measurement.glucose:6.1f} mg/dl "
        f"raw={measurement.raw_value:<5d} {measurement.temperature:5.1f} C "
        f"{measurement.byte_string} {measurement.date.strftime(_DATE_FORMAT)}"
    )


@app.command("frame")
def show_frame(
    path: Path = typer.Argument(..., help="344 byte dump, raw or hex text"),
    uid: str | None = typer.Option(None, "--uid", help="Sensor UID in hex, e.g. E007A000000C48BD"),
    observed_at: datetime | None = typer.Option(None, "--observed-at", help="Time the frame was read"),
    offset: float | None = typer.Option(None, "--offset", help="Calibration offset in mg/dl"),
    slope: float | None = typer.Option(None, "--slope", help="Calibration slope"),
) -> None:
    """Decode a sensor memory dump and print trend and history values."""
    try:
        client = _build_client()
        if offset is not None or slope is not None:
            client.set_calibration(
                offset=client.calibration.offset if offset is None else offset,
                slope=client.calibration.slope if slope is None else slope,
                persist=False,
            )
        uid_bytes = _parse_hex(uid, context="UID") if uid else None
        decoded = client.decode_frame(_read_dump(path), observed_at=observed_at, uid=uid_bytes)
        if not decoded.ok:
            raise MalformedPayloadError(decoded.error)
        frame = decoded.value
        derived = client.derive(frame)

        typer.echo(
            f"Sensor SN: {frame.serial_number or '-'}, crcs: "
            f"{frame.header_crc_valid}, {frame.body_crc_valid}, {frame.footer_crc_valid}"
        )
        typer.echo(f"Sensor status: {frame.state.description}")
        typer.echo(
            f"Blocks: Trend: {frame.next_trend_block}, history: {frame.next_history_block}, "
            f"minutes: {frame.minutes_since_start}"
        )
        typer.echo(f"Sensor started: {frame.sensor_age_text}")
        typer.echo(
            f"Offset / Slope: {derived.calibration.offset:.0f} mg/dl, {derived.calibration.slope:.4f}"
        )

        assessment = client.assess(derived.trend)
        marker = " (!)" if assessment.needs_attention else ""
        typer.echo(f"Glucose: {assessment.summary}{marker}")
        notification = build_notification(assessment)
        if notification is not None:
            typer.echo(f"Alert: {notification.title}: {notification.body}")

        typer.echo("Last 15 minutes:")
        for index, measurement in enumerate(derived.trend):
            typer.echo(_measurement_line(index, measurement))
        typer.echo("Last eight hours:")
        for index, measurement in enumerate(derived.history):
            typer.echo(_measurement_line(index, measurement))
    except LibremonError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("message")
def show_message(
    message_type: str = typer.Argument(..., help="nfc, system-info, battery, idn or all-bytes"),
    payload: str = typer.Argument(..., help="Payload in hex"),
) -> None:
    """Decode a single relay message payload."""
    try:
        client = _build_client()
        result = client.decode_message(message_type, _parse_hex(payload, context="Payload"))
        if not result.ok:
            raise MalformedPayloadError(result.error)
        value = result.value
        typer.echo(f"{result.message_type.name}: {getattr(value, 'description', value)}")
        serial = getattr(value, "serial_number", None)
        if serial:
            typer.echo(f"Sensor SN: {serial}")
    except LibremonError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("calibration")
def calibration(
    offset: float | None = typer.Option(None, "--offset", help="New offset in mg/dl"),
    slope: float | None = typer.Option(None, "--slope", help="New slope"),
) -> None:
    """Show or update the persisted calibration."""
    try:
        client = _build_client()
        current = client.calibration
        if offset is not None or slope is not None:
            current = client.set_calibration(
                offset=current.offset if offset is None else offset,
                slope=current.slope if slope is None else slope,
            )
        typer.echo(f"Offset / Slope: {current.offset:.0f} mg/dl, {current.slope:.4f}")
    except LibremonError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
