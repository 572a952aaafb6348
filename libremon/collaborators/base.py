"""Interfaces of the external collaborators fed by the reading service."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from libremon.core.model import GlucoseNotification, PersistedGlucoseEntry, UploadEntry


class GlucoseStore(Protocol):
    def existing_entries(self) -> Sequence[PersistedGlucoseEntry]:
        """Return the persisted entries the reconciler deduplicates against."""

    def insert(self, entries: Sequence[PersistedGlucoseEntry]) -> None:
        """Persist new entries in the given order."""


class Notifier(Protocol):
    def glucose_alert(self, notification: GlucoseNotification) -> None:
        """Deliver a high/low glucose alert."""

    def set_badge(self, value: int) -> None:
        """Show the predicted glucose value as badge."""

    def low_battery(self, voltage: float) -> None:
        """Warn about a low relay battery."""


class Uploader(Protocol):
    def dispatch(self, entries: Sequence[UploadEntry]) -> None:
        """Send a batch of entries; failures are handled by the uploader."""
