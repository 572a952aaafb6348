"""Domain-specific errors for libremon."""


class LibremonError(Exception):
    """Base error for libremon."""


class MalformedPayloadError(LibremonError):
    """Raised when a payload has the wrong length or an unparseable field."""


class OutOfRangeIndexError(MalformedPayloadError):
    """Raised when a ring-buffer pointer falls outside its ring."""


class UnknownMessageError(LibremonError):
    """Raised when a message identifier has no decoder."""


class SettingsLoadError(LibremonError):
    """Raised when the settings file cannot be read."""


class SettingsValidationError(LibremonError):
    """Raised when the settings file does not conform to schema or semantics."""
