from __future__ import annotations


class CheckInError(Exception):
    """Base for every failure the check-in flow surfaces to staff."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckInError):
    """Rejected locally, no network call was made."""


class BusyError(CheckInError):
    """A submit or completion is already in flight."""


class TransportError(CheckInError):
    """The gym API could not be reached."""


class ServerError(CheckInError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CaptureError(CheckInError):
    """Camera could not be opened (permissions, busy device, no hardware)."""


class EncodingError(CheckInError):
    """Local QR image generation failed. Never fatal."""
