# medalarm/engine/errors.py


class MedAlarmError(Exception):
    """Base class for every failure raised by the alarm engine."""


class ValidationError(MedAlarmError):
    """Input rejected locally, before anything is sent to the backend."""


class BackendError(MedAlarmError):
    """Request to the backend failed (network error or non-2xx answer)."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BackendError):
    """Medicine or user id no longer exists server-side."""


class ResponseFormatError(BackendError):
    """Backend answered, but the payload does not match the medicine schema."""
