"""Exception hierarchy shared by the picker core and the Slack handlers."""

from __future__ import annotations

from typing import Any, Optional


class PickerError(Exception):
    """Base class for every error raised by the picker."""


class ValidationError(PickerError):
    """Stored record is corrupt beyond repair."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class InvalidInputError(PickerError):
    """User supplied input was rejected. ``field`` names the modal block."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ConflictError(PickerError):
    """Optimistic ``ts`` check failed, or the target vanished meanwhile."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(PickerError):
    pass


class ExternalCallError(PickerError):
    """Slack API call failed or returned a non-ok envelope."""

    def __init__(self, message: str, response: Any = None) -> None:
        super().__init__(message)
        self.response = response


class SessionClosedError(PickerError):
    """Vote or reveal attempted on a session that has already ended."""


class UnknownEventError(PickerError):
    pass
