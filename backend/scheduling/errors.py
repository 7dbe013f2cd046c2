"""Errors raised by the booking workflow.

Each carries the HTTP status it is surfaced with; the application registers
a single handler for :class:`SchedulingError`.
"""

from fastapi import status


class SchedulingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed input: missing fields, bad dates, wrong availability shape."""


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    """The requested time overlaps an existing booking."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(SchedulingError):
    """The action is not allowed for the appointment's current status."""
