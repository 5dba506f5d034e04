from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .services import Violation


class DomainError(Exception):
    """Base class for errors raised by use cases."""


class NotFoundError(DomainError):
    pass


class RoomNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class PermissionDeniedError(DomainError):
    pass


class CancelNotAllowedError(DomainError):
    pass


class ReservationRejectedError(DomainError):
    """Booking request failed one or more business rules; nothing was written."""

    def __init__(self, violations: Sequence["Violation"]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(v.full_message for v in self.violations))
