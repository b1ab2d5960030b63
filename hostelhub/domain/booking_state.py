"""Booking state machine.

States: pending → approved → confirmed → completed, with rejected and
cancelled as side exits. rejected, cancelled and completed are terminal.
"""

from enum import Enum

from hostelhub.core.exceptions import InvalidStateError


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Keyed by plain strings, the column stores the enum value
BOOKING_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"approved", "rejected", "cancelled"},
    "approved": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "rejected": set(),
    "cancelled": set(),
    "completed": set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in BOOKING_TRANSITIONS.items() if not targets)
ACTIVE_STATUSES = frozenset({"pending", "approved", "confirmed"})

# Statuses from which a bed may be bound to the booking
ALLOCATABLE_STATUSES = frozenset({"approved", "confirmed"})


def _value(status: str) -> str:
    return status.value if isinstance(status, BookingStatus) else status


def can_transition(current: str, target: str) -> bool:
    return _value(target) in BOOKING_TRANSITIONS.get(_value(current), set())


def assert_booking_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Invalid booking transition: {_value(current)} → {_value(target)}",
            current_status=_value(current),
        )
