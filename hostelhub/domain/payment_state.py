"""Advance payment state machine."""

from hostelhub.core.exceptions import ValidationError

PAYMENT_TRANSITIONS = {
    "pending": {"completed", "failed"},
    "completed": {"refunded"},
    "failed": set(),
    "refunded": set(),
}

COMPLETED_PAYMENT_STATUS = "completed"


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid payment transition: {current} → {target}"
        )
