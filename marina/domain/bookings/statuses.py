from enum import Enum

from marina.domain.errors import InvalidTransitionError


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


BOOKING_TRANSITIONS: dict[str, set[str]] = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.ACTIVE.value, BookingStatus.CANCELLED.value},
    BookingStatus.ACTIVE.value: {BookingStatus.COMPLETED.value},
    BookingStatus.COMPLETED.value: set(),
    BookingStatus.CANCELLED.value: set(),
}


def assert_valid_booking_transition(current: str, target: str) -> None:
    if current == target:
        return
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if not allowed:
        raise InvalidTransitionError(detail=f"Booking is already in terminal status: {current}")
    if target not in allowed:
        raise InvalidTransitionError(detail=f"Cannot transition booking from {current} to {target}")
