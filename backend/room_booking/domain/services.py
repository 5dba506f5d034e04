from dataclasses import dataclass
from datetime import date, datetime, timedelta, time, tzinfo
from typing import Optional

from ..models import RecurrenceFrequency

BUSINESS_START = time(9, 0)
BUSINESS_END = time(18, 0)
MAX_DURATION = timedelta(hours=4)
MAX_FUTURE_RESERVATIONS = 3
CANCELLATION_LEAD_TIME = timedelta(minutes=60)
SLOT_LENGTH = timedelta(hours=1)

RECURRENCE_STEPS = {
    RecurrenceFrequency.DAILY: timedelta(days=1),
    RecurrenceFrequency.WEEKLY: timedelta(days=7),
}

OVERLAP_MESSAGE = "Room is already booked during this time"
CANCEL_LEAD_TIME_MESSAGE = (
    "A reservation can only be cancelled if there are more than 60 minutes until its start time."
)


@dataclass(frozen=True)
class Violation:
    field: str
    message: str

    @property
    def full_message(self) -> str:
        if self.field == "base":
            return self.message
        return f"{self.field.replace('_', ' ').capitalize()} {self.message}"


@dataclass(frozen=True)
class BookingRequest:
    """A booking as asked for by the caller. Datetimes are aware, in the business time zone."""

    room_id: int
    title: Optional[str]
    starts_at: datetime
    ends_at: datetime
    recurring: Optional[RecurrenceFrequency] = None
    recurring_until: Optional[date] = None


@dataclass(frozen=True)
class Occurrence:
    starts_at: datetime
    ends_at: datetime


@dataclass(frozen=True)
class RuleSnapshot:
    room_capacity: int
    max_capacity_allowed: int
    is_admin: bool
    future_reservations: int
    has_conflict: bool


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: touching endpoints do not overlap."""
    return a_start < b_end and a_end > b_start


def expand_occurrences(request: BookingRequest) -> list[Occurrence]:
    """
    Turn a booking request into concrete occurrences.

    A non-recurring request yields exactly its own interval. A recurring request steps the
    start by the frequency up to and including `recurring_until` (compared by date),
    keeping the duration; steps that land on a weekend are skipped. The result may be empty.
    """
    if request.recurring is None or request.recurring_until is None:
        # Single bookings are never weekday-filtered; a weekend start is rejected
        # by check_business_hours instead.
        return [Occurrence(starts_at=request.starts_at, ends_at=request.ends_at)]

    step = RECURRENCE_STEPS[request.recurring]
    duration = request.ends_at - request.starts_at
    occurrences: list[Occurrence] = []
    current = request.starts_at
    while current.date() <= request.recurring_until:
        # Series members falling on Saturday/Sunday are dropped, not rejected.
        if current.weekday() < 5:
            occurrences.append(Occurrence(starts_at=current, ends_at=current + duration))
        current += step
    return occurrences


def check_recurrence_fields(
    recurring: Optional[RecurrenceFrequency],
    recurring_until: Optional[date],
    *,
    starts_at: datetime,
) -> list[Violation]:
    if recurring is None:
        if recurring_until is not None:
            return [Violation("recurring_until", "can't be set without a recurring frequency")]
        return []
    if recurring_until is None:
        return [Violation("recurring_until", "can't be blank")]
    if recurring_until < starts_at.date():
        return [Violation("recurring_until", "must be on or after the start date")]
    return []


def check_order(starts_at: datetime, ends_at: datetime) -> list[Violation]:
    if ends_at <= starts_at:
        return [Violation("ends_at", "must be after start time")]
    return []


def check_duration(starts_at: datetime, ends_at: datetime) -> list[Violation]:
    if ends_at > starts_at + MAX_DURATION:
        return [Violation("ends_at", "reservation cannot exceed 4 hours")]
    return []


def check_business_hours(starts_at: datetime, ends_at: datetime) -> list[Violation]:
    if starts_at.weekday() >= 5 or ends_at.weekday() >= 5:
        return [Violation("base", "reservations must be on weekdays")]

    violations: list[Violation] = []
    if starts_at.time() < BUSINESS_START:
        violations.append(Violation("starts_at", "must be at or after 9:00 AM"))
    # 18:00:00 sharp is allowed; anything later, including a later day, is not.
    latest_end = starts_at.replace(
        hour=BUSINESS_END.hour, minute=BUSINESS_END.minute, second=0, microsecond=0
    )
    if ends_at > latest_end:
        violations.append(Violation("ends_at", "must be at or before 6:00 PM"))
    return violations


def check_capacity(room_capacity: int, max_capacity_allowed: int, *, is_admin: bool) -> list[Violation]:
    if is_admin:
        return []
    if room_capacity > max_capacity_allowed:
        return [Violation("room", "capacity exceeds user's maximum allowed capacity")]
    return []


def check_quota(future_reservations: int, *, is_admin: bool) -> list[Violation]:
    if is_admin:
        return []
    if future_reservations >= MAX_FUTURE_RESERVATIONS:
        return [Violation("base", f"cannot have more than {MAX_FUTURE_RESERVATIONS} future reservations")]
    return []


def validate_occurrence(
    request: BookingRequest,
    occurrence: Occurrence,
    snapshot: RuleSnapshot,
) -> list[Violation]:
    """
    Pure validation of one occurrence. Every rule category is evaluated so the caller
    gets the complete list of violations, not just the first one.
    """
    violations: list[Violation] = []
    violations += check_recurrence_fields(
        request.recurring, request.recurring_until, starts_at=request.starts_at
    )
    violations += check_order(occurrence.starts_at, occurrence.ends_at)
    violations += check_duration(occurrence.starts_at, occurrence.ends_at)
    violations += check_business_hours(occurrence.starts_at, occurrence.ends_at)
    violations += check_capacity(
        snapshot.room_capacity, snapshot.max_capacity_allowed, is_admin=snapshot.is_admin
    )
    violations += check_quota(snapshot.future_reservations, is_admin=snapshot.is_admin)
    if snapshot.has_conflict:
        violations.append(Violation("base", OVERLAP_MESSAGE))
    return violations


def can_cancel(starts_at: datetime, now: datetime) -> bool:
    """True only while strictly more than the lead time remains before the start."""
    return now + CANCELLATION_LEAD_TIME < starts_at


def hourly_slots(day: date, tz: tzinfo) -> list[tuple[datetime, datetime]]:
    current = datetime.combine(day, BUSINESS_START, tzinfo=tz)
    end = datetime.combine(day, BUSINESS_END, tzinfo=tz)
    slots: list[tuple[datetime, datetime]] = []
    while current < end:
        slot_end = current + SLOT_LENGTH
        slots.append((current, slot_end))
        current = slot_end
    return slots
