"""
Domain models for salon scheduling, bookings, payments and reviews.
"""

from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import List

import pendulum
from pendulum import DateTime

from .exceptions import InvalidRequestError


def parse_time_of_day(value: "str | time") -> time:
    """
    Parse a time-of-day as stored by the backend.

    Accepts ``HH:MM`` and ``HH:MM:SS`` strings (Postgres ``time`` columns are
    returned with seconds) as well as ready ``datetime.time`` objects.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value

    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour=hour, minute=minute, second=second)


def format_time_of_day(value: time) -> str:
    """Format a time of day as ``HH:MM``."""
    return f"{value.hour:02d}:{value.minute:02d}"


def weekday_index(day: DateTime) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap test: touching ranges do not overlap."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


def _at(day: DateTime, value: time) -> DateTime:
    return day.set(hour=value.hour, minute=value.minute, second=value.second, microsecond=0)


@dataclass(frozen=True)
class WorkingWindow:
    """
    Recurring weekly availability of one staff member on one weekday.
    """
    weekday: int  # 0=Sunday, 6=Saturday
    start: time
    end: time
    is_active: bool = True

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")

    def on_date(self, day: DateTime) -> TimeRange | None:
        """
        Get the concrete working range for a specific day.

        Returns None if the window is inactive, zero-length or inverted.
        """
        if not self.is_active or self.end <= self.start:
            return None

        return TimeRange(start=_at(day, self.start), end=_at(day, self.end))


@dataclass(frozen=True)
class BookedInterval:
    """Time already consumed by an active appointment on the target date."""
    start: time
    end: time

    def on_date(self, day: DateTime) -> TimeRange | None:
        """Concrete range on ``day``; None for a degenerate booking."""
        if self.end <= self.start:
            return None
        return TimeRange(start=_at(day, self.start), end=_at(day, self.end))


@dataclass(frozen=True)
class SlotRequest:
    """The (staff, service, date) triple a slot lookup is made for."""
    staff_id: str
    service_id: str
    date: str  # YYYY-MM-DD

    def day(self, timezone: str = "UTC") -> DateTime:
        """
        Parse the requested date to the start of that day.

        Raises:
            InvalidRequestError: If the date is not a valid ISO date
        """
        try:
            return pendulum.from_format(self.date, "YYYY-MM-DD", tz=timezone).start_of("day")
        except ValueError as exc:
            raise InvalidRequestError(f"Invalid date {self.date!r}, expected YYYY-MM-DD") from exc

    @property
    def weekday(self) -> int:
        return weekday_index(self.day())


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_active(self) -> bool:
        """Whether an appointment in this status blocks the staff calendar."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS}
)


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    CASH = "cash"
    TRANSFER = "transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    APPOINTMENT = "appointment"
    REMINDER = "reminder"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    PAYMENT = "payment"


@dataclass(frozen=True)
class Service:
    """A bookable service with a fixed duration."""
    id: str
    salon_id: str
    name: str
    duration_minutes: int
    price: float = 0.0
    category: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment of one client with one staff member.

    ``service_name``, ``staff_name``, ``client_name`` and ``client_email`` are
    denormalised from joined rows and may be empty.
    """
    id: str | None
    salon_id: str
    client_id: str
    staff_id: str
    service_id: str
    date: str  # YYYY-MM-DD
    start_time: time
    end_time: time
    status: AppointmentStatus = AppointmentStatus.PENDING
    price: float | None = None
    notes: str | None = None
    reminder_sent: bool = False
    service_name: str = ""
    staff_name: str = ""
    client_name: str = ""
    client_email: str = ""

    def booked_interval(self) -> BookedInterval:
        return BookedInterval(start=self.start_time, end=self.end_time)

    def starts_at(self, timezone: str = "UTC") -> DateTime:
        """Start of the appointment as a concrete datetime."""
        day = pendulum.from_format(self.date, "YYYY-MM-DD", tz=timezone)
        return _at(day, self.start_time)


@dataclass(frozen=True)
class Payment:
    id: str | None
    appointment_id: str
    amount: float
    method: PaymentMethod
    status: PaymentStatus
    created_at: DateTime
    transaction_id: str = ""
    notes: str | None = None


MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class Review:
    id: str | None
    appointment_id: str
    client_id: str
    staff_id: str
    rating: int  # MIN_RATING..MAX_RATING
    created_at: DateTime
    comment: str | None = None
    preferences: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Notification:
    """An in-app notification addressed to one user."""
    user_id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool = False
    id: str | None = None
    created_at: DateTime | None = None
