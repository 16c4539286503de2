from datetime import date, datetime, time
from enum import Enum
from typing import Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, field_validator


class BookingType(str, Enum):
    PRACTICE = "Practice"
    GAME = "Game"
    MEETING = "Meeting"
    OTHER = "Other"


class BookingStatus(str, Enum):
    PLANNED = "Planned"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


# Planned -> Confirmed -> Cancelled; Cancelled is terminal.
ALLOWED_TRANSITIONS = {
    BookingStatus.PLANNED: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


class Booking(BaseModel):
    """A single dated, timed occupation of a resource."""

    id: int | None = None
    resource_id: int | None = None

    booking_date: date
    start_time: time
    end_time: time

    team_ids: list[int] = []
    booking_type: BookingType = BookingType.PRACTICE
    status: BookingStatus = BookingStatus.PLANNED

    description: str = ""
    notes: str = ""
    other_participants: str | None = None
    estimated_attendance: int | None = None

    @field_validator("team_ids")
    @classmethod
    def _normalize_teams(cls, v: list[int]) -> list[int]:
        # team membership is a set; keep a stable order for storage and output
        return sorted(set(v))

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED


class RecurrenceRule(BaseModel):
    """
    Weekly pattern: ISO weekdays (Monday=1 .. Sunday=7) inside an inclusive
    date range, each occurrence running start_time..end_time.
    """

    model_config = ConfigDict(frozen=True)

    weekdays: frozenset[int]
    start_date: date
    end_date: date
    start_time: time
    end_time: time


class Occurrence(NamedTuple):
    booking_date: date
    start_time: time
    end_time: time


class Single(BaseModel):
    kind: Literal["single"] = "single"


class Recurring(BaseModel):
    kind: Literal["recurring"] = "recurring"
    rule: RecurrenceRule


Recurrence = Single | Recurring


class Conflict(BaseModel):
    """An existing active booking colliding with one candidate window."""

    booking_id: int
    resource_id: int
    booking_date: date
    start_time: time
    end_time: time

    candidate_date: date
    candidate_start: time
    candidate_end: time
