from datetime import date, time
from typing import List

from pydantic import BaseModel

from .domain import Booking, BookingStatus, BookingType, Conflict, Recurrence, RecurrenceRule, Recurring, Single
from .errors import ValidationError


def resolve_recurrence(
    recurring_days: list[int] | None,
    recurring_end_date: date | None,
    anchor: Booking,
) -> Recurrence:
    """
    Decide once, at the request boundary, whether this is a single booking
    or a weekly series anchored on `anchor`.

    Both recurrence fields or neither; anything else is a malformed request.
    """
    if recurring_days is None and recurring_end_date is None:
        return Single()
    if recurring_days is None or recurring_end_date is None:
        raise ValidationError("recurring_days and recurring_end_date must be given together")

    return Recurring(
        rule=RecurrenceRule(
            weekdays=frozenset(recurring_days),
            start_date=anchor.booking_date,
            end_date=recurring_end_date,
            start_time=anchor.start_time,
            end_time=anchor.end_time,
        )
    )


class BookingCreate(BaseModel):
    resource_id: int | None = None
    booking_date: date
    start_time: time
    end_time: time
    team_ids: List[int] = []
    booking_type: BookingType = BookingType.PRACTICE
    status: BookingStatus = BookingStatus.PLANNED
    description: str = ""
    notes: str = ""
    other_participants: str | None = None
    estimated_attendance: int | None = None

    # weekdays 1 (Monday) .. 7 (Sunday)
    recurring_days: List[int] | None = None
    recurring_end_date: date | None = None

    def to_booking(self) -> Booking:
        return Booking.model_validate(self.model_dump(exclude={"recurring_days", "recurring_end_date"}))

    def recurrence(self) -> Recurrence:
        return resolve_recurrence(self.recurring_days, self.recurring_end_date, self.to_booking())


class BookingUpdate(BaseModel):
    resource_id: int | None = None
    booking_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    team_ids: List[int] | None = None
    booking_type: BookingType | None = None
    status: BookingStatus | None = None
    description: str | None = None
    notes: str | None = None
    other_participants: str | None = None
    estimated_attendance: int | None = None

    recurring_days: List[int] | None = None
    recurring_end_date: date | None = None

    def changes(self) -> dict:
        """Only the fields the caller actually sent; resource_id may be cleared with null."""
        data = self.model_dump(exclude_unset=True, exclude={"recurring_days", "recurring_end_date"})
        nullable = {"resource_id", "other_participants", "estimated_attendance"}
        return {k: v for k, v in data.items() if v is not None or k in nullable}

    def apply_to(self, current: Booking) -> Booking:
        return Booking.model_validate({**current.model_dump(), **self.changes(), "id": current.id})

    def recurrence(self, anchor: Booking) -> Recurrence:
        return resolve_recurrence(self.recurring_days, self.recurring_end_date, anchor)


class BookingResponse(BaseModel):
    id: int
    resource_id: int | None = None
    booking_date: date
    start_time: time
    end_time: time
    team_ids: List[int]
    booking_type: BookingType
    status: BookingStatus
    description: str
    notes: str
    other_participants: str | None = None
    estimated_attendance: int | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls.model_validate(booking.model_dump())


class ConflictResponse(BaseModel):
    detail: str
    booking_ids: List[int]
    conflicts: List[Conflict]


class PreviewRequest(BaseModel):
    recurring_days: List[int]
    start_date: date
    recurring_end_date: date
    start_time: time
    end_time: time

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            weekdays=frozenset(self.recurring_days),
            start_date=self.start_date,
            end_date=self.recurring_end_date,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class PreviewOccurrence(BaseModel):
    booking_date: date
    start_time: time
    end_time: time


class PreviewResponse(BaseModel):
    count: int
    occurrences: List[PreviewOccurrence]
