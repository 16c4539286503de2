import logging
from datetime import date

from pydantic import ValidationError as PydanticValidationError

from shared.events import build_event, to_json

from .conflicts import find_conflicts
from .domain import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingStatus,
    RecurrenceRule,
    Recurrence,
    Recurring,
    Single,
)
from .errors import BookingNotFound, ConflictError, InvariantError, ValidationError
from .recurrence import expand, validate_rule, validate_window

logger = logging.getLogger(__name__)

EVENT_SOURCE = "scheduling-service"


def check_transition(current: BookingStatus, new: BookingStatus):
    if new == current:
        return
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvariantError(f"cannot change status from {current.value} to {new.value}")


def check_booking(booking: Booking):
    """Window and lifecycle checks that need no store access."""
    validate_window(booking.start_time, booking.end_time)
    if booking.estimated_attendance is not None and booking.estimated_attendance < 0:
        raise ValidationError("estimated_attendance must not be negative")
    if booking.status == BookingStatus.CONFIRMED and booking.resource_id is None:
        raise InvariantError("a booking cannot be confirmed without a resource")


def materialize(template: Booking, rule: RecurrenceRule) -> list[Booking]:
    """One unsaved booking per occurrence, copying every field of the template."""
    validate_rule(rule)
    check_booking(template)
    return [
        template.model_copy(
            update={
                "id": None,
                "booking_date": occ.booking_date,
                "start_time": occ.start_time,
                "end_time": occ.end_time,
            }
        )
        for occ in expand(rule, template.start_time, template.end_time)
    ]


class SeriesCoordinator:
    """
    Create / convert / update / delete bookings against a BookingStore.

    Every write runs inside one store transaction; a ConflictError or any
    validation failure leaves the store exactly as it was.
    """

    def __init__(self, store, publisher=None):
        self.store = store
        self.publisher = publisher

    async def _publish(self, event_type: str, data: dict):
        if self.publisher is None:
            return
        try:
            event = build_event(event_type, data, source=EVENT_SOURCE)
            await self.publisher.publish(event_type, to_json(event))
        except Exception as e:
            # the write is already committed; notification is best effort
            logger.warning("failed to publish %s: %s", event_type, e)

    async def get(self, booking_id: int) -> Booking:
        booking = await self.store.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def list_bookings(self, resource_id: int, start_date: date, end_date: date) -> list[Booking]:
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        return await self.store.find_by_resource_and_window(resource_id, start_date, end_date)

    async def create(self, booking: Booking, recurrence: Recurrence | None = None) -> Booking | list[Booking]:
        recurrence = recurrence or Single()

        if isinstance(recurrence, Recurring):
            batch = materialize(booking, recurrence.rule)
        else:
            check_booking(booking)
            batch = [booking.model_copy(update={"id": None})]

        async with self.store.transaction():
            conflicts = await find_conflicts(self.store, batch)
            if conflicts:
                raise ConflictError(conflicts)
            created = await self.store.insert_many(batch)

        if isinstance(recurrence, Recurring):
            logger.info(
                "created %d recurring booking(s) %s..%s on resource %s",
                len(created), created[0].booking_date, created[-1].booking_date, booking.resource_id,
            )
            await self._publish(
                "booking.series_created",
                {"bookings": [b.model_dump(mode="json") for b in created]},
            )
            return created

        logger.info("created booking %s on %s", created[0].id, created[0].booking_date)
        await self._publish("booking.created", {"booking": created[0].model_dump(mode="json")})
        return created[0]

    async def convert_to_recurring(self, booking_id: int, booking: Booking, rule: RecurrenceRule) -> list[Booking]:
        """
        Replace a single booking with a freshly expanded series.

        The delete and the inserts share one transaction: the store ends up
        with either the original booking or the whole new series.
        """
        batch = materialize(booking, rule)

        async with self.store.transaction():
            original = await self.store.get(booking_id)
            if original is None:
                raise BookingNotFound(booking_id)
            # a cancelled booking stays on record; it is never replaced
            if original.status == BookingStatus.CANCELLED:
                raise InvariantError(f"booking {booking_id} is cancelled and cannot become a series")
            check_transition(original.status, booking.status)

            conflicts = await find_conflicts(self.store, batch, exclude_ids={booking_id})
            if conflicts:
                raise ConflictError(conflicts)

            await self.store.delete_by_id(booking_id)
            created = await self.store.insert_many(batch)

        logger.info("converted booking %s into %d recurring booking(s)", booking_id, len(created))
        await self._publish(
            "booking.converted",
            {
                "replaced_booking_id": booking_id,
                "bookings": [b.model_dump(mode="json") for b in created],
            },
        )
        return created

    async def update(self, booking_id: int, changes: dict) -> Booking:
        changes = {k: v for k, v in changes.items() if k != "id"}

        async with self.store.transaction():
            current = await self.store.get(booking_id)
            if current is None:
                raise BookingNotFound(booking_id)

            try:
                updated = Booking.model_validate({**current.model_dump(), **changes, "id": booking_id})
            except PydanticValidationError as e:
                raise ValidationError(f"invalid booking changes: {e}") from e
            check_transition(current.status, updated.status)
            check_booking(updated)

            conflicts = await find_conflicts(self.store, [updated], exclude_ids={booking_id})
            if conflicts:
                raise ConflictError(conflicts)
            saved = await self.store.update(updated)

        cancelled = saved.status == BookingStatus.CANCELLED and current.status != BookingStatus.CANCELLED
        event_type = "booking.cancelled" if cancelled else "booking.updated"
        logger.info("%s booking %s", "cancelled" if cancelled else "updated", booking_id)
        await self._publish(
            event_type,
            {"booking": saved.model_dump(mode="json"), "previous": current.model_dump(mode="json")},
        )
        return saved

    async def delete(self, booking_id: int) -> None:
        async with self.store.transaction():
            booking = await self.store.get(booking_id)
            if booking is None:
                raise BookingNotFound(booking_id)
            await self.store.delete_by_id(booking_id)

        logger.info("deleted booking %s", booking_id)
        await self._publish("booking.deleted", {"booking": booking.model_dump(mode="json")})
