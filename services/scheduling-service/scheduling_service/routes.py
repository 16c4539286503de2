from datetime import date

from fastapi import APIRouter, Depends, Response, status

from .coordinator import SeriesCoordinator
from .db import SessionLocal
from .domain import Recurring
from .publisher import publisher
from .recurrence import expand, validate_rule
from .schemas import (
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    PreviewOccurrence,
    PreviewRequest,
    PreviewResponse,
)
from .sql_store import SqlBookingStore

router = APIRouter()

coordinator = SeriesCoordinator(SqlBookingStore(SessionLocal), publisher)


def get_coordinator() -> SeriesCoordinator:
    return coordinator


@router.post(
    "/bookings",
    status_code=status.HTTP_201_CREATED,
    response_model=BookingResponse | list[BookingResponse],
)
async def create_booking(data: BookingCreate, svc: SeriesCoordinator = Depends(get_coordinator)):
    result = await svc.create(data.to_booking(), data.recurrence())
    if isinstance(result, list):
        return [BookingResponse.from_booking(b) for b in result]
    return BookingResponse.from_booking(result)


@router.get("/bookings", response_model=list[BookingResponse])
async def list_bookings(
    resource_id: int,
    start_date: date,
    end_date: date,
    svc: SeriesCoordinator = Depends(get_coordinator),
):
    bookings = await svc.list_bookings(resource_id, start_date, end_date)
    return [BookingResponse.from_booking(b) for b in bookings]


@router.post("/bookings/recurrence/preview", response_model=PreviewResponse)
async def preview_recurrence(data: PreviewRequest):
    """How many bookings a rule would create, and on which days."""
    rule = data.to_rule()
    validate_rule(rule)
    occurrences = [PreviewOccurrence(**occ._asdict()) for occ in expand(rule)]
    return PreviewResponse(count=len(occurrences), occurrences=occurrences)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, svc: SeriesCoordinator = Depends(get_coordinator)):
    return BookingResponse.from_booking(await svc.get(booking_id))


@router.put("/bookings/{booking_id}", response_model=BookingResponse | list[BookingResponse])
async def update_booking(booking_id: int, data: BookingUpdate, svc: SeriesCoordinator = Depends(get_coordinator)):
    current = await svc.get(booking_id)
    template = data.apply_to(current)
    recurrence = data.recurrence(template)

    if isinstance(recurrence, Recurring):
        created = await svc.convert_to_recurring(booking_id, template, recurrence.rule)
        return [BookingResponse.from_booking(b) for b in created]

    return BookingResponse.from_booking(await svc.update(booking_id, data.changes()))


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(booking_id: int, svc: SeriesCoordinator = Depends(get_coordinator)):
    await svc.delete(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
