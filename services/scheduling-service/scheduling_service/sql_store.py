import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .conflicts import detect
from .domain import Booking, BookingStatus, BookingType
from .errors import StoreConflictError, StoreError
from .models import BookingRow

logger = logging.getLogger(__name__)

# pg_advisory_xact_lock(namespace, resource_id); namespace keeps these keys
# apart from other advisory lock users in the same database
ADVISORY_LOCK_NAMESPACE = 4201

EXCLUSION_VIOLATION = "23P01"


def to_domain(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        resource_id=row.resource_id,
        booking_date=row.booking_date,
        start_time=row.start_time,
        end_time=row.end_time,
        team_ids=row.team_ids or [],
        booking_type=BookingType(row.booking_type),
        status=BookingStatus(row.status),
        description=row.description or "",
        notes=row.notes or "",
        other_participants=row.other_participants,
        estimated_attendance=row.estimated_attendance,
    )


def _apply(row: BookingRow, booking: Booking) -> BookingRow:
    row.resource_id = booking.resource_id
    row.booking_date = booking.booking_date
    row.start_time = booking.start_time
    row.end_time = booking.end_time
    row.starts_at = booking.starts_at
    row.ends_at = booking.ends_at
    row.team_ids = list(booking.team_ids)
    row.booking_type = booking.booking_type.value
    row.status = booking.status.value
    row.description = booking.description
    row.notes = booking.notes
    row.other_participants = booking.other_participants
    row.estimated_attendance = booking.estimated_attendance
    return row


def _sqlstate(e: IntegrityError) -> str | None:
    orig = e.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class SqlBookingStore:
    """
    Booking store on an async SQLAlchemy session factory.

    On PostgreSQL every write takes a transaction-scoped advisory lock per
    resource and re-checks overlaps before flushing; the exclusion constraint
    created by the migration is the last line. On SQLite the engine opens
    every transaction with BEGIN IMMEDIATE (see shared.database), so writers
    run one at a time and the re-check sees everything committed before it.
    """

    def __init__(self, sessionmaker: async_sessionmaker):
        self._sessionmaker = sessionmaker
        self._session: ContextVar[AsyncSession | None] = ContextVar(f"booking_session_{id(self)}", default=None)

    @asynccontextmanager
    async def transaction(self):
        if self._session.get() is not None:
            yield
            return

        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    token = self._session.set(session)
                    try:
                        yield
                    finally:
                        self._session.reset(token)
        except IntegrityError as e:
            if _sqlstate(e) == EXCLUSION_VIOLATION:
                logger.warning("exclusion constraint rejected an overlapping booking: %s", e.orig)
                raise StoreConflictError("resource already holds an overlapping booking") from e
            raise StoreError(f"integrity error: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    @asynccontextmanager
    async def _scope(self):
        session = self._session.get()
        if session is not None:
            yield session
            return
        async with self.transaction():
            yield self._session.get()

    async def _lock_resources(self, session: AsyncSession, resource_ids):
        if session.bind.dialect.name != "postgresql":
            return
        # fixed order so two writers never wait on each other crosswise
        for resource_id in sorted(resource_ids):
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:ns, :rid)"),
                {"ns": ADVISORY_LOCK_NAMESPACE, "rid": resource_id},
            )

    async def _recheck(self, session: AsyncSession, bookings: list[Booking]):
        spans = defaultdict(list)
        for b in bookings:
            if b.resource_id is not None and b.is_active:
                spans[b.resource_id].append(b.booking_date)
        if not spans:
            return

        await self._lock_resources(session, spans.keys())

        existing = []
        for resource_id, days in spans.items():
            existing.extend(await self._query_window(session, resource_id, min(days), max(days)))

        clashes = detect(bookings, existing)
        if clashes:
            raise StoreConflictError(
                f"resource already holds overlapping booking(s) {sorted({c.booking_id for c in clashes})}"
            )

    async def _query_window(self, session: AsyncSession, resource_id: int, start_date: date, end_date: date):
        res = await session.execute(
            select(BookingRow)
            .where(
                BookingRow.resource_id == resource_id,
                BookingRow.booking_date >= start_date,
                BookingRow.booking_date <= end_date,
            )
            .order_by(BookingRow.starts_at, BookingRow.id)
        )
        return [to_domain(row) for row in res.scalars().all()]

    async def get(self, booking_id: int) -> Booking | None:
        async with self._scope() as session:
            row = await session.get(BookingRow, booking_id)
            return to_domain(row) if row else None

    async def find_by_resource_and_window(self, resource_id: int, start_date: date, end_date: date) -> list[Booking]:
        async with self._scope() as session:
            return await self._query_window(session, resource_id, start_date, end_date)

    async def insert_many(self, bookings: list[Booking]) -> list[Booking]:
        async with self._scope() as session:
            await self._recheck(session, bookings)
            rows = [_apply(BookingRow(), b) for b in bookings]
            session.add_all(rows)
            await session.flush()
            return [to_domain(row) for row in rows]

    async def update(self, booking: Booking) -> Booking:
        async with self._scope() as session:
            row = await session.get(BookingRow, booking.id)
            if row is None:
                raise StoreError(f"booking {booking.id} does not exist")
            await self._recheck(session, [booking])
            _apply(row, booking)
            await session.flush()
            return to_domain(row)

    async def delete_by_id(self, booking_id: int) -> None:
        async with self._scope() as session:
            row = await session.get(BookingRow, booking_id)
            if row is None:
                raise StoreError(f"booking {booking_id} does not exist")
            await session.delete(row)
            await session.flush()
