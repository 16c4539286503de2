import asyncio
import itertools
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date
from typing import AsyncContextManager, Protocol

from .conflicts import detect
from .domain import Booking
from .errors import StoreConflictError, StoreError


class BookingStore(Protocol):
    """
    Persistence boundary used by the coordinator.

    Implementations must make everything done inside `transaction()` atomic
    and must refuse overlapping active bookings on the same resource on their
    own (raising StoreConflictError); the coordinator's pre-check is only a
    fast path.
    """

    def transaction(self) -> AsyncContextManager[None]: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def find_by_resource_and_window(
        self, resource_id: int, start_date: date, end_date: date
    ) -> list[Booking]: ...

    async def insert_many(self, bookings: list[Booking]) -> list[Booking]: ...

    async def update(self, booking: Booking) -> Booking: ...

    async def delete_by_id(self, booking_id: int) -> None: ...


class _UnitOfWork:
    def __init__(self):
        self.written: dict[int, Booking] = {}
        self.inserted: set[int] = set()
        self.deleted: set[int] = set()


class InMemoryBookingStore:
    """
    Process-local store for development and tests.

    Writes are staged per transaction and applied under a commit lock, where
    they are re-checked against committed bookings. Two requests that both
    passed the coordinator's check cannot both commit overlapping bookings.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._rows: dict[int, Booking] = {}
        self._ids = itertools.count(1)
        self._commit_lock = asyncio.Lock()
        self._tx: ContextVar[_UnitOfWork | None] = ContextVar(f"booking_tx_{id(self)}", default=None)

    @asynccontextmanager
    async def transaction(self):
        if self._tx.get() is not None:
            # join the outer unit of work
            yield
            return

        uow = _UnitOfWork()
        token = self._tx.set(uow)
        try:
            yield
        finally:
            self._tx.reset(token)
        await self._commit(uow)

    async def _commit(self, uow: _UnitOfWork):
        async with self._commit_lock:
            for booking_id in uow.deleted | (uow.written.keys() - uow.inserted):
                if booking_id not in self._rows:
                    raise StoreError(f"booking {booking_id} was removed by a concurrent writer")

            written = list(uow.written.values())
            untouched = [
                b for b in self._rows.values()
                if b.id not in uow.deleted and b.id not in uow.written
            ]
            clashes = detect(written, untouched + written)
            if clashes:
                raise StoreConflictError(
                    f"resource already holds overlapping booking(s) {sorted({c.booking_id for c in clashes})}"
                )

            for booking_id in uow.deleted:
                del self._rows[booking_id]
            self._rows.update(uow.written)

    def _visible(self) -> dict[int, Booking]:
        uow = self._tx.get()
        if uow is None:
            return dict(self._rows)
        rows = {k: v for k, v in self._rows.items() if k not in uow.deleted}
        rows.update(uow.written)
        return rows

    async def _io(self):
        # every store call is a suspension point, as with a real database
        await asyncio.sleep(self.latency)

    async def get(self, booking_id: int) -> Booking | None:
        await self._io()
        booking = self._visible().get(booking_id)
        return booking.model_copy() if booking else None

    async def find_by_resource_and_window(self, resource_id: int, start_date: date, end_date: date) -> list[Booking]:
        await self._io()
        found = [
            b.model_copy()
            for b in self._visible().values()
            if b.resource_id == resource_id and start_date <= b.booking_date <= end_date
        ]
        found.sort(key=lambda b: (b.starts_at, b.id))
        return found

    async def list_all(self) -> list[Booking]:
        return sorted((b.model_copy() for b in self._visible().values()), key=lambda b: (b.starts_at, b.id))

    async def insert_many(self, bookings: list[Booking]) -> list[Booking]:
        async with self.transaction():
            await self._io()
            uow = self._tx.get()
            created = []
            for booking in bookings:
                row = booking.model_copy(update={"id": next(self._ids)})
                uow.written[row.id] = row
                uow.inserted.add(row.id)
                created.append(row.model_copy())
            return created

    async def update(self, booking: Booking) -> Booking:
        async with self.transaction():
            await self._io()
            if booking.id not in self._visible():
                raise StoreError(f"booking {booking.id} does not exist")
            self._tx.get().written[booking.id] = booking.model_copy()
            return booking.model_copy()

    async def delete_by_id(self, booking_id: int) -> None:
        async with self.transaction():
            await self._io()
            if booking_id not in self._visible():
                raise StoreError(f"booking {booking_id} does not exist")
            uow = self._tx.get()
            uow.written.pop(booking_id, None)
            if booking_id in uow.inserted:
                uow.inserted.discard(booking_id)
            else:
                uow.deleted.add(booking_id)
