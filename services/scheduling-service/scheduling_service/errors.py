class SchedulingError(Exception):
    pass


class ValidationError(SchedulingError):
    """Malformed request; raised before the store is touched."""


class InvariantError(SchedulingError):
    """Status change or field combination the booking lifecycle forbids."""


class BookingNotFound(SchedulingError):
    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class ConflictError(SchedulingError):
    """
    One or more candidate windows overlap an active booking on the same resource.

    `conflicts` holds every colliding pair so callers can show them all at once.
    """

    def __init__(self, conflicts):
        self.conflicts = list(conflicts)
        ids = sorted({c.booking_id for c in self.conflicts})
        super().__init__(f"Resource conflict with booking(s) {ids}")

    @property
    def booking_ids(self) -> list[int]:
        return sorted({c.booking_id for c in self.conflicts})


class StoreError(SchedulingError):
    pass


class StoreConflictError(StoreError):
    """The storage layer refused an overlapping write (concurrent writer won)."""
