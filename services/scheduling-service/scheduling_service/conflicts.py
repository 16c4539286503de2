import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable

from .domain import Booking, Conflict

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # half-open windows: touching ends are not an overlap
    return a_start < b_end and a_end > b_start


def detect(
    candidates: Iterable[Booking],
    existing: Iterable[Booking],
    exclude_ids: Iterable[int] = (),
) -> list[Conflict]:
    """
    Pure pairwise check of candidates against already stored bookings.

    Only active bookings sharing a resource id can collide; a candidate
    without a resource never conflicts.
    """
    exclude = set(exclude_ids)
    by_resource = defaultdict(list)
    for b in existing:
        if b.resource_id is None or not b.is_active or b.id in exclude:
            continue
        by_resource[b.resource_id].append(b)

    for group in by_resource.values():
        group.sort(key=lambda b: (b.starts_at, b.id or 0))

    found = []
    for cand in candidates:
        if cand.resource_id is None or not cand.is_active:
            continue
        for b in by_resource.get(cand.resource_id, ()):
            if b.id is not None and b.id == cand.id:
                continue
            if overlaps(b.starts_at, b.ends_at, cand.starts_at, cand.ends_at):
                found.append(
                    Conflict(
                        booking_id=b.id,
                        resource_id=b.resource_id,
                        booking_date=b.booking_date,
                        start_time=b.start_time,
                        end_time=b.end_time,
                        candidate_date=cand.booking_date,
                        candidate_start=cand.start_time,
                        candidate_end=cand.end_time,
                    )
                )
    return found


async def find_conflicts(store, candidates: Iterable[Booking], exclude_ids: Iterable[int] = ()) -> list[Conflict]:
    """
    Check every candidate window against the store in one pass.

    One store read per resource covering the candidates' whole date span;
    all colliding pairs are returned, never just the first.
    """
    candidates = [c for c in candidates if c.resource_id is not None and c.is_active]
    if not candidates:
        return []

    spans: dict[int, list] = {}
    for c in candidates:
        lo_hi = spans.get(c.resource_id)
        if lo_hi is None:
            spans[c.resource_id] = [c.booking_date, c.booking_date]
        else:
            lo_hi[0] = min(lo_hi[0], c.booking_date)
            lo_hi[1] = max(lo_hi[1], c.booking_date)

    existing = []
    for resource_id in sorted(spans):
        start_date, end_date = spans[resource_id]
        existing.extend(await store.find_by_resource_and_window(resource_id, start_date, end_date))

    conflicts = detect(candidates, existing, exclude_ids)
    if conflicts:
        logger.warning(
            "%d candidate window(s) collide with booking(s) %s",
            len(conflicts),
            sorted({c.booking_id for c in conflicts}),
        )
    return conflicts
