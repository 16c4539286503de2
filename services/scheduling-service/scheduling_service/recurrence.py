from datetime import datetime, time

from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, rrule

from .domain import Occurrence, RecurrenceRule
from .errors import ValidationError

# ISO weekday numbers used across the service -> dateutil weekday constants.
# dateutil counts Monday as 0; nothing outside this module should.
ISO_WEEKDAYS = {1: MO, 2: TU, 3: WE, 4: TH, 5: FR, 6: SA, 7: SU}


def validate_window(start_time: time, end_time: time):
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")


def _check_shape(rule: RecurrenceRule):
    if not rule.weekdays:
        raise ValidationError("recurring booking needs at least one weekday")

    bad = sorted(d for d in rule.weekdays if d not in ISO_WEEKDAYS)
    if bad:
        raise ValidationError(f"weekdays must be between 1 (Monday) and 7 (Sunday), got {bad}")

    if rule.end_date < rule.start_date:
        raise ValidationError("recurring end date must not be before the start date")

    validate_window(rule.start_time, rule.end_time)


def _days(rule: RecurrenceRule) -> rrule:
    # compare on whole days: both ends pinned to midnight, times re-applied later
    return rrule(
        DAILY,
        dtstart=datetime.combine(rule.start_date, time.min),
        until=datetime.combine(rule.end_date, time.min),
        byweekday=[ISO_WEEKDAYS[d] for d in sorted(rule.weekdays)],
    )


def expand(
    rule: RecurrenceRule,
    start_time: time | None = None,
    end_time: time | None = None,
) -> list[Occurrence]:
    """
    Materialize a rule into concrete occurrences, ascending by date.

    start_time/end_time override the rule's own times (the anchor booking's
    window). Windows never cross midnight, so every included day gets the
    anchor's exact start and end, seconds included.
    """
    _check_shape(rule)

    anchor_start = rule.start_time if start_time is None else start_time
    anchor_end = rule.end_time if end_time is None else end_time
    validate_window(anchor_start, anchor_end)

    return [Occurrence(day.date(), anchor_start, anchor_end) for day in _days(rule)]


def count_occurrences(rule: RecurrenceRule) -> int:
    _check_shape(rule)
    return _days(rule).count()


def validate_rule(rule: RecurrenceRule):
    """Reject any rule that cannot produce at least one booking."""
    _check_shape(rule)
    if count_occurrences(rule) == 0:
        raise ValidationError(
            f"no selected weekday falls between {rule.start_date} and {rule.end_date}"
        )
