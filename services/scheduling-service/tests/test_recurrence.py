from datetime import date, time

import pytest

from scheduling_service.domain import Occurrence, RecurrenceRule
from scheduling_service.errors import ValidationError
from scheduling_service.recurrence import count_occurrences, expand, validate_rule


def rule(weekdays, start, end, start_time=time(18, 0), end_time=time(20, 0)):
    return RecurrenceRule(
        weekdays=frozenset(weekdays),
        start_date=start,
        end_date=end,
        start_time=start_time,
        end_time=end_time,
    )


def test_monday_wednesday_over_two_weeks():
    r = rule({1, 3}, date(2026, 1, 5), date(2026, 1, 16))

    assert expand(r) == [
        Occurrence(date(2026, 1, 5), time(18, 0), time(20, 0)),
        Occurrence(date(2026, 1, 7), time(18, 0), time(20, 0)),
        Occurrence(date(2026, 1, 12), time(18, 0), time(20, 0)),
        Occurrence(date(2026, 1, 14), time(18, 0), time(20, 0)),
    ]


def test_expansion_is_deterministic():
    r = rule({2, 4, 6}, date(2026, 2, 1), date(2026, 4, 30))
    assert expand(r) == expand(r)
    assert count_occurrences(r) == len(expand(r))


def test_sunday_is_day_seven():
    r = rule({7}, date(2026, 1, 5), date(2026, 1, 18))
    assert [o.booking_date for o in expand(r)] == [date(2026, 1, 11), date(2026, 1, 18)]


def test_crosses_year_boundary():
    r = rule({3}, date(2025, 12, 29), date(2026, 1, 8))
    assert [o.booking_date for o in expand(r)] == [date(2025, 12, 31), date(2026, 1, 7)]


def test_both_range_ends_are_inclusive():
    r = rule({1, 5}, date(2026, 1, 5), date(2026, 1, 9))
    assert [o.booking_date for o in expand(r)] == [date(2026, 1, 5), date(2026, 1, 9)]


def test_single_day_range():
    assert len(expand(rule({1}, date(2026, 1, 5), date(2026, 1, 5)))) == 1

    with pytest.raises(ValidationError):
        validate_rule(rule({2}, date(2026, 1, 5), date(2026, 1, 5)))


def test_anchor_times_override_rule_times():
    r = rule({1, 3}, date(2026, 1, 5), date(2026, 1, 7))
    occurrences = expand(r, time(9, 0), time(10, 30))
    assert {(o.start_time, o.end_time) for o in occurrences} == {(time(9, 0), time(10, 30))}


def test_empty_weekday_set_rejected():
    with pytest.raises(ValidationError):
        validate_rule(rule(set(), date(2026, 1, 5), date(2026, 1, 16)))


@pytest.mark.parametrize("weekday", [0, 8])
def test_weekday_outside_iso_range_rejected(weekday):
    with pytest.raises(ValidationError):
        expand(rule({1, weekday}, date(2026, 1, 5), date(2026, 1, 16)))


def test_end_date_before_start_date_rejected():
    with pytest.raises(ValidationError):
        validate_rule(rule({1}, date(2026, 1, 16), date(2026, 1, 5)))


@pytest.mark.parametrize("end", [time(18, 0), time(17, 0)])
def test_end_time_not_after_start_rejected(end):
    with pytest.raises(ValidationError):
        expand(rule({1}, date(2026, 1, 5), date(2026, 1, 16), end_time=end))


def test_range_without_selected_weekday_is_an_error():
    # Tue..Thu never hits a Saturday
    with pytest.raises(ValidationError):
        validate_rule(rule({6}, date(2026, 1, 6), date(2026, 1, 8)))


@pytest.mark.parametrize(
    "start, end",
    [
        (time(18, 0, 0), time(18, 0, 30)),
        (time(18, 0, 30), time(19, 0)),
        (time(9, 15, 0, 250000), time(10, 45, 59)),
    ],
)
def test_sub_minute_anchor_times_are_kept_exactly(start, end):
    occurrences = expand(rule({1, 3}, date(2026, 1, 5), date(2026, 1, 16)), start, end)

    assert len(occurrences) == 4
    for occ in occurrences:
        assert (occ.start_time, occ.end_time) == (start, end)
        assert occ.end_time > occ.start_time
