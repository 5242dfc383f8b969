from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from tutorclub.app.core.errors import ValidationFailed
from tutorclub.app.core.time import (
    month_bounds_utc,
    month_end,
    month_of,
    month_start,
    next_month_start,
    utc_now,
    validate_month,
)


def test_utc_now_is_timezone_aware_utc():
    value = utc_now()
    assert value.tzinfo is UTC


@pytest.mark.parametrize("month", ["2030-1", "2030-13", "30-01", "", None, "2030/01"])
def test_validate_month_rejects_bad_format(month):
    with pytest.raises(ValidationFailed):
        validate_month(month)


def test_month_boundaries():
    assert month_start("2030-02") == date(2030, 2, 1)
    assert month_end("2028-02") == date(2028, 2, 29)
    assert next_month_start("2030-12") == date(2031, 1, 1)
    start, end = month_bounds_utc("2030-03")
    assert start == datetime(2030, 3, 1, tzinfo=UTC)
    assert end == datetime(2030, 4, 1, tzinfo=UTC)


def test_month_of_uses_utc_for_aware_datetimes():
    late_evening = datetime(2030, 2, 28, 20, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert month_of(late_evening) == "2030-03"
    assert month_of(datetime(2030, 2, 28, 23, 59)) == "2030-02"
    assert month_of(date(2030, 7, 15)) == "2030-07"
