from datetime import datetime, timedelta, timezone

import pytest

from possync.time_utils import as_naive_utc, later_than, parse_iso_datetime, to_millis, to_utc_z, utcnow


def test_to_utc_z_keeps_milliseconds():
    assert to_utc_z(datetime(2024, 3, 5, 10, 15, 0, 123456)) == "2024-03-05T10:15:00.123Z"
    assert to_utc_z(None) is None


def test_parse_normalizes_to_naive_utc():
    assert parse_iso_datetime("2024-03-05T18:15:00+08:00") == datetime(2024, 3, 5, 10, 15)
    assert parse_iso_datetime("2024-03-05T10:15:00Z") == datetime(2024, 3, 5, 10, 15)
    assert parse_iso_datetime("  ") is None
    with pytest.raises(ValueError):
        parse_iso_datetime("yesterday")


@pytest.mark.parametrize("value", [None, "", "garbage", {}])
def test_to_millis_treats_missing_as_zero(value):
    assert to_millis(value) == 0.0


def test_to_millis_orders_wire_timestamps():
    assert to_millis("2024-03-05T10:15:00.001Z") > to_millis("2024-03-05T10:15:00.000Z")
    assert to_millis("2024-03-05T18:15:00+08:00") == to_millis("2024-03-05T10:15:00Z")
    assert to_millis(1709633700000) == 1709633700000.0


def test_as_naive_utc():
    aware = datetime(2024, 3, 5, 18, 15, tzinfo=timezone(timedelta(hours=8)))
    assert as_naive_utc(aware) == datetime(2024, 3, 5, 10, 15)
    assert as_naive_utc(None) is None


def test_later_than_future_value():
    future = datetime(2999, 1, 1, 0, 0, 0, 123456)
    assert later_than(future) == datetime(2999, 1, 1, 0, 0, 0, 124000)


def test_later_than_past_value_is_now():
    result = later_than(datetime(2000, 1, 1))
    assert result.microsecond % 1000 == 0
    assert utcnow() - result < timedelta(seconds=5)
