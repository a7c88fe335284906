"""Tests for spine_delayed.core.timestamps."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from spine_delayed.core.errors import InvalidTimestampError
from spine_delayed.core.timestamps import now, to_delay, to_timestamp


class TestToTimestamp:
    def test_int_passes_through(self):
        assert to_timestamp(1700000000) == 1700000000

    def test_negative_int(self):
        assert to_timestamp(-5) == -5

    def test_integral_float(self):
        assert to_timestamp(1700000000.0) == 1700000000

    @pytest.mark.parametrize("text, expected", [("1700000000", 1700000000), (" 42 ", 42), ("+7", 7), ("-3", -3)])
    def test_digit_strings(self, text, expected):
        assert to_timestamp(text) == expected

    def test_aware_datetime(self):
        moment = datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)
        assert to_timestamp(moment) == 1700000000

    def test_datetime_with_offset(self):
        moment = datetime(2023, 11, 15, 0, 13, 20, tzinfo=timezone(timedelta(hours=2)))
        assert to_timestamp(moment) == 1700000000

    def test_datetime_drops_sub_second_precision(self):
        moment = datetime(2023, 11, 14, 22, 13, 20, 999999, tzinfo=UTC)
        assert to_timestamp(moment) == 1700000000

    def test_date_is_local_midnight(self):
        day = date(2024, 1, 2)
        assert to_timestamp(day) == int(datetime(2024, 1, 2).timestamp())

    @pytest.mark.parametrize("value", [1.5, "abc", "1.5", "", "+-5", None, [1], True, object()])
    def test_rejected_values(self, value):
        with pytest.raises(InvalidTimestampError) as exc_info:
            to_timestamp(value)
        assert exc_info.value.message == (
            "The supplied timestamp value could not be converted to an integer."
        )


class TestToDelay:
    def test_seconds(self):
        assert to_delay(30) == 30
        assert to_delay("30") == 30

    def test_datetime_is_not_a_delay(self):
        with pytest.raises(InvalidTimestampError):
            to_delay(datetime.now(UTC))

    def test_non_integer_delay(self):
        with pytest.raises(InvalidTimestampError):
            to_delay(0.25)


def test_now_is_whole_seconds():
    value = now()
    assert isinstance(value, int)
    assert abs(value - datetime.now(UTC).timestamp()) < 5
