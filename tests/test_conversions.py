from datetime import datetime, timedelta, timezone

import pytest

from datespan import (
    Date,
    DateError,
    DateTime,
    DateTimeError,
    InvalidUtc,
    ParseFromTimestamp,
    SpanBuilder,
    Time,
    TimeError,
    Timestamp,
    TimestampMicro,
    TimestampMilli,
    TimestampNano,
)


class TestDateToDateTime:
    def test_midnight(self):
        dt = Date(2023, 10, 9).as_datetime()
        assert dt == DateTime(2023, 10, 9, 0, 0, 0)

    def test_round_trip(self):
        d = Date(2023, 10, 9)
        assert d.as_datetime().as_date() == d

    def test_uses_default_datetime_format(self):
        dt = Date(2023, 10, 9).format("%d/%m/%Y").as_datetime()
        assert dt.display_format == "%Y-%m-%d %H:%M:%S"
        assert str(dt) == "2023-10-09 00:00:00"


class TestTimeToDateTime:
    def test_epoch_date(self):
        dt = Time(10, 30, 15).as_datetime()
        assert dt == DateTime(1970, 1, 1, 10, 30, 15)

    def test_round_trip(self):
        t = Time(10, 30, 15)
        assert t.as_datetime().as_time() == t


class TestProjections:
    def test_as_date(self):
        dt = DateTime(2023, 10, 9, 1, 2, 3).format("%c")
        d = dt.as_date()
        assert d == Date(2023, 10, 9)
        assert d.display_format == "%Y-%m-%d"

    def test_as_time(self):
        dt = DateTime(2023, 10, 9, 1, 2, 3).format("%c")
        t = dt.as_time()
        assert t == Time(1, 2, 3)
        assert t.display_format == "%H:%M:%S"

    def test_follow_registry(self):
        SpanBuilder.builder().date_format("%d.%m.%Y").time_format(
            "%H.%M"
        ).build()
        dt = DateTime(2023, 10, 9, 1, 2, 3)
        assert str(dt.as_date()) == "09.10.2023"
        assert str(dt.as_time()) == "01.02"


class TestFromTimestamp:
    @pytest.mark.parametrize(
        "ts, expected",
        [
            (0, DateTime(1970, 1, 1)),
            (1_700_000_000, DateTime(2023, 11, 14, 22, 13, 20)),
            (-1, DateTime(1969, 12, 31, 23, 59, 59)),
            (Timestamp(1_700_000_000), DateTime(2023, 11, 14, 22, 13, 20)),
            (
                TimestampMilli(1_700_000_000_999),
                DateTime(2023, 11, 14, 22, 13, 20),
            ),
            (
                TimestampMicro(1_700_000_000_999_999),
                DateTime(2023, 11, 14, 22, 13, 20),
            ),
            (
                TimestampNano(1_700_000_000_999_999_999),
                DateTime(2023, 11, 14, 22, 13, 20),
            ),
            # sub-second parts are truncated toward zero
            (TimestampMilli(-1_500), DateTime(1969, 12, 31, 23, 59, 59)),
            (TimestampMilli(-999), DateTime(1970, 1, 1)),
        ],
    )
    def test_valid(self, ts, expected):
        dt = DateTime.from_timestamp(ts)
        assert dt == expected
        assert dt.display_format == "%Y-%m-%d %H:%M:%S"

    def test_helpers(self):
        expected = DateTime(2023, 11, 14, 22, 13, 20)
        assert DateTime.from_timestamp_millis(1_700_000_000_123) == expected
        assert (
            DateTime.from_timestamp_micros(1_700_000_000_123_456) == expected
        )
        assert (
            DateTime.from_timestamp_nanos(1_700_000_000_123_456_789)
            == expected
        )

    @pytest.mark.parametrize(
        "ts",
        [
            10**12,
            -(10**12),
            2**63,
            TimestampMilli(10**15),
            TimestampNano(-(10**21)),
        ],
    )
    def test_out_of_range(self, ts):
        with pytest.raises(DateTimeError) as exc_info:
            DateTime.from_timestamp(ts)
        assert isinstance(exc_info.value.cause, ParseFromTimestamp)

    def test_round_trip(self):
        dt = DateTime(2023, 10, 9, 1, 2, 3)
        assert DateTime.from_timestamp(dt.timestamp()) == dt


def test_timestamp_seconds():
    assert Timestamp(5).seconds() == 5
    assert TimestampMilli(1_999).seconds() == 1
    assert TimestampMilli(-1_999).seconds() == -1
    assert TimestampMicro(2_000_000).seconds() == 2
    assert TimestampNano(-3_000_000_000).seconds() == -3
    assert repr(TimestampNano(5)) == "TimestampNano(5)"


class TestUtc:
    def test_datetime_as_utc(self):
        assert DateTime(2023, 10, 9, 1).as_utc() == datetime(
            2023, 10, 9, 1, tzinfo=timezone.utc
        )

    def test_date_as_utc(self):
        assert Date(2023, 10, 9).as_utc() == datetime(
            2023, 10, 9, tzinfo=timezone.utc
        )

    def test_time_as_utc(self):
        assert Time(10, 30).as_utc() == datetime(
            1970, 1, 1, 10, 30, tzinfo=timezone.utc
        )

    def test_datetime_from_utc(self):
        d = datetime(2023, 10, 9, 3, tzinfo=timezone(timedelta(hours=2)))
        assert DateTime.from_utc(d) == DateTime(2023, 10, 9, 1)

    def test_date_from_utc(self):
        d = datetime(2023, 10, 9, 1, tzinfo=timezone(timedelta(hours=2)))
        assert Date.from_utc(d) == Date(2023, 10, 8)

    def test_time_from_utc(self):
        d = datetime(2023, 10, 9, 1, 30, tzinfo=timezone(timedelta(hours=2)))
        assert Time.from_utc(d) == Time(23, 30)

    def test_round_trip(self):
        dt = DateTime(2023, 10, 9, 1, 2, 3)
        assert DateTime.from_utc(dt.as_utc()) == dt

    @pytest.mark.parametrize(
        "cls, error", [(Date, DateError), (Time, TimeError), (DateTime, DateTimeError)]
    )
    def test_naive(self, cls, error):
        with pytest.raises(error) as exc_info:
            cls.from_utc(datetime(2023, 10, 9))
        assert isinstance(exc_info.value.cause, InvalidUtc)

    def test_out_of_range(self):
        d = datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))
        with pytest.raises(DateTimeError) as exc_info:
            DateTime.from_utc(d)
        assert isinstance(exc_info.value.cause, InvalidUtc)
