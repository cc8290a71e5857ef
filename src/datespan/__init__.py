# The MIT License (MIT)
#
# Copyright (c) Arie Bovenberg
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - Why is everything in one file?
#   - The three value types convert into each other, so splitting them
#     up would only trade one file for a web of local imports
#   - It's easier to vendor (i.e. copy-paste) this library if needed
# - All calendar math is done by the standard library (datetime, calendar).
#   This module only decides *which* primitive to call and how to report
#   failures.
# - Values are immutable. Every method that looks like it changes a value
#   returns a new one.
from __future__ import annotations

__version__ = "0.3.0"

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from calendar import monthrange
from contextlib import contextmanager
from datetime import (
    MAXYEAR,
    MINYEAR,
    date as _date,
    datetime as _datetime,
    time as _time,
    timedelta as _timedelta,
    timezone as _timezone,
)
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Generic,
    Iterator,
    Mapping,
    TypeVar,
    no_type_check,
)

__all__ = [
    # value types
    "Span",
    "Date",
    "Time",
    "DateTime",
    "Duration",
    # units
    "DateUnit",
    "TimeUnit",
    "DateTimeUnit",
    # timestamps
    "Timestamp",
    "TimestampMilli",
    "TimestampMicro",
    "TimestampNano",
    # default formats
    "DefaultFormats",
    "SpanBuilder",
    "default_formats",
    # errors
    "SpanError",
    "DateError",
    "TimeError",
    "DateTimeError",
    "InvalidUtc",
    "ParseFromStr",
    "ParseFromTimestamp",
    "ClearTime",
    "ClearUnit",
    "InvalidUpdate",
    "InvalidDate",
    "InvalidTime",
    "InvalidDateTime",
]

_log = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_TIME_FORMAT = "%H:%M:%S"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SpanError(Exception):
    """Base class for all errors raised by this library"""


class InvalidUtc(SpanError):
    """A value couldn't be projected to or from a UTC instant"""

    @staticmethod
    def for_naive(d: _datetime) -> InvalidUtc:
        return InvalidUtc(f"{d} has no UTC offset")

    @staticmethod
    def for_out_of_range(d: _datetime) -> InvalidUtc:
        return InvalidUtc(f"{d} is out of range in UTC")


class ParseFromStr(SpanError, ValueError):
    """A string doesn't match the expected pattern"""

    @staticmethod
    def for_missing_field(field: str) -> ParseFromStr:
        return ParseFromStr(f"missing field {field!r}")

    @staticmethod
    def for_not_a_string(field: str, value: object) -> ParseFromStr:
        return ParseFromStr(f"field {field!r} must be a string, got {value!r}")


class ParseFromTimestamp(SpanError, ValueError):
    """A Unix timestamp is outside the representable range"""

    @staticmethod
    def for_timestamp(ts: Timestamp) -> ParseFromTimestamp:
        return ParseFromTimestamp(
            f"Error while parsing timestamp {int(ts)} "
            f"from {type(ts).__name__}"
        )


class ClearTime(SpanError):
    """The time of day couldn't be reset to midnight"""


class ClearUnit(SpanError):
    """A single field couldn't be reset to its epoch value"""

    @staticmethod
    def for_field(field: str, value: int) -> ClearUnit:
        return ClearUnit(f"Error while setting {field} to {value}")


class InvalidUpdate(SpanError):
    """Adding or removing units leaves the representable range"""

    @staticmethod
    def for_delta(span: Span[Any], unit: Enum, delta: int) -> InvalidUpdate:
        return InvalidUpdate(
            f"Cannot Add/Remove {delta} {_unit_label(unit)} to/from {span}"
        )


class InvalidDate(SpanError, ValueError):
    """The fields don't form a valid calendar date"""

    @staticmethod
    def for_fields(year: int, month: int, day: int) -> InvalidDate:
        return InvalidDate(f"{year}-{month}-{day}")


class InvalidTime(SpanError, ValueError):
    """The fields don't form a valid time of day"""

    @staticmethod
    def for_fields(hour: int, minute: int, second: int) -> InvalidTime:
        return InvalidTime(f"{hour}:{minute}:{second}")


class InvalidDateTime(SpanError, ValueError):
    """The fields don't form a valid date and time of day"""

    @staticmethod
    def for_fields(
        year: int, month: int, day: int, hour: int, minute: int, second: int
    ) -> InvalidDateTime:
        return InvalidDateTime(
            f"{year}-{month}-{day} {hour}:{minute}:{second}"
        )


class _ContextError(SpanError):
    """Tags an error with the kind of value that raised it.

    The original error is available as :attr:`cause`
    (and as ``__cause__`` when it was raised from inside this library).
    """

    kind: ClassVar[str]

    def __init__(self, cause: SpanError) -> None:
        super().__init__(cause)
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.kind} ➤  {type(self.cause).__name__}: {self.cause}"


class DateError(_ContextError):
    """An error raised by a :class:`Date` method"""

    kind = "Date"


class TimeError(_ContextError):
    """An error raised by a :class:`Time` method"""

    kind = "Time"


class DateTimeError(_ContextError):
    """An error raised by a :class:`DateTime` method"""

    kind = "DateTime"


# ---------------------------------------------------------------------------
# Default formats
# ---------------------------------------------------------------------------


class DefaultFormats:
    """The patterns used when no explicit format is given.

    The datetime pattern may be left unset, in which case it is derived
    from the date and time patterns, joined by a space.

    Example
    -------

    >>> f = DefaultFormats(date="%d/%m/%Y")
    >>> f.datetime
    '%d/%m/%Y %H:%M:%S'
    >>> DefaultFormats(datetime="%Y%m%dT%H%M%S").datetime
    '%Y%m%dT%H%M%S'

    """

    __slots__ = ("_date", "_time", "_datetime")

    def __init__(
        self,
        date: str = DEFAULT_DATE_FORMAT,
        time: str = DEFAULT_TIME_FORMAT,
        datetime: str | None = None,
    ) -> None:
        self._date = date
        self._time = time
        self._datetime = datetime

    @property
    def date(self) -> str:
        return self._date

    @property
    def time(self) -> str:
        return self._time

    @property
    def datetime(self) -> str:
        if self._datetime is None:
            return f"{self._date} {self._time}"
        return self._datetime

    @property
    def datetime_is_derived(self) -> bool:
        """True if the datetime pattern follows the date and time patterns"""
        return self._datetime is None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DefaultFormats):
            return NotImplemented
        return (self._date, self._time, self._datetime) == (
            other._date,
            other._time,
            other._datetime,
        )

    def __hash__(self) -> int:
        return hash((self._date, self._time, self._datetime))

    def __repr__(self) -> str:
        return (
            f"DefaultFormats(date={self._date!r}, time={self._time!r}, "
            f"datetime={self._datetime!r})"
        )


class _RWLock:
    """Many readers or one writer.

    A waiting writer holds back new readers, so reconfiguration can't be
    starved by a steady stream of reads.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


_registry_lock = _RWLock()
_registry = DefaultFormats()


def default_formats() -> DefaultFormats:
    """The default formats currently in effect for this process

    Example
    -------

    >>> default_formats().date
    '%Y-%m-%d'

    """
    with _registry_lock.read():
        return _registry


def _install(formats: DefaultFormats) -> None:
    global _registry
    with _registry_lock.write():
        _registry = formats
    _log.debug("default formats set to %r", formats)


class SpanBuilder:
    """Configure the process-wide default formats.

    Any pattern not given reverts to its canonical default
    (``%Y-%m-%d``, ``%H:%M:%S``, and the two joined by a space).

    Warning
    -------
    This affects every later call that relies on a default format,
    in every thread. Values that already exist keep their own format.
    Prefer passing a :class:`DefaultFormats` explicitly
    where a single call needs a different default.

    Example
    -------

    >>> SpanBuilder.builder().date_format("%d/%m/%Y").build()
    DefaultFormats(date='%d/%m/%Y', time='%H:%M:%S', datetime=None)
    >>> Date.build("09/10/2023")
    Date(2023-10-09, '%d/%m/%Y')

    """

    __slots__ = ("_date_format", "_time_format", "_datetime_format")

    def __init__(self) -> None:
        self._date_format: str | None = None
        self._time_format: str | None = None
        self._datetime_format: str | None = None

    @classmethod
    def builder(cls) -> SpanBuilder:
        return cls()

    def date_format(self, fmt: str, /) -> SpanBuilder:
        self._date_format = fmt
        return self

    def time_format(self, fmt: str, /) -> SpanBuilder:
        self._time_format = fmt
        return self

    def datetime_format(self, fmt: str, /) -> SpanBuilder:
        self._datetime_format = fmt
        return self

    def formats(self) -> DefaultFormats:
        """The formats this builder would install, without installing them"""
        return DefaultFormats(
            date=(
                DEFAULT_DATE_FORMAT
                if self._date_format is None
                else self._date_format
            ),
            time=(
                DEFAULT_TIME_FORMAT
                if self._time_format is None
                else self._time_format
            ),
            datetime=self._datetime_format,
        )

    def build(self) -> DefaultFormats:
        """Install the formats as the process-wide defaults"""
        formats = self.formats()
        _install(formats)
        return formats


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


class DateUnit(Enum):
    """A field of a :class:`Date`"""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"


class TimeUnit(Enum):
    """A field of a :class:`Time`"""

    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"


class DateTimeUnit(Enum):
    """A field of a :class:`DateTime`"""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"


# ---------------------------------------------------------------------------
# Duration
# ---------------------------------------------------------------------------


class Duration:
    """A signed amount of time, in whole seconds.

    This is what :meth:`Span.elapsed` returns.
    The inputs are normalized, so 90 minutes becomes 1 hour and 30 minutes.

    Example
    -------

    >>> d = Duration(hours=1, minutes=30)
    Duration(01:30:00)
    >>> d.in_minutes()
    90.0

    """

    __slots__ = ("_total_secs",)

    def __init__(
        self,
        *,
        days: int = 0,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
    ) -> None:
        self._total_secs = days * 86_400 + hours * 3_600 + minutes * 60 + seconds

    ZERO: ClassVar[Duration]
    """A duration of zero"""

    def in_days(self) -> float:
        return self._total_secs / 86_400

    def in_hours(self) -> float:
        return self._total_secs / 3_600

    def in_minutes(self) -> float:
        return self._total_secs / 60

    def in_seconds(self) -> int:
        return self._total_secs

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._total_secs == other._total_secs

    def __hash__(self) -> int:
        return hash(self._total_secs)

    def __lt__(self, other: Duration) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._total_secs < other._total_secs

    def __le__(self, other: Duration) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._total_secs <= other._total_secs

    def __gt__(self, other: Duration) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._total_secs > other._total_secs

    def __ge__(self, other: Duration) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._total_secs >= other._total_secs

    def __bool__(self) -> bool:
        return bool(self._total_secs)

    def __add__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(seconds=self._total_secs + other._total_secs)

    def __sub__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(seconds=self._total_secs - other._total_secs)

    def __neg__(self) -> Duration:
        return Duration(seconds=-self._total_secs)

    def __abs__(self) -> Duration:
        return Duration(seconds=abs(self._total_secs))

    def as_tuple(self) -> tuple[int, int, int]:
        """Convert to a tuple of (hours, minutes, seconds)

        All components carry the sign of the duration.

        Example
        -------

        >>> Duration(days=1, minutes=-30).as_tuple()
        (23, 30, 0)
        >>> Duration(seconds=-3_661).as_tuple()
        (-1, -1, -1)

        """
        hours, rem = divmod(abs(self._total_secs), 3_600)
        mins, secs = divmod(rem, 60)
        return (
            (hours, mins, secs)
            if self._total_secs >= 0
            else (-hours, -mins, -secs)
        )

    def canonical_format(self) -> str:
        """The duration as ``[-]HH:MM:SS``, where hours may exceed 24

        Example
        -------

        >>> Duration(days=1, hours=1, minutes=1, seconds=1).canonical_format()
        '25:01:01'

        """
        hrs, mins, secs = abs(self).as_tuple()
        return f"{'-'*(self._total_secs < 0)}{hrs:02}:{mins:02}:{secs:02}"

    __str__ = canonical_format

    @classmethod
    def from_canonical_format(cls, s: str, /) -> Duration:
        """Create from a canonical string representation.

        Inverse of :meth:`canonical_format`

        Example
        -------

        >>> Duration.from_canonical_format("01:30:00")
        Duration(01:30:00)

        Raises
        ------
        ParseFromStr
            If the string does not match this exact format.

        """
        if not (match := _match_duration(s)):
            raise ParseFromStr(f"Invalid duration: {s!r}")
        sign, hours, mins, secs = match.groups()
        return cls(
            seconds=(-1 if sign == "-" else 1)
            * (int(hours) * 3_600 + int(mins) * 60 + int(secs))
        )

    def py_timedelta(self) -> _timedelta:
        """Convert to a :class:`~datetime.timedelta`"""
        return _timedelta(seconds=self._total_secs)

    @classmethod
    def from_py_timedelta(cls, td: _timedelta, /) -> Duration:
        """Create from a :class:`~datetime.timedelta`.

        Sub-second precision is truncated toward zero.
        """
        whole = abs(td) // _SECOND
        return cls(seconds=-whole if td < _timedelta(0) else whole)

    def __repr__(self) -> str:
        return f"Duration({self})"


Duration.ZERO = Duration()


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


class Timestamp(int):
    """A Unix timestamp in seconds.

    The subclasses tag finer resolutions, so that
    :meth:`DateTime.from_timestamp` knows how to interpret the number.

    Example
    -------

    >>> TimestampMilli(1_500).seconds()
    1
    >>> TimestampMilli(-1_500).seconds()
    -1

    """

    __slots__ = ()

    per_second: ClassVar[int] = 1

    def seconds(self) -> int:
        """Whole seconds since the epoch, truncated toward zero"""
        whole = abs(self) // self.per_second
        return -whole if self < 0 else whole

    def __repr__(self) -> str:
        return f"{type(self).__name__}({int(self)})"


class TimestampMilli(Timestamp):
    """A Unix timestamp in milliseconds"""

    __slots__ = ()
    per_second = 1_000


class TimestampMicro(Timestamp):
    """A Unix timestamp in microseconds"""

    __slots__ = ()
    per_second = 1_000_000


class TimestampNano(Timestamp):
    """A Unix timestamp in nanoseconds"""

    __slots__ = ()
    per_second = 1_000_000_000


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

_TUnit = TypeVar("_TUnit", bound=Enum)
_TSpan = TypeVar("_TSpan", bound="Span[Any]")


class Span(ABC, Generic[_TUnit]):
    """Abstract base class for :class:`Date`, :class:`Time`
    and :class:`DateTime`.

    A span pairs a calendar or clock value with the pattern used to
    display it. Equality, ordering and hashing only consider the value,
    never the pattern.
    """

    __slots__ = ("_py_value", "_format", "__weakref__")
    _format: str

    _unit: ClassVar[type[Enum]]
    _error: ClassVar[type[_ContextError]]
    # Name of the pattern on DefaultFormats, also used as the JSON field
    _field: ClassVar[str]

    # -- construction --------------------------------------------------------

    @classmethod
    def new(cls: type[_TSpan], s: str, /, fmt: str) -> _TSpan:
        """Parse a string with an explicit pattern.

        The pattern is kept as the display format of the new value.
        See :meth:`~datetime.datetime.strptime` for the supported directives.

        Raises
        ------
        ParseFromStr
            (wrapped in the context error of the class)
            If the string doesn't match the pattern.
        """
        try:
            parsed = cls._parse(s, fmt)
        except ValueError as e:
            raise cls._error(ParseFromStr(str(e))) from e
        return cls._from_py_unchecked(parsed, fmt)

    @classmethod
    def build(
        cls: type[_TSpan], s: str, /, defaults: DefaultFormats | None = None
    ) -> _TSpan:
        """Parse a string with the default pattern.

        The defaults are read from ``defaults`` if given,
        or else from the process-wide configuration
        (see :class:`SpanBuilder`).
        """
        return cls.new(s, cls._default_pattern(defaults))

    @classmethod
    def now(cls: type[_TSpan]) -> _TSpan:
        """The current value of the system clock, in local time"""
        return cls._from_py_unchecked(cls._py_now(), cls._default_pattern())

    @classmethod
    def _default_pattern(cls, defaults: DefaultFormats | None = None) -> str:
        return getattr(defaults or default_formats(), cls._field)

    @classmethod
    def _from_py_unchecked(cls: type[_TSpan], value: Any, fmt: str) -> _TSpan:
        self = _object_new(cls)
        self._py_value = value
        self._format = fmt
        return self

    @staticmethod
    @abstractmethod
    def _parse(s: str, fmt: str) -> Any: ...

    @staticmethod
    @abstractmethod
    def _py_now() -> Any: ...

    @abstractmethod
    def _seconds(self) -> int:
        """Position on the timeline, in seconds, used for elapsed time"""

    # -- display -------------------------------------------------------------

    @property
    def display_format(self) -> str:
        """The pattern used by :meth:`__str__`"""
        return self._format

    def format(self: _TSpan, fmt: str, /) -> _TSpan:
        """A copy of this value that displays with another pattern

        Example
        -------

        >>> d = Date(2023, 10, 9).format("%d/%m/%Y")
        >>> str(d)
        '09/10/2023'

        """
        return self._from_py_unchecked(self._py_value, fmt)

    def default_format(self: _TSpan) -> _TSpan:
        """A copy of this value that displays with the current default"""
        return self._from_py_unchecked(
            self._py_value, self._default_pattern()
        )

    def __str__(self) -> str:
        return _strftime(self._py_value, self._format)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}"
            f"({self._py_value.isoformat()}, {self._format!r})"
        )

    # -- comparison ----------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        """Compare for equality. The display format is ignored.

        Example
        -------

        >>> Date(2023, 10, 9) == Date(2023, 10, 9).format("%d/%m/%Y")
        True

        """
        if type(other) is not type(self):
            return NotImplemented
        return self._py_value == other._py_value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self._py_value)

    def __lt__(self: _TSpan, other: _TSpan) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._py_value < other._py_value

    def __le__(self: _TSpan, other: _TSpan) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._py_value <= other._py_value

    def __gt__(self: _TSpan, other: _TSpan) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._py_value > other._py_value

    def __ge__(self: _TSpan, other: _TSpan) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._py_value >= other._py_value

    def matches(self, unit: _TUnit, value: int) -> bool:
        """Whether the given field has the given value

        Example
        -------

        >>> d = Date(2023, 10, 9)
        >>> d.matches(DateUnit.MONTH, 10)
        True
        >>> d.matches(DateUnit.DAY, 10)
        False

        """
        self._check_unit(unit)
        return getattr(self._py_value, unit.value) == value

    def is_in_future(self) -> bool:
        """Whether this value lies after the current system clock.

        The clock is read on every call.
        """
        return self._py_value > self._py_now()

    # -- arithmetic ----------------------------------------------------------

    def update(self: _TSpan, unit: _TUnit, delta: int, /) -> _TSpan:
        """Add (or, with a negative ``delta``, remove) a number of units.

        Months and years keep the day of the month where possible,
        and clamp it to the last day of the target month otherwise.
        Smaller units carry over into larger ones.

        Example
        -------

        >>> Date(2023, 1, 31).update(DateUnit.MONTH, 1)
        Date(2023-02-28, '%Y-%m-%d')
        >>> Date(2023, 10, 9).update(DateUnit.YEAR, -1)
        Date(2022-10-09, '%Y-%m-%d')

        Raises
        ------
        InvalidUpdate
            (wrapped in the context error of the class)
            If the result is outside the representable range.
        """
        self._check_unit(unit)
        _check_delta(delta)
        result = self._shift(unit.value, delta)
        if result is None:
            raise self._error(InvalidUpdate.for_delta(self, unit, delta))
        return self._from_py_unchecked(result, self._format)

    def next(self: _TSpan, unit: _TUnit, /) -> _TSpan:
        """Same as ``update(unit, 1)``"""
        return self.update(unit, 1)

    def _shift(self, field: str, delta: int) -> Any:
        return _checked_update(self._py_value, field, delta)

    def elapsed(self: _TSpan, other: _TSpan, /) -> Duration:
        """The signed duration from ``other`` to this value

        Example
        -------

        >>> Date(2023, 10, 20).elapsed(Date(2023, 10, 9))
        Duration(264:00:00)
        >>> Date(2023, 10, 9).elapsed(Date(2023, 10, 20))
        Duration(-264:00:00)

        """
        self._check_same_kind(other)
        return Duration(seconds=self._seconds() - other._seconds())

    def unit_elapsed(self: _TSpan, other: _TSpan, unit: _TUnit, /) -> int:
        """The number of whole units between two values.

        The result is never negative, so the order of the arguments
        doesn't matter. Years and months compare the calendar fields,
        so 2023-12-31 and 2024-01-01 are one month apart.
        Smaller units count complete units of elapsed time.

        Example
        -------

        >>> a = DateTime(2023, 10, 9, 1, 1, 1)
        >>> b = DateTime(2023, 10, 8)
        >>> a.unit_elapsed(b, DateTimeUnit.HOUR)
        25
        >>> b.unit_elapsed(a, DateTimeUnit.MINUTE)
        1501

        """
        self._check_same_kind(other)
        self._check_unit(unit)
        mine, theirs = self._py_value, other._py_value
        if unit.value == "year":
            return abs(mine.year - theirs.year)
        elif unit.value == "month":
            return abs(
                mine.year * 12 + mine.month - (theirs.year * 12 + theirs.month)
            )
        return (
            abs(self._seconds() - other._seconds())
            // _SECONDS_PER_UNIT[unit.value]
        )

    def clear_unit(self: _TSpan, unit: _TUnit, /) -> _TSpan:
        """Reset one field to its epoch value, keeping all others.

        The epoch values are 1970 for the year, 1 for the month and day,
        and 0 for the hour, minute and second.

        Raises
        ------
        ClearUnit
            (wrapped in the context error of the class)
            If the result isn't a valid value, e.g. February 29th
            moved to 1970.
        """
        self._check_unit(unit)
        field = unit.value
        epoch = _EPOCH_FIELDS[field]
        try:
            cleared = self._py_value.replace(**{field: epoch})
        except ValueError as e:
            raise self._error(ClearUnit.for_field(field, epoch)) from e
        return self._from_py_unchecked(cleared, self._format)

    def _check_unit(self, unit: object) -> None:
        if not isinstance(unit, self._unit):
            raise TypeError(
                f"{type(self).__name__} expects a {self._unit.__name__}, "
                f"got {unit!r}"
            )

    def _check_same_kind(self, other: object) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Can't compare {type(self).__name__} "
                f"with {type(other).__name__}"
            )

    # -- UTC -----------------------------------------------------------------

    @abstractmethod
    def as_utc(self) -> _datetime:
        """An aware UTC :class:`~datetime.datetime` for this value"""

    @classmethod
    def _py_from_utc(cls, d: _datetime) -> _datetime:
        if d.tzinfo is None or d.utcoffset() is None:
            raise cls._error(InvalidUtc.for_naive(d))
        try:
            return d.astimezone(_UTC).replace(tzinfo=None)
        except OverflowError as e:
            raise cls._error(InvalidUtc.for_out_of_range(d)) from e

    # -- serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, str]:
        """The value as a JSON-compatible dict.

        The value itself is written with the *current default* pattern,
        and the display format is stored alongside it.

        Example
        -------

        >>> Date(2023, 10, 9).format("%d/%m/%Y").to_dict()
        {'date': '2023-10-09', 'format': '%d/%m/%Y'}

        """
        return {
            self._field: _strftime(self._py_value, self._default_pattern()),
            "format": self._format,
        }

    @classmethod
    def from_dict(
        cls: type[_TSpan],
        d: Mapping[str, Any],
        /,
        defaults: DefaultFormats | None = None,
    ) -> _TSpan:
        """Inverse of :meth:`to_dict`.

        The value is parsed with the default pattern in effect *now*,
        not with the stored display format.
        """
        try:
            s = d[cls._field]
        except KeyError as e:
            raise cls._error(ParseFromStr.for_missing_field(cls._field)) from e
        if not isinstance(s, str):
            raise cls._error(ParseFromStr.for_not_a_string(cls._field, s))
        fmt = d.get("format", cls._default_pattern(defaults))
        if not isinstance(fmt, str):
            raise TypeError(f"format must be a string, got {fmt!r}")
        return cls.build(s, defaults).format(fmt)

    def to_json(self) -> str:
        """Same as ``json.dumps(self.to_dict())``"""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(
        cls: type[_TSpan], s: str, /, defaults: DefaultFormats | None = None
    ) -> _TSpan:
        """Inverse of :meth:`to_json`"""
        try:
            d = json.loads(s)
        except ValueError as e:
            raise cls._error(ParseFromStr(str(e))) from e
        if not isinstance(d, dict):
            raise cls._error(ParseFromStr("expected a JSON object"))
        return cls.from_dict(d, defaults)

    # We don't need to copy, because it's immutable
    def __copy__(self: _TSpan) -> _TSpan:
        return self

    def __deepcopy__(self: _TSpan, _: object) -> _TSpan:
        return self


class Date(Span[DateUnit]):
    """A calendar date without a time of day

    Example
    -------

    >>> d = Date(2023, 10, 9)
    Date(2023-10-09, '%Y-%m-%d')
    >>> str(d.format("%d/%m/%Y"))
    '09/10/2023'

    """

    __slots__ = ()
    _py_value: _date

    _unit = DateUnit
    _error = DateError
    _field = "date"

    def __init__(self, year: int, month: int, day: int) -> None:
        try:
            self._py_value = _date(year, month, day)
        except ValueError as e:
            raise DateError(InvalidDate.for_fields(year, month, day)) from e
        self._format = self._default_pattern()

    @property
    def year(self) -> int:
        return self._py_value.year

    @property
    def month(self) -> int:
        return self._py_value.month

    @property
    def day(self) -> int:
        return self._py_value.day

    @staticmethod
    def _parse(s: str, fmt: str) -> _date:
        return _datetime.strptime(s, fmt).date()

    @staticmethod
    def _py_now() -> _date:
        return _now().date()

    def _seconds(self) -> int:
        return (self._py_value - _EPOCH_DATE).days * 86_400

    def py_date(self) -> _date:
        """Get the underlying :class:`~datetime.date` object"""
        return self._py_value

    @classmethod
    def from_py_date(cls, d: _date, /) -> Date:
        """Create from a :class:`~datetime.date`, with the default format"""
        if isinstance(d, _datetime):
            d = d.date()
        return cls._from_py_unchecked(d, cls._default_pattern())

    def with_time(self, hour: int, minute: int = 0, second: int = 0) -> DateTime:
        """Attach a time of day, creating a :class:`DateTime`
        with the default datetime format

        Example
        -------

        >>> Date(2023, 10, 9).with_time(12, 30)
        DateTime(2023-10-09T12:30:00, '%Y-%m-%d %H:%M:%S')

        Raises
        ------
        DateError
            Wrapping :class:`InvalidTime` if the fields aren't a valid time.
        """
        try:
            t = _time(hour, minute, second)
        except ValueError as e:
            raise DateError(InvalidTime.for_fields(hour, minute, second)) from e
        return DateTime._from_py_unchecked(
            _datetime.combine(self._py_value, t),
            DateTime._default_pattern(),
        )

    def as_datetime(self) -> DateTime:
        """Midnight at this date, with the default datetime format"""
        return DateTime._from_py_unchecked(
            _datetime.combine(self._py_value, _MIDNIGHT),
            DateTime._default_pattern(),
        )

    def as_utc(self) -> _datetime:
        """Midnight UTC at this date"""
        return _datetime.combine(self._py_value, _MIDNIGHT, tzinfo=_UTC)

    @classmethod
    def from_utc(cls, d: _datetime, /) -> Date:
        """The UTC date of an aware :class:`~datetime.datetime`

        Raises
        ------
        DateError
            Wrapping :class:`InvalidUtc` if the datetime is naive.
        """
        return cls.from_py_date(cls._py_from_utc(d).date())

    def __reduce__(self) -> tuple[object, ...]:
        d = self._py_value
        return (_unpkl_date, (d.year, d.month, d.day, self._format))


class Time(Span[TimeUnit]):
    """A time of day, with whole-second precision and no date.

    Arithmetic wraps around midnight.

    Example
    -------

    >>> t = Time(23, 30)
    Time(23:30:00, '%H:%M:%S')
    >>> t.update(TimeUnit.HOUR, 1)
    Time(00:30:00, '%H:%M:%S')

    """

    __slots__ = ()
    _py_value: _time

    _unit = TimeUnit
    _error = TimeError
    _field = "time"

    def __init__(self, hour: int = 0, minute: int = 0, second: int = 0) -> None:
        try:
            self._py_value = _time(hour, minute, second)
        except ValueError as e:
            raise TimeError(InvalidTime.for_fields(hour, minute, second)) from e
        self._format = self._default_pattern()

    @classmethod
    def midnight(cls) -> Time:
        return cls._from_py_unchecked(_MIDNIGHT, cls._default_pattern())

    @property
    def hour(self) -> int:
        return self._py_value.hour

    @property
    def minute(self) -> int:
        return self._py_value.minute

    @property
    def second(self) -> int:
        return self._py_value.second

    @staticmethod
    def _parse(s: str, fmt: str) -> _time:
        return _datetime.strptime(s, fmt).time().replace(microsecond=0)

    @staticmethod
    def _py_now() -> _time:
        return _now().time()

    def _seconds(self) -> int:
        t = self._py_value
        return t.hour * 3_600 + t.minute * 60 + t.second

    def _shift(self, field: str, delta: int) -> _time:
        secs = (self._seconds() + delta * _SECONDS_PER_UNIT[field]) % 86_400
        hours, rem = divmod(secs, 3_600)
        return _time(hours, *divmod(rem, 60))

    def py_time(self) -> _time:
        """Get the underlying :class:`~datetime.time` object"""
        return self._py_value

    @classmethod
    def from_py_time(cls, t: _time, /) -> Time:
        """Create from a naive :class:`~datetime.time`, with the default
        format. Microseconds are dropped."""
        if t.tzinfo is not None:
            raise ValueError(
                f"Can only create Time from a naive time, got tzinfo={t.tzinfo!r}"
            )
        return cls._from_py_unchecked(
            t.replace(microsecond=0, fold=0), cls._default_pattern()
        )

    def as_datetime(self) -> DateTime:
        """This time on 1970-01-01, with the default datetime format"""
        return DateTime._from_py_unchecked(
            _datetime.combine(_EPOCH_DATE, self._py_value),
            DateTime._default_pattern(),
        )

    def as_utc(self) -> _datetime:
        """This time on 1970-01-01, in UTC"""
        return _datetime.combine(_EPOCH_DATE, self._py_value, tzinfo=_UTC)

    @classmethod
    def from_utc(cls, d: _datetime, /) -> Time:
        """The UTC time of day of an aware :class:`~datetime.datetime`

        Raises
        ------
        TimeError
            Wrapping :class:`InvalidUtc` if the datetime is naive.
        """
        return cls.from_py_time(cls._py_from_utc(d).time())

    def __reduce__(self) -> tuple[object, ...]:
        t = self._py_value
        return (_unpkl_time, (t.hour, t.minute, t.second, self._format))


class DateTime(Span[DateTimeUnit]):
    """A date and time of day, with whole-second precision
    and no timezone

    Example
    -------

    >>> dt = DateTime(2023, 10, 9, 23, 59, 34)
    DateTime(2023-10-09T23:59:34, '%Y-%m-%d %H:%M:%S')
    >>> str(dt.next(DateTimeUnit.HOUR))
    '2023-10-10 00:59:34'

    """

    __slots__ = ()
    _py_value: _datetime

    _unit = DateTimeUnit
    _error = DateTimeError
    _field = "datetime"

    def __init__(
        self,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
    ) -> None:
        try:
            self._py_value = _datetime(year, month, day, hour, minute, second)
        except ValueError as e:
            raise DateTimeError(
                InvalidDateTime.for_fields(
                    year, month, day, hour, minute, second
                )
            ) from e
        self._format = self._default_pattern()

    @property
    def year(self) -> int:
        return self._py_value.year

    @property
    def month(self) -> int:
        return self._py_value.month

    @property
    def day(self) -> int:
        return self._py_value.day

    @property
    def hour(self) -> int:
        return self._py_value.hour

    @property
    def minute(self) -> int:
        return self._py_value.minute

    @property
    def second(self) -> int:
        return self._py_value.second

    @staticmethod
    def _parse(s: str, fmt: str) -> _datetime:
        parsed = _datetime.strptime(s, fmt)
        if parsed.tzinfo is not None:
            raise ValueError(
                "Parsed datetime can't have an offset. "
                "Do not use %z or %Z in the format string"
            )
        return parsed.replace(microsecond=0)

    @staticmethod
    def _py_now() -> _datetime:
        return _now()

    def _seconds(self) -> int:
        return (self._py_value - _EPOCH) // _SECOND

    def timestamp(self) -> int:
        """Seconds since the Unix epoch, reading this value as UTC"""
        return self._seconds()

    @classmethod
    def from_timestamp(cls, ts: int, /) -> DateTime:
        """Create from a Unix timestamp, read as UTC.

        A plain ``int`` counts seconds. Wrap the number in
        :class:`TimestampMilli`, :class:`TimestampMicro` or
        :class:`TimestampNano` for finer resolutions;
        the sub-second part is truncated toward zero.

        Example
        -------

        >>> DateTime.from_timestamp(1_700_000_000)
        DateTime(2023-11-14T22:13:20, '%Y-%m-%d %H:%M:%S')
        >>> DateTime.from_timestamp(TimestampMilli(1_700_000_000_999))
        DateTime(2023-11-14T22:13:20, '%Y-%m-%d %H:%M:%S')

        Raises
        ------
        DateTimeError
            Wrapping :class:`ParseFromTimestamp` if the timestamp
            is out of range.
        """
        if not isinstance(ts, Timestamp):
            ts = Timestamp(ts)
        try:
            value = _EPOCH + _timedelta(seconds=ts.seconds())
        except OverflowError as e:
            raise DateTimeError(ParseFromTimestamp.for_timestamp(ts)) from e
        return cls._from_py_unchecked(value, cls._default_pattern())

    @classmethod
    def from_timestamp_millis(cls, ms: int, /) -> DateTime:
        return cls.from_timestamp(TimestampMilli(ms))

    @classmethod
    def from_timestamp_micros(cls, us: int, /) -> DateTime:
        return cls.from_timestamp(TimestampMicro(us))

    @classmethod
    def from_timestamp_nanos(cls, ns: int, /) -> DateTime:
        return cls.from_timestamp(TimestampNano(ns))

    def py_datetime(self) -> _datetime:
        """Get the underlying :class:`~datetime.datetime` object"""
        return self._py_value

    @classmethod
    def from_py_datetime(cls, d: _datetime, /) -> DateTime:
        """Create from a naive :class:`~datetime.datetime`, with the default
        format. Microseconds are dropped."""
        if d.tzinfo is not None:
            raise ValueError(
                "Can only create DateTime from a naive datetime, "
                f"got datetime with tzinfo={d.tzinfo!r}"
            )
        return cls._from_py_unchecked(
            d.replace(microsecond=0, fold=0), cls._default_pattern()
        )

    def with_time(self, hour: int, minute: int = 0, second: int = 0) -> DateTime:
        """Replace the time of day, keeping the date and display format

        Raises
        ------
        DateTimeError
            Wrapping :class:`InvalidDateTime` if the fields aren't
            a valid time.
        """
        try:
            replaced = self._py_value.replace(
                hour=hour, minute=minute, second=second
            )
        except ValueError as e:
            d = self._py_value
            raise DateTimeError(
                InvalidDateTime.for_fields(
                    d.year, d.month, d.day, hour, minute, second
                )
            ) from e
        return self._from_py_unchecked(replaced, self._format)

    def clear_time(self) -> DateTime:
        """The start of the day, keeping the display format

        Example
        -------

        >>> str(DateTime(2023, 10, 9, 1, 1, 1).clear_time())
        '2023-10-09 00:00:00'

        """
        try:
            cleared = self._py_value.replace(hour=0, minute=0, second=0)
        except ValueError as e:
            raise DateTimeError(
                ClearTime("Error while setting start of day")
            ) from e
        return self._from_py_unchecked(cleared, self._format)

    def as_date(self) -> Date:
        """The date part, with the default date format"""
        return Date._from_py_unchecked(
            self._py_value.date(), Date._default_pattern()
        )

    def as_time(self) -> Time:
        """The time part, with the default time format"""
        return Time._from_py_unchecked(
            self._py_value.time(), Time._default_pattern()
        )

    def as_utc(self) -> _datetime:
        """Read this value as UTC.

        Warning
        -------
        No timezone is involved, the fields are taken as they are.
        Only use this for duration math within the process.
        """
        return self._py_value.replace(tzinfo=_UTC)

    @classmethod
    def from_utc(cls, d: _datetime, /) -> DateTime:
        """The UTC date and time of an aware :class:`~datetime.datetime`

        Raises
        ------
        DateTimeError
            Wrapping :class:`InvalidUtc` if the datetime is naive.
        """
        return cls.from_py_datetime(cls._py_from_utc(d))

    def __reduce__(self) -> tuple[object, ...]:
        return (
            _unpkl_datetime,
            self._py_value.timetuple()[:6] + (self._format,),
        )


# A separate unpickling function allows us to make backwards-compatible changes
# to the pickling format in the future
@no_type_check
def _unpkl_date(*args) -> Date:
    *fields, fmt = args
    return Date._from_py_unchecked(_date(*fields), fmt)


@no_type_check
def _unpkl_time(*args) -> Time:
    *fields, fmt = args
    return Time._from_py_unchecked(_time(*fields), fmt)


@no_type_check
def _unpkl_datetime(*args) -> DateTime:
    *fields, fmt = args
    return DateTime._from_py_unchecked(_datetime(*fields), fmt)


# ---------------------------------------------------------------------------
# Calendar arithmetic
# ---------------------------------------------------------------------------
#
# The checked primitives below return None instead of raising when the result
# can't be represented. Callers turn that into InvalidUpdate.

if TYPE_CHECKING:
    _TCalendar = TypeVar("_TCalendar", _date, _datetime)


def _checked_add_months(d: _TCalendar, months: int) -> _TCalendar | None:
    # The day is clamped to the length of the target month:
    # Jan 31 + 1 month is Feb 28 (or 29), never Mar 3.
    year_overflow, month_new = divmod(d.month - 1 + months, 12)
    month_new += 1
    year_new = d.year + year_overflow
    if not MINYEAR <= year_new <= MAXYEAR:
        return None
    return d.replace(
        year=year_new,
        month=month_new,
        day=min(d.day, monthrange(year_new, month_new)[1]),
    )


def _checked_sub_months(d: _TCalendar, months: int) -> _TCalendar | None:
    return _checked_add_months(d, -months)


def _checked_add_days(d: _TCalendar, days: int) -> _TCalendar | None:
    try:
        return d + _timedelta(days=days)
    except OverflowError:
        return None


def _checked_sub_days(d: _TCalendar, days: int) -> _TCalendar | None:
    try:
        return d - _timedelta(days=days)
    except OverflowError:
        return None


def _checked_add_seconds(d: _datetime, seconds: int) -> _datetime | None:
    try:
        return d + _timedelta(seconds=seconds)
    except OverflowError:
        return None


def _checked_update(d: _TCalendar, field: str, delta: int) -> _TCalendar | None:
    # Month-based units are added or removed by magnitude, selected by sign
    if field == "year":
        if delta > 0:
            return _checked_add_months(d, delta * 12)
        return _checked_sub_months(d, abs(delta) * 12)
    elif field == "month":
        if delta > 0:
            return _checked_add_months(d, delta)
        return _checked_sub_months(d, abs(delta))
    elif field == "day":
        if delta > 0:
            return _checked_add_days(d, delta)
        return _checked_sub_days(d, abs(delta))
    assert isinstance(d, _datetime)
    return _checked_add_seconds(d, delta * _SECONDS_PER_UNIT[field])


def _check_delta(delta: object) -> None:
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise TypeError(f"delta must be an int, got {delta!r}")


def _strftime(value: Any, fmt: str) -> str:
    # %Y is not zero-padded below year 1000 on every platform,
    # which strptime can't read back
    if hasattr(value, "year"):
        year = f"{value.year:04d}"
        fmt = _sub_directive(lambda m: year if m[0] == "%Y" else m[0], fmt)
    return value.strftime(fmt)


def _unit_label(unit: Enum) -> str:
    return unit.name.capitalize()


def _now() -> _datetime:
    # Module-level so it can be replaced to freeze the clock
    return _datetime.now().replace(microsecond=0)


# Helpers that pre-compute/lookup as much as possible
_UTC = _timezone.utc
_SECOND = _timedelta(seconds=1)
_MIDNIGHT = _time()
_EPOCH = _datetime(1970, 1, 1)
_EPOCH_DATE = _EPOCH.date()
_EPOCH_FIELDS = {
    "year": 1970,
    "month": 1,
    "day": 1,
    "hour": 0,
    "minute": 0,
    "second": 0,
}
_SECONDS_PER_UNIT = {
    "day": 86_400,
    "hour": 3_600,
    "minute": 60,
    "second": 1,
}
_object_new = object.__new__
_match_duration = re.compile(r"([-+]?)(\d{2,}):([0-5]\d):([0-5]\d)").fullmatch
_sub_directive = re.compile(r"%.", re.DOTALL).sub
