"""Conversion between plain datetimes and Firestore's native timestamp type."""

from __future__ import annotations

import datetime as _dt

from google.api_core.datetime_helpers import DatetimeWithNanoseconds

NativeTimestamp = DatetimeWithNanoseconds

_EPOCH = _dt.datetime(1970, 1, 1, tzinfo=_dt.timezone.utc)
_MICROSECOND = _dt.timedelta(microseconds=1)


def utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


def _as_utc(value: _dt.datetime) -> _dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=_dt.timezone.utc)
    return value.astimezone(_dt.timezone.utc)


def to_native(value: _dt.datetime) -> DatetimeWithNanoseconds:
    """Return ``value`` as the store's timestamp type. Naive values are UTC."""

    if isinstance(value, DatetimeWithNanoseconds):
        return value
    value = _as_utc(value)
    return DatetimeWithNanoseconds(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=_dt.timezone.utc,
    )


def from_native(value: DatetimeWithNanoseconds) -> _dt.datetime:
    """Return a plain aware ``datetime`` for a native timestamp."""

    return _dt.datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=value.tzinfo or _dt.timezone.utc,
    )


def to_epoch_micros(value: _dt.datetime) -> int:
    return (_as_utc(value) - _EPOCH) // _MICROSECOND


def from_epoch_micros(micros: int) -> DatetimeWithNanoseconds:
    return to_native(_EPOCH + _dt.timedelta(microseconds=micros))
