# src/colis_dashboard/rules/search.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

from colis_dashboard.errors import ValidationError
from colis_dashboard.models import ParcelRecord

ALL = "all"
REFERENCE = "reference"
CLIENT = "client"
PHONE = "phone"
TRACKING_NUMBER = "trackingNumber"

SEARCH_FIELDS: tuple[str, ...] = (ALL, REFERENCE, CLIENT, PHONE, TRACKING_NUMBER)


@dataclass(frozen=True)
class DateRange:
    """Creation-day window; either bound may be left open."""
    start: Optional[str] = None
    end: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["DateRange", Mapping[str, Any], None]) -> "DateRange":
        """Accept a DateRange or a `{"start": ..., "end": ...}` mapping."""
        if value is None:
            return cls()
        if isinstance(value, DateRange):
            return value
        if isinstance(value, Mapping):
            return cls(start=value.get("start"), end=value.get("end"))
        raise ValidationError(
            f"Date range must be a mapping with start/end, got {type(value).__name__}")

# CLI / UI spellings seen for the same fields
_FIELD_ALIASES = {
    "all": ALL,
    "reference": REFERENCE,
    "client": CLIENT,
    "phone": PHONE,
    "tel": PHONE,
    "trackingnumber": TRACKING_NUMBER,
    "tracking_number": TRACKING_NUMBER,
    "tracking": TRACKING_NUMBER,
    "numero": TRACKING_NUMBER,
}

_NUMERIC = re.compile(r"^[0-9]+$")

# Provider dates: ISO first, then the day-first forms the back office uses
_DATE_FORMATS: tuple[str, ...] = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
)


def normalize_field(field: Optional[str]) -> str:
    key = (field or ALL).strip()
    found = _FIELD_ALIASES.get(key.lower())
    if found is None:
        raise ValidationError(
            f"Unknown search field {field!r}; expected one of {', '.join(SEARCH_FIELDS)}")
    return found


def is_numeric_query(query: str) -> bool:
    return bool(_NUMERIC.match((query or "").strip()))


def parse_day(value: Optional[str]) -> Optional[date]:
    """Calendar day of a provider date string, or None when unparsable."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _exact(query: str, *values: Optional[str]) -> bool:
    return any(v is not None and str(v).strip() == query for v in values)


def _contains(needle: str, *values: Optional[str]) -> bool:
    return any(v is not None and needle in str(v).casefold() for v in values)


def matches(rec: ParcelRecord, query: str, field: str = ALL) -> bool:
    """
    Text match for one record.

    An all-digit query compares exactly against identifier-like fields
    (reference, phones, tracking code) so "123" never hits "1234".
    Anything else is a case-insensitive substring match.
    """
    q = (query or "").strip()
    if not q:
        return True
    field = normalize_field(field)
    numeric = is_numeric_query(q)
    needle = q.casefold()

    def ids(*values: Optional[str]) -> bool:
        return _exact(q, *values) if numeric else _contains(needle, *values)

    if field == REFERENCE:
        return ids(rec.reference)
    if field == PHONE:
        return ids(rec.phone1, rec.phone2)
    if field == TRACKING_NUMBER:
        return ids(rec.tracking_code, rec.parcel_number)
    if field == CLIENT:
        return _contains(needle, rec.client_name)

    return ids(
        rec.reference, rec.phone1, rec.phone2, rec.tracking_code, rec.parcel_number
    ) or _contains(
        needle, rec.client_name, rec.city, rec.province, rec.designation
    )


def filter_by_status(records: Iterable[ParcelRecord], status: Optional[str]) -> list[ParcelRecord]:
    """Exact status pre-filter; None, "" and "all" keep everything."""
    if status is None or not status.strip() or status.strip().lower() == ALL:
        return list(records)
    return [r for r in records if r.status == status]


def filter_by_date_range(
    records: Iterable[ParcelRecord],
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list[ParcelRecord]:
    """Inclusive creation-day window; undated records drop out once a bound is set."""
    lo = _bound(start, "start")
    hi = _bound(end, "end")
    if lo is None and hi is None:
        return list(records)
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError(f"Date range start {lo} is after end {hi}")

    out: list[ParcelRecord] = []
    for rec in records:
        day = parse_day(rec.creation_date)
        if day is None:
            continue
        if lo is not None and day < lo:
            continue
        if hi is not None and day > hi:
            continue
        out.append(rec)
    return out


def _bound(value: Optional[str], name: str) -> Optional[date]:
    if value is None or not str(value).strip():
        return None
    day = parse_day(value)
    if day is None:
        raise ValidationError(f"Invalid {name} date: {value!r}")
    return day


def search(
    records: Iterable[ParcelRecord],
    query: Optional[str] = "",
    field: str = ALL,
    date_range: Union[DateRange, Mapping[str, Any], None] = None,
    *,
    status: Optional[str] = None,
) -> list[ParcelRecord]:
    """
    Status pre-filter, then text match, then creation-date window.

    `date_range` is `{"start": ..., "end": ...}` (either key optional) or a
    DateRange.
    """
    field = normalize_field(field)
    window = DateRange.coerce(date_range)
    out = filter_by_status(records, status)
    if query and query.strip():
        out = [r for r in out if matches(r, query, field)]
    return filter_by_date_range(out, window.start, window.end)


__all__ = [
    "SEARCH_FIELDS",
    "DateRange",
    "normalize_field",
    "is_numeric_query",
    "parse_day",
    "matches",
    "filter_by_status",
    "filter_by_date_range",
    "search",
]
