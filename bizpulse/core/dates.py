"""
Date parsing for query filters

Datetimes are stored as naive UTC; aware inputs are converted first.
"""
from datetime import datetime, timezone
from typing import Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from bizpulse.core.exceptions import ValidationException

# Same parser as request bodies, so a stored date is always usable as a filter
_datetime_adapter = TypeAdapter(datetime)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: Optional[str], field: str) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime string; empty means no filter"""
    if value is None or value == "":
        return None
    try:
        parsed = _datetime_adapter.validate_python(value.strip())
    except ValidationError:
        raise ValidationException(f"Invalid date format for {field}", field=field, value=value)
    return to_naive_utc(parsed)


def parse_date_range(start_date: Optional[str], end_date: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    start = parse_datetime(start_date, "startDate")
    end = parse_datetime(end_date, "endDate")
    if start and end and start > end:
        raise ValidationException("startDate must be before endDate", field="startDate", value=start_date)
    return start, end


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a stored naive-UTC datetime with an explicit UTC offset"""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")
