"""
TimestampValidator - parses time-series timestamps.
"""

from datetime import datetime, timezone
from typing import Any

from .base_validator import BaseValidator

DEFAULT_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %H:%M",
)


def to_naive_utc(ts: datetime) -> datetime:
    """Convert an offset-aware datetime to naive UTC; naive values pass through."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: str, formats: tuple[str, ...] = DEFAULT_FORMATS) -> datetime:
    """
    Parse a timestamp cell such as ``2022-09-01 00:00:00``.

    ISO 8601 is tried first, then each of ``formats`` in order.
    Values with a UTC offset are converted to naive UTC so every parsed
    timestamp can be compared with every other.

    Raises:
        ValueError: If no format matches
    """
    text = value.strip()
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    for fmt in formats:
        try:
            return to_naive_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    raise ValueError(f"Invalid timestamp format: {value}")


class TimestampValidator(BaseValidator):
    """
    Validates that a field parses as a timestamp and returns the datetime.

    Parameters:
    - formats: Extra strptime formats tried after ISO 8601
    """

    rule_type = "timestamp"

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.formats = tuple(self.parameters.get("formats") or DEFAULT_FORMATS)

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime):
            return to_naive_utc(value)

        try:
            return parse_timestamp(str(value), self.formats)
        except ValueError:
            self.fail("InvalidTimestamp", f"Invalid timestamp format: {value}")

