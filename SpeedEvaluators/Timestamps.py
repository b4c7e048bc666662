import re
from datetime import datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"

# strptime alone would also accept 1-6 fractional digits and "Z"
_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}[+-]\d{2}:\d{2}", re.ASCII)


class InvalidTimestampError(ValueError):
    pass


def parse_timestamp(value: str) -> datetime:
    """Parse a camera timestamp like 2024-05-01T12:00:00.250+02:00"""
    if not isinstance(value, str) or not _TIMESTAMP_RE.fullmatch(value):
        raise InvalidTimestampError(f"invalid timestamp format: {value!r}")
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise InvalidTimestampError(f"invalid timestamp format: {value!r}") from e
