"""
Directory Timestamp Codec
=========================
Converts Active Directory time attributes to and from Python datetimes.

Account time fields (pwdLastSet, accountExpires, lockoutTime,
msDS-UserPasswordExpiryTimeComputed) are FILETIME integers: 100-nanosecond
ticks since 1601-01-01 UTC. ``0`` and the maximum signed 64-bit value both
mean "unset/never". Object bookkeeping fields such as whenChanged use LDAP
GeneralizedTime strings instead (20240115103000.0Z).

All decoded datetimes are timezone-aware UTC.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from ad_lookup.errors import MalformedTimestamp

# Ticks between 1601-01-01 and 1970-01-01
EPOCH_OFFSET_TICKS = 116444736000000000
TICKS_PER_MILLISECOND = 10000
NEVER_SENTINEL = "9223372036854775807"

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# English abbreviations keep rendering independent of the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

NOT_AVAILABLE = "N/A"


def decode_filetime(raw: Union[str, int, None]) -> Optional[datetime]:
    """
    Decode a FILETIME tick count into a UTC datetime.

    Args:
        raw: Tick count as string or int (as returned by the directory)

    Returns:
        UTC datetime, or None for empty input and the "0"/"never" sentinels

    Raises:
        MalformedTimestamp: if the value is not an integer or lies outside
            the representable calendar range
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text or text == "0" or text == NEVER_SENTINEL:
        return None

    try:
        ticks = int(text)
    except ValueError:
        raise MalformedTimestamp(raw)

    milliseconds = (ticks - EPOCH_OFFSET_TICKS) // TICKS_PER_MILLISECOND
    try:
        return UNIX_EPOCH + timedelta(milliseconds=milliseconds)
    except OverflowError:
        raise MalformedTimestamp(raw, reason="outside the supported date range")


def encode_filetime(value: Union[datetime, date]) -> str:
    """
    Encode a datetime (or date, taken as midnight UTC) as a FILETIME string.

    Naive datetimes are treated as UTC. Sub-millisecond precision is dropped,
    so ``encode_filetime(decode_filetime(t))`` equals ``t`` to the millisecond.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    milliseconds = (value - UNIX_EPOCH) // timedelta(milliseconds=1)
    return str(milliseconds * TICKS_PER_MILLISECOND + EPOCH_OFFSET_TICKS)


def decode_generalized_time(raw: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an LDAP GeneralizedTime value (e.g. ``20240115103000.0Z``).

    Only the ``YYYYMMDDHHMMSS`` part is significant; fractions and the
    trailing ``Z`` are ignored. Values are treated as UTC.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)

    text = str(raw).strip()
    if not text:
        return None

    digits = text[:14]
    if len(digits) != 14 or not digits.isdigit():
        raise MalformedTimestamp(raw, reason="not a GeneralizedTime value")
    try:
        parsed = datetime.strptime(digits, "%Y%m%d%H%M%S")
    except ValueError as e:
        raise MalformedTimestamp(raw, reason=str(e))
    return parsed.replace(tzinfo=timezone.utc)


def format_date(value: Optional[datetime]) -> str:
    """Render a datetime as ``Mon D, YYYY, HH:MM`` (UTC, 24-hour) or ``N/A``."""
    if value is None:
        return NOT_AVAILABLE
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    month = MONTH_ABBREVIATIONS[value.month - 1]
    return f"{month} {value.day}, {value.year}, {value.hour:02d}:{value.minute:02d}"
