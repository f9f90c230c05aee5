"""Scalar normalizers: sizes, percentages, durations and timestamps.

Every function here is total over strings: unparseable input degrades to a
neutral value (0, 0.0 or the input itself) instead of raising. Callers that
need to tell "unknown" from "zero" must look at the raw string.
"""

import re
from datetime import datetime, timedelta, timezone

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07|\x1b[@-Z\\-_]")

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?|\.\d+)\s*([A-Za-z]*)\s*$")

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1000,
    "mb": 1000**2,
    "gb": 1000**3,
    "tb": 1000**4,
    "pb": 1000**5,
    "kib": 1024,
    "mib": 1024**2,
    "gib": 1024**3,
    "tib": 1024**4,
    "pib": 1024**5,
}

_DURATION_PART_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(milliseconds?|ms|seconds?|secs?|s|minutes?|mins?|m|hours?|hrs?|h)(?![a-z])",
    re.IGNORECASE,
)
_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
}
_CLOCK_RE = re.compile(r"^\s*(?:(\d+):)?(\d{1,2}):(\d{2}(?:\.\d+)?)\s*$")
_NUMBER_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*$")

_ISO_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$"
)
# git %ai / docker events / sqlite style: 2024-01-15 10:30:00[.123] [+0000]
_SPACED_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})(\.\d+)?\s*(Z|UTC|[+-]\d{2}:?\d{2})?$"
)
# git default: Mon Jan 15 10:30:00 2024 +0000
_GIT_DEFAULT_RE = re.compile(
    r"^(?:[A-Z][a-z]{2},?\s+)?([A-Z][a-z]{2})\s+(\d{1,2})\s+(\d{2}:\d{2}:\d{2})\s+(\d{4})"
    r"(?:\s+([+-]\d{4}))?$"
)
# RFC 2822: Mon, 15 Jan 2024 10:30:00 +0000
_RFC2822_RE = re.compile(
    r"^(?:[A-Z][a-z]{2},\s+)?(\d{1,2})\s+([A-Z][a-z]{2})\s+(\d{4})\s+(\d{2}:\d{2}:\d{2})"
    r"(?:\s+(GMT|UTC|Z|[+-]\d{4}))?$"
)
_MONTHS = {
    name: index
    for index, name in enumerate(
        ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
        start=1,
    )
}


def _require_str(text, func: str):
    if not isinstance(text, str):
        raise TypeError(f"{func}() expects str, got {type(text).__name__}")


def strip_ansi(text: str) -> str:
    """Remove terminal colour and cursor escape sequences."""
    _require_str(text, "strip_ansi")
    return _ANSI_RE.sub("", text)


def size_to_bytes(text: str) -> int:
    """Convert '150MiB', '1.5kB', '1024B' or '512' to a byte count.

    Decimal suffixes (kB, MB, GB, TB) are 1000-based, binary suffixes
    (KiB, MiB, GiB, TiB) are 1024-based. Placeholders like '--' give 0.
    """
    _require_str(text, "size_to_bytes")
    m = _SIZE_RE.match(text)
    if not m:
        return 0
    multiplier = _SIZE_UNITS.get(m.group(2).lower())
    if multiplier is None:
        return 0
    return round(float(m.group(1)) * multiplier)


def size_pair_to_bytes(text: str) -> tuple[int, int]:
    """Convert a 'used / limit' pair such as '150MiB / 1GiB'."""
    _require_str(text, "size_pair_to_bytes")
    left, sep, right = text.partition("/")
    if not sep:
        return size_to_bytes(left), 0
    return size_to_bytes(left), size_to_bytes(right)


def percent_to_float(text: str) -> float:
    """'1.23%' -> 1.23; '--' or '' -> 0.0."""
    _require_str(text, "percent_to_float")
    m = re.match(r"^\s*(-?\d+(?:\.\d+)?)\s*%?\s*$", text)
    return float(m.group(1)) if m else 0.0


def duration_to_seconds(text: str) -> float:
    """Convert '0.42s', '250ms', '1m 30s', '1h2m3.5s', '1:02:03' or '12' to seconds."""
    _require_str(text, "duration_to_seconds")
    stripped = text.strip()
    if not stripped:
        return 0.0

    m = _NUMBER_RE.match(stripped)
    if m:
        return float(m.group(1))

    m = _CLOCK_RE.match(stripped)
    if m:
        hours = int(m.group(1) or 0)
        return hours * 3600 + int(m.group(2)) * 60 + float(m.group(3))

    total = 0.0
    matched = False
    for value, unit in _DURATION_PART_RE.findall(stripped):
        unit = unit.lower()
        if unit.startswith("milli"):
            unit = "ms"
        factor = _DURATION_UNITS.get(unit) or _DURATION_UNITS.get(unit.rstrip("s"))
        if factor is None:
            factor = _DURATION_UNITS[unit[0]]
        total += float(value) * factor
        matched = True
    return round(total, 6) if matched else 0.0


def _tz_from_offset(offset: str | None) -> timezone | None:
    if offset is None:
        return None
    if offset in ("Z", "UTC", "GMT"):
        return timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:4]))
    return timezone(sign * delta)


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def timestamp_to_canonical(text: str) -> str:
    """Normalize a tool timestamp to ISO-8601.

    ISO input is returned unchanged, so the function is idempotent.
    Unrecognized input is returned stripped rather than raising.
    """
    _require_str(text, "timestamp_to_canonical")
    stripped = text.strip()
    if not stripped or _ISO_RE.match(stripped):
        return stripped

    m = _SPACED_RE.match(stripped)
    if m:
        date, clock, frac, offset = m.groups()
        micro = int((frac or ".0")[1:7].ljust(6, "0"))
        try:
            dt = datetime.fromisoformat(f"{date}T{clock}").replace(
                microsecond=micro, tzinfo=_tz_from_offset(offset)
            )
        except ValueError:
            return stripped
        return _iso(dt)

    m = _GIT_DEFAULT_RE.match(stripped)
    if m:
        month, day, clock, year, offset = m.groups()
        return _from_parts(year, month, day, clock, offset, stripped)

    m = _RFC2822_RE.match(stripped)
    if m:
        day, month, year, clock, offset = m.groups()
        return _from_parts(year, month, day, clock, offset, stripped)

    if stripped.isdigit() and len(stripped) in (10, 13):
        seconds = int(stripped) / (1000 if len(stripped) == 13 else 1)
        return _iso(datetime.fromtimestamp(seconds, tz=timezone.utc))

    return stripped


def _from_parts(year, month, day, clock, offset, fallback: str) -> str:
    month_num = _MONTHS.get(month)
    if month_num is None:
        return fallback
    hour, minute, second = (int(p) for p in clock.split(":"))
    try:
        dt = datetime(
            int(year), month_num, int(day), hour, minute, second, tzinfo=_tz_from_offset(offset)
        )
    except ValueError:
        return fallback
    return _iso(dt)
