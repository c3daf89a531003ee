"""
Civil-time helpers for the fixed UTC+8 scheduling zone (Asia/Shanghai, no DST).

Every conversion here is pure; `now()` is the single place the wall clock is
read so tests can pin it.
"""
import re
import time
from datetime import datetime, timedelta, timezone

TZ_OFFSET_SECONDS = 8 * 3600
TZ_NAME = "Asia/Shanghai"
CIVIL_TZ = timezone(timedelta(seconds=TZ_OFFSET_SECONDS))

# HTML datetime-local shape, two-digit fields; browsers may append :SS, which is ignored.
_CIVIL_INPUT_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::\d{2})?$")


class InvalidFormat(ValueError):
    """Civil date-time string could not be parsed."""


def now() -> int:
    return int(time.time())


def _civil(epoch_sec: int) -> datetime:
    return datetime.fromtimestamp(int(epoch_sec), tz=CIVIL_TZ)


def to_epoch(civil: str) -> int:
    """`YYYY-MM-DDTHH:MM` in UTC+8 -> epoch seconds."""
    m = _CIVIL_INPUT_RE.match((civil or "").strip())
    if not m:
        raise InvalidFormat(f"Unrecognised date-time: {civil!r}")
    y, mo, d, hh, mm = (int(g) for g in m.groups())
    try:
        dt = datetime(y, mo, d, hh, mm, tzinfo=CIVIL_TZ)
    except ValueError as e:
        raise InvalidFormat(f"Out-of-range date-time: {civil!r}") from e
    return int(dt.timestamp())


def civil_date(epoch_sec: int) -> str:
    return _civil(epoch_sec).strftime("%Y-%m-%d")


def civil_datetime(epoch_sec: int) -> str:
    return _civil(epoch_sec).strftime("%Y-%m-%d %H:%M:%S")


def ten_minute_bucket(epoch_sec: int) -> str:
    dt = _civil(epoch_sec)
    return dt.strftime("%Y%m%d%H") + f"{(dt.minute // 10) * 10:02d}"


def civil_input_value(epoch_sec: int) -> str:
    """Inverse of `to_epoch` (minute precision), handy for prefilled forms and tests."""
    return _civil(epoch_sec).strftime("%Y-%m-%dT%H:%M")


_LEAD_UNITS = (
    (30 * 24 * 3600, "30 days"),
    (7 * 24 * 3600, "7 days"),
    (3 * 24 * 3600, "3 days"),
    (24 * 3600, "1 day"),
    (12 * 3600, "12 hours"),
    (6 * 3600, "6 hours"),
    (3600, "1 hour"),
    (30 * 60, "30 minutes"),
    (10 * 60, "10 minutes"),
    (60, "1 minute"),
)


def humanize_seconds(sec: int) -> str:
    """Largest preset unit not exceeding `sec` (the admin picks lead times from these presets)."""
    if sec <= 0:
        return "no minimum lead time"
    for unit, name in _LEAD_UNITS:
        if sec >= unit:
            return name
    return f"{sec} seconds"
