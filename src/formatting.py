from datetime import datetime, timezone
from typing import Optional

RELATIVE_UNITS = [
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
]


def format_duration(seconds: Optional[float]) -> Optional[str]:
    """125 -> '2:05', 3725 -> '1:02:05'"""
    if seconds is None or seconds < 0:
        return None
    total = int(seconds)
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    elapsed = (now - moment).total_seconds()

    for unit, size in RELATIVE_UNITS:
        count = int(elapsed // size)
        if count >= 1:
            return f"{count} {unit}{'s' if count > 1 else ''} ago"
    return "just now"


def format_view_count(views: Optional[int]) -> str:
    views = views or 0
    if views == 1:
        return "1 view"
    if views < 1_000:
        return f"{views} views"
    # Round before picking the unit so 999_999 reads "1M", not "1000K".
    for suffix, size in (("K", 1_000), ("M", 1_000_000), ("B", 1_000_000_000)):
        value = f"{views / size:.1f}"
        if float(value) < 1_000 or suffix == "B":
            value = value.rstrip("0").rstrip(".")
            return f"{value}{suffix} views"
