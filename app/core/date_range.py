"""
Symbolic time-range tokens ("7d", "30d", "90d", "ytd", "all") resolved to start timestamps
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

RANGE_TOKENS = ["7d", "30d", "90d", "ytd", "all"]

# Lower bound used for "all" and for anything unrecognised
EPOCH_FLOOR = datetime(2000, 1, 1, tzinfo=timezone.utc)

_DAY_WINDOWS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}


def resolve_start_date(range_token: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Map a range token to the start of its window, anchored at `now`.

    Unknown tokens fall back to EPOCH_FLOOR instead of raising.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    token = (range_token or "").strip().lower()

    if token in _DAY_WINDOWS:
        return now - timedelta(days=_DAY_WINDOWS[token])
    if token == "ytd":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return EPOCH_FLOOR


def parse_window_days(range_token: Optional[str], default: int = 7) -> int:
    """Parse a "<N>d" token into N days; anything unparseable gives `default`"""
    if not range_token:
        return default
    try:
        days = int(range_token.strip().lower().replace("d", ""))
    except ValueError:
        return default
    return days or default
