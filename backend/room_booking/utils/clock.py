from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def fixed_clock(now: datetime) -> Clock:
    """Return a clock frozen at `now` (must be timezone-aware)."""
    if now.tzinfo is None:
        raise ValueError("fixed clock requires a timezone-aware datetime")

    def _clock() -> datetime:
        return now

    return _clock
