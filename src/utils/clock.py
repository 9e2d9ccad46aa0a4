"""UTC timestamp helpers.

Timestamps are persisted as ISO-8601 strings in UTC. Managers take a clock
callable so tests can move time forward without patching globals.
"""

from datetime import datetime
from typing import Callable, Optional

import pytz

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def is_past(value: Optional[str], now: datetime) -> bool:
    """Return True when the stored timestamp is set and earlier than ``now``."""
    moment = parse_iso(value)
    return moment is not None and now > moment
