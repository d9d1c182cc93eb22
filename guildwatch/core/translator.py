"""Convert member-join observations into notification records."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

from guildwatch.constants import MONTH_NAMES
from guildwatch.core.events import MemberJoined
from guildwatch.core.models import NotificationRecord

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_long_date(moment: datetime) -> str:
    """``October 19, 2026``"""
    return f"{MONTH_NAMES[moment.month - 1]} {moment.day}, {moment.year}"


def format_clock_time(moment: datetime) -> str:
    """``03:04:05 PM``"""
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{hour:02d}:{moment.minute:02d}:{moment.second:02d} {meridiem}"


def format_instant(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


class EventTranslator:
    """Build a NotificationRecord from a MemberJoined event.

    Date and time are rendered in ``display_tz`` (process local time when not
    set); the timestamp is always UTC.
    """

    def __init__(self, *, clock: Clock = _utc_now, display_tz: Optional[tzinfo] = None) -> None:
        self._clock = clock
        self._display_tz = display_tz

    def translate(self, event: MemberJoined, source_label: str) -> NotificationRecord:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(self._display_tz)
        return NotificationRecord(
            username=event.username,
            user_id=event.user_id,
            guild_name=event.community_name,
            guild_id=event.community_id,
            date=format_long_date(local),
            time=format_clock_time(local),
            timestamp=format_instant(now),
            source=source_label,
        )
