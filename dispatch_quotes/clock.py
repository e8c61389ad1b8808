"""
Time helpers for quote follow-up display and urgency.

Every function here takes ``now`` explicitly; callers get it from a clock
object so that tests can pin time.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from .models import utcnow

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


class FixedClock:
    """Clock pinned to a given instant; moves only when told to."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta = timedelta(0), **kwargs) -> datetime:
        self._now = self._now + delta + timedelta(**kwargs)
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when


@dataclass(frozen=True)
class ExpiryInfo:
    text: str
    urgent: bool
    expired: bool


def time_since(then: Optional[datetime], now: datetime) -> str:
    if then is None:
        return "Never"

    elapsed = now - then
    minutes = elapsed // MINUTE
    hours = elapsed // HOUR
    days = elapsed // DAY

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return f"{then.month}/{then.day}/{then.year}"


def time_until_expiry(expires_at: datetime, now: datetime) -> ExpiryInfo:
    remaining = expires_at - now
    if remaining <= timedelta(0):
        return ExpiryInfo("Expired", urgent=True, expired=True)

    hours = remaining // HOUR
    minutes = (remaining % HOUR) // MINUTE

    if hours < 1:
        return ExpiryInfo(f"{minutes}m left", urgent=True, expired=False)
    if hours < 24:
        return ExpiryInfo(f"{hours}h left", urgent=hours < 12, expired=False)
    return ExpiryInfo(f"{hours // 24}d left", urgent=False, expired=False)
