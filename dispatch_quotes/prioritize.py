"""
Ordering and display decoration for quote lists.
"""
from dataclasses import dataclass
from datetime import datetime
from functools import cmp_to_key
from typing import Iterable, List

from . import lifecycle
from .clock import ExpiryInfo, time_since, time_until_expiry
from .models import Quote, QuoteStatus

FILTERS = ("active", "all")


@dataclass(frozen=True)
class QuoteView:
    quote: Quote
    status: QuoteStatus
    is_overdue: bool
    expiry: ExpiryInfo
    show_expiry_warning: bool
    last_action_text: str


def compare_quotes(a: Quote, b: Quote) -> int:
    # Flagged first
    if bool(a.is_flagged) != bool(b.is_flagged):
        return -1 if a.is_flagged else 1
    # Soonest follow-up first, only when both sides have one
    if a.next_follow_up is not None and b.next_follow_up is not None:
        if a.next_follow_up < b.next_follow_up:
            return -1
        if a.next_follow_up > b.next_follow_up:
            return 1
    return 0


def sort_quotes(quotes: Iterable[Quote]) -> List[Quote]:
    # sorted() is stable: ties keep their input order
    return sorted(quotes, key=cmp_to_key(compare_quotes))


def filter_quotes(quotes: Iterable[Quote], filter: str, now: datetime) -> List[Quote]:
    if filter not in FILTERS:
        raise ValueError(f"Unknown filter {filter!r}; expected one of {FILTERS}")
    if filter == "all":
        return list(quotes)
    return [q for q in quotes if lifecycle.effective_status(q, now) in lifecycle.ACTIVE_STATUSES]


def decorate(quote: Quote, now: datetime) -> QuoteView:
    status = lifecycle.effective_status(quote, now)
    active = status in lifecycle.ACTIVE_STATUSES
    expiry = time_until_expiry(quote.expires_at, now)
    return QuoteView(
        quote=quote,
        status=status,
        is_overdue=active and quote.next_follow_up is not None and quote.next_follow_up < now,
        expiry=expiry,
        show_expiry_warning=active and expiry.urgent,
        last_action_text=time_since(quote.last_action_at, now),
    )


def prioritize(quotes: Iterable[Quote], filter: str, now: datetime) -> List[QuoteView]:
    return [decorate(q, now) for q in sort_quotes(filter_quotes(quotes, filter, now))]
