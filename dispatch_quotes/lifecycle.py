"""
Quote lifecycle state machine.

    PENDING --follow-up action--> FOLLOWING_UP
    PENDING | FOLLOWING_UP --outcome WON--> CONVERTED
    PENDING | FOLLOWING_UP --outcome LOST--> LOST
    PENDING | FOLLOWING_UP --expires_at passed, no outcome--> EXPIRED

CONVERTED, LOST and EXPIRED are terminal. Expiry is derived from ``now`` and
``expires_at``; nothing here touches the database.
"""
from datetime import datetime, timedelta
from typing import Optional

from .errors import InvalidStateTransition
from .models import Quote, QuoteActionType, QuoteOutcome, QuoteStatus

ACTIVE_STATUSES = frozenset({QuoteStatus.PENDING, QuoteStatus.FOLLOWING_UP})
TERMINAL_STATUSES = frozenset({QuoteStatus.CONVERTED, QuoteStatus.LOST, QuoteStatus.EXPIRED})

FOLLOW_UP_ACTIONS = frozenset({
    QuoteActionType.CALLED,
    QuoteActionType.EMAILED,
    QuoteActionType.TEXTED,
    QuoteActionType.FOLLOW_UP,
})

OUTCOME_STATUS = {
    QuoteOutcome.WON: QuoteStatus.CONVERTED,
    QuoteOutcome.LOST: QuoteStatus.LOST,
}


def is_terminal(status) -> bool:
    return QuoteStatus(status) in TERMINAL_STATUSES


def is_expired(quote: Quote, now: datetime) -> bool:
    """True when the quote ran out its window without an outcome."""
    return (
        QuoteStatus(quote.status) in ACTIVE_STATUSES
        and quote.outcome is None
        and now >= quote.expires_at
    )


def effective_status(quote: Quote, now: datetime) -> QuoteStatus:
    if is_expired(quote, now):
        return QuoteStatus.EXPIRED
    return QuoteStatus(quote.status)


def initialize(quote: Quote, now: datetime, expiry_hours: int) -> Quote:
    quote.status = QuoteStatus.PENDING
    quote.outcome = None
    quote.outcome_reason = None
    quote.outcome_at = None
    quote.follow_up_count = 0
    quote.action_count = 0
    quote.is_flagged = False
    quote.created_at = now
    quote.updated_at = now
    quote.expires_at = now + timedelta(hours=expiry_hours)
    return quote


def ensure_active(quote: Quote, now: datetime, what: str) -> None:
    status = effective_status(quote, now)
    if status in TERMINAL_STATUSES:
        raise InvalidStateTransition(
            f"Quote {quote.id} is {status.value}; cannot {what}"
        )


def ensure_outcome_allowed(quote: Quote, now: datetime) -> None:
    if quote.outcome is not None:
        raise InvalidStateTransition(
            f"Quote {quote.id} already has outcome {QuoteOutcome(quote.outcome).value}"
        )
    ensure_active(quote, now, "set an outcome")


def apply_follow_up(
    quote: Quote,
    action_type: QuoteActionType,
    now: datetime,
    next_follow_up: Optional[datetime] = None,
) -> Quote:
    if action_type not in FOLLOW_UP_ACTIONS:
        raise ValueError(f"{action_type} is not a follow-up action")

    if action_type == QuoteActionType.FOLLOW_UP:
        quote.follow_up_count = (quote.follow_up_count or 0) + 1
        quote.last_follow_up = now
    if next_follow_up is not None:
        quote.next_follow_up = next_follow_up

    if QuoteStatus(quote.status) == QuoteStatus.PENDING:
        quote.status = QuoteStatus.FOLLOWING_UP
    return quote


def apply_outcome(
    quote: Quote,
    outcome: QuoteOutcome,
    reason: Optional[str],
    now: datetime,
) -> Quote:
    quote.outcome = outcome
    quote.outcome_reason = reason
    quote.outcome_at = now
    quote.status = OUTCOME_STATUS[outcome]
    return quote
