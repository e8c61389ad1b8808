import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from . import lifecycle, models, schemas
from .clock import Clock, SystemClock, time_until_expiry
from .config import settings
from .errors import NotFoundError, ValidationError
from .prioritize import FILTERS, QuoteView, prioritize

logger = logging.getLogger(__name__)

_system_clock = SystemClock()

# ---------- Helpers ----------

def _now(clock: Optional[Clock]) -> datetime:
    return (clock or _system_clock).now()


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Columns hold naive UTC; aware inputs are converted, naive ones taken as UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _require_text(value: Optional[str], what: str) -> str:
    value = _clean(value)
    if value is None:
        raise ValidationError(f"{what} is required")
    return value


def _parse(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {what}: {value!r}")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _get_user(db: Session, user_id: Optional[str]) -> models.User:
    user = db.get(models.User, user_id) if user_id else None
    if not user:
        raise NotFoundError(f"User {user_id!r} not found")
    return user


def _load_for_update(db: Session, quote_id: str) -> models.Quote:
    # Row lock on backends that support it; SQLite serializes writers anyway
    quote = db.execute(
        select(models.Quote).where(models.Quote.id == quote_id).with_for_update()
    ).scalar_one_or_none()
    if not quote:
        raise NotFoundError(f"Quote {quote_id!r} not found")
    return quote


def _append_action(
    db: Session,
    quote: models.Quote,
    action_type: models.QuoteActionType,
    notes: Optional[str],
    actor_id: Optional[str],
    now: datetime,
) -> models.QuoteAction:
    quote.action_count = (quote.action_count or 0) + 1
    quote.last_action_at = now
    quote.updated_at = now
    action = models.QuoteAction(
        quote_id=quote.id,
        sequence=quote.action_count,
        action_type=action_type,
        notes=notes,
        user_id=actor_id,
        created_at=now,
    )
    db.add(action)
    return action

# ---------- Users ----------

def create_user(db: Session, name: str, email: Optional[str] = None, user_id: Optional[str] = None) -> models.User:
    user = models.User(name=_require_text(name, "User name"), email=_clean(email))
    if user_id:
        user.id = user_id
    db.add(user)
    _commit(db)
    db.refresh(user)
    return user

# ---------- Quotes ----------

def create_quote(
    db: Session,
    data: schemas.QuoteCreate,
    actor_id: str,
    clock: Optional[Clock] = None,
    expiry_hours: Optional[int] = None,
) -> models.Quote:
    now = _now(clock)
    client_name = _require_text(data.client_name, "Client name")
    service_type = _require_text(data.service_type, "Service type")
    _get_user(db, actor_id)
    if data.assigned_to_id:
        _get_user(db, data.assigned_to_id)

    quote = models.Quote(
        client_name=client_name,
        client_email=_clean(data.client_email),
        client_phone=_clean(data.client_phone),
        service_type=service_type,
        source=_clean(data.source),
        date_of_service=_to_utc(data.date_of_service),
        pickup_date=_to_utc(data.pickup_date),
        pickup_location=_clean(data.pickup_location),
        dropoff_location=_clean(data.dropoff_location),
        estimated_amount=data.estimated_amount,
        notes=_clean(data.notes),
        next_follow_up=_to_utc(data.next_follow_up),
        created_by_id=actor_id,
        # New quotes land with whoever took the call
        assigned_to_id=data.assigned_to_id or actor_id,
    )
    lifecycle.initialize(
        quote, now, expiry_hours if expiry_hours is not None else settings.quote_expiry_hours
    )
    db.add(quote)
    db.flush()

    _append_action(db, quote, models.QuoteActionType.CREATED, None, actor_id, now)
    _commit(db)
    db.refresh(quote)
    logger.info("Quote %s created for %s (%s)", quote.id, quote.client_name, quote.service_type)
    return quote


def record_action(
    db: Session,
    quote_id: str,
    action_type,
    notes: Optional[str],
    actor_id: str,
    clock: Optional[Clock] = None,
    next_follow_up: Optional[datetime] = None,
) -> models.Quote:
    now = _now(clock)
    action_type = _parse(models.QuoteActionType, action_type, "action type")
    if action_type not in lifecycle.FOLLOW_UP_ACTIONS:
        raise ValidationError(f"{action_type.value} is not a follow-up action")
    notes = _require_text(notes, f"Notes for {action_type.value}")
    _get_user(db, actor_id)

    quote = _load_for_update(db, quote_id)
    lifecycle.ensure_active(quote, now, f"record {action_type.value}")

    lifecycle.apply_follow_up(quote, action_type, now, _to_utc(next_follow_up))
    _append_action(db, quote, action_type, notes, actor_id, now)
    _commit(db)
    db.refresh(quote)
    return quote


def add_note(
    db: Session,
    quote_id: str,
    notes: Optional[str],
    actor_id: str,
    clock: Optional[Clock] = None,
) -> models.Quote:
    """Notes stay open on closed quotes; status is never touched."""
    now = _now(clock)
    notes = _require_text(notes, "Note")
    _get_user(db, actor_id)

    quote = _load_for_update(db, quote_id)
    _append_action(db, quote, models.QuoteActionType.NOTE_ADDED, notes, actor_id, now)
    _commit(db)
    db.refresh(quote)
    return quote


def set_outcome(
    db: Session,
    quote_id: str,
    outcome,
    actor_id: str,
    reason: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> models.Quote:
    now = _now(clock)
    outcome = _parse(models.QuoteOutcome, outcome, "outcome")
    reason = _clean(reason)
    _get_user(db, actor_id)

    quote = _load_for_update(db, quote_id)
    lifecycle.ensure_outcome_allowed(quote, now)

    lifecycle.apply_outcome(quote, outcome, reason, now)
    _append_action(db, quote, models.QuoteActionType.OUTCOME_SET, reason, actor_id, now)
    _commit(db)
    db.refresh(quote)
    logger.info("Quote %s closed as %s", quote.id, outcome.value)
    return quote


def reassign(
    db: Session,
    quote_id: str,
    new_assignee_id: str,
    actor_id: str,
    clock: Optional[Clock] = None,
) -> models.Quote:
    now = _now(clock)
    _get_user(db, actor_id)
    assignee = _get_user(db, new_assignee_id)

    quote = _load_for_update(db, quote_id)
    lifecycle.ensure_active(quote, now, "reassign")

    previous = quote.assigned_to.name if quote.assigned_to else "nobody"
    quote.assigned_to_id = assignee.id
    _append_action(
        db, quote, models.QuoteActionType.REASSIGNED,
        f"Reassigned from {previous} to {assignee.name}", actor_id, now,
    )
    _commit(db)
    db.refresh(quote)
    logger.info("Quote %s reassigned to %s", quote.id, assignee.id)
    return quote


def toggle_flag(db: Session, quote_id: str, clock: Optional[Clock] = None) -> models.Quote:
    # Display marker only: no history row, allowed in any status
    quote = _load_for_update(db, quote_id)
    quote.is_flagged = not quote.is_flagged
    quote.updated_at = _now(clock)
    _commit(db)
    db.refresh(quote)
    return quote

# ---------- Expiry ----------

def expire_stale_quotes(db: Session, clock: Optional[Clock] = None) -> int:
    """
    Persist EXPIRED for quotes whose window has passed.

    The WHERE clause re-checks status and outcome so a concurrent
    set_outcome is never overwritten.
    """
    now = _now(clock)
    result = db.execute(
        update(models.Quote)
        .where(
            models.Quote.status.in_(list(lifecycle.ACTIVE_STATUSES)),
            models.Quote.outcome.is_(None),
            models.Quote.expires_at <= now,
        )
        .values(status=models.QuoteStatus.EXPIRED, updated_at=now)
        # the commit below expires loaded quotes, so they reload the new status
        .execution_options(synchronize_session=False)
    )
    _commit(db)
    expired = result.rowcount or 0
    if expired:
        logger.info("Expired %d stale quote(s)", expired)
    return expired

# ---------- Reads ----------

def get_quote_with_history(db: Session, quote_id: str, clock: Optional[Clock] = None) -> models.Quote:
    expire_stale_quotes(db, clock)
    quote = db.execute(
        select(models.Quote)
        .where(models.Quote.id == quote_id)
        .options(
            selectinload(models.Quote.actions).selectinload(models.QuoteAction.user),
            selectinload(models.Quote.created_by),
            selectinload(models.Quote.assigned_to),
        )
    ).scalar_one_or_none()
    if not quote:
        raise NotFoundError(f"Quote {quote_id!r} not found")
    return quote


def list_quotes(
    db: Session,
    filter: str = "active",
    clock: Optional[Clock] = None,
    assigned_to: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[QuoteView]:
    if filter not in FILTERS:
        raise ValidationError(f"Unknown filter {filter!r}; expected one of {', '.join(FILTERS)}")
    now = _now(clock)
    expire_stale_quotes(db, clock)

    q = select(models.Quote).options(
        selectinload(models.Quote.created_by),
        selectinload(models.Quote.assigned_to),
    )
    if filter == "active":
        q = q.where(models.Quote.status.in_(list(lifecycle.ACTIVE_STATUSES)))
    if assigned_to:
        q = q.where(models.Quote.assigned_to_id == assigned_to)
    # Newest first is the tie order the sort preserves
    quotes = db.execute(q.order_by(models.Quote.created_at.desc())).scalars().all()

    views = prioritize(quotes, filter, now)
    if limit is not None:
        views = views[:limit]
    return views


def quote_stats(db: Session, clock: Optional[Clock] = None) -> Dict[str, int]:
    now = _now(clock)
    expire_stale_quotes(db, clock)

    counts = dict(
        db.execute(
            select(models.Quote.status, func.count(models.Quote.id)).group_by(models.Quote.status)
        ).all()
    )
    active = db.execute(
        select(models.Quote).where(models.Quote.status.in_(list(lifecycle.ACTIVE_STATUSES)))
    ).scalars().all()

    expiring_soon = 0
    for quote in active:
        expiry = time_until_expiry(quote.expires_at, now)
        if expiry.urgent and not expiry.expired:
            expiring_soon += 1

    stats = {status.value.lower(): int(counts.get(status, 0)) for status in models.QuoteStatus}
    stats["flagged"] = sum(1 for quote in active if quote.is_flagged)
    stats["expiring_soon"] = expiring_soon
    return stats
