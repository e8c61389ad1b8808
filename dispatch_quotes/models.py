# dispatch_quotes/models.py
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, Text, Numeric,
    Enum, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def _uuid():
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Stored naive, always UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QuoteStatus(str, enum.Enum):
    PENDING = "PENDING"
    FOLLOWING_UP = "FOLLOWING_UP"
    CONVERTED = "CONVERTED"
    LOST = "LOST"
    EXPIRED = "EXPIRED"


class QuoteOutcome(str, enum.Enum):
    WON = "WON"
    LOST = "LOST"


class QuoteActionType(str, enum.Enum):
    CREATED = "CREATED"
    CALLED = "CALLED"
    EMAILED = "EMAILED"
    TEXTED = "TEXTED"
    FOLLOW_UP = "FOLLOW_UP"
    NOTE_ADDED = "NOTE_ADDED"
    REASSIGNED = "REASSIGNED"
    STATUS_CHANGE = "STATUS_CHANGE"
    OUTCOME_SET = "OUTCOME_SET"


ACTION_LABELS = {
    QuoteActionType.CREATED: "Created",
    QuoteActionType.CALLED: "Called",
    QuoteActionType.EMAILED: "Emailed",
    QuoteActionType.TEXTED: "Texted",
    QuoteActionType.FOLLOW_UP: "Follow up",
    QuoteActionType.NOTE_ADDED: "Note added",
    QuoteActionType.REASSIGNED: "Reassigned",
    QuoteActionType.STATUS_CHANGE: "Status change",
    QuoteActionType.OUTCOME_SET: "Outcome set",
}

SERVICE_TYPES = (
    "Airport Transfer",
    "Hourly Service",
    "Point to Point",
    "City Tour",
    "Event Transportation",
    "Corporate",
    "Other",
)


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Quote(Base):
    __tablename__ = "quotes"
    id = Column(String, primary_key=True, default=_uuid)

    client_name = Column(String, nullable=False)
    client_email = Column(String)
    client_phone = Column(String)

    service_type = Column(String, nullable=False)
    source = Column(String)  # lead origin: phone/web/referral/...
    date_of_service = Column(DateTime)
    pickup_date = Column(DateTime)
    pickup_location = Column(String)
    dropoff_location = Column(String)
    estimated_amount = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text)

    status = Column(Enum(QuoteStatus, native_enum=False, length=20),
                    nullable=False, default=QuoteStatus.PENDING)
    outcome = Column(Enum(QuoteOutcome, native_enum=False, length=10), nullable=True)
    outcome_reason = Column(Text, nullable=True)
    outcome_at = Column(DateTime, nullable=True)

    follow_up_count = Column(Integer, nullable=False, default=0)
    last_follow_up = Column(DateTime, nullable=True)
    next_follow_up = Column(DateTime, nullable=True)  # advisory only

    last_action_at = Column(DateTime, nullable=True)
    action_count = Column(Integer, nullable=False, default=0)

    is_flagged = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime, nullable=False)

    created_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    assigned_to_id = Column(String, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    actions = relationship(
        "QuoteAction",
        back_populates="quote",
        order_by="QuoteAction.sequence.desc()",
    )


class QuoteAction(Base):
    """
    Append-only history row. Rows are never updated or deleted; ``sequence``
    is the 1-based position within the owning quote's log.
    """
    __tablename__ = "quote_actions"
    __table_args__ = (
        UniqueConstraint("quote_id", "sequence", name="uq_quote_action_sequence"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    quote_id = Column(String, ForeignKey("quotes.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    action_type = Column(Enum(QuoteActionType, native_enum=False, length=20), nullable=False)
    notes = Column(Text, nullable=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)  # null for system rows

    created_at = Column(DateTime, nullable=False, default=utcnow)

    quote = relationship("Quote", back_populates="actions")
    user = relationship("User")
