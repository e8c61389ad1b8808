from typing import List, Optional, Literal
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from .models import QuoteActionType, QuoteOutcome, QuoteStatus

# ---------- Users ----------

class UserRef(BaseModel):
    id: str
    name: Optional[str] = None

    class Config:
        from_attributes = True

# ---------- Quotes ----------

class QuoteCreate(BaseModel):
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    service_type: str
    source: Optional[str] = None
    date_of_service: Optional[datetime] = None
    pickup_date: Optional[datetime] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    estimated_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    next_follow_up: Optional[datetime] = None
    assigned_to_id: Optional[str] = None

class ActionIn(BaseModel):
    action_type: Literal["CALLED", "EMAILED", "TEXTED", "FOLLOW_UP"]
    notes: str
    next_follow_up: Optional[datetime] = None

class NoteIn(BaseModel):
    notes: str

class OutcomeIn(BaseModel):
    outcome: QuoteOutcome
    reason: Optional[str] = None

class ReassignIn(BaseModel):
    user_id: str

class ExpiryInfoOut(BaseModel):
    text: str
    urgent: bool
    expired: bool

    class Config:
        from_attributes = True

class QuoteOut(BaseModel):
    id: str
    client_name: str
    client_email: Optional[str]
    client_phone: Optional[str]
    service_type: str
    source: Optional[str]
    date_of_service: Optional[datetime]
    pickup_date: Optional[datetime]
    pickup_location: Optional[str]
    dropoff_location: Optional[str]
    estimated_amount: Optional[float]
    notes: Optional[str]

    status: QuoteStatus
    outcome: Optional[QuoteOutcome]
    outcome_reason: Optional[str]
    outcome_at: Optional[datetime]

    follow_up_count: int
    last_follow_up: Optional[datetime]
    next_follow_up: Optional[datetime]
    last_action_at: Optional[datetime]
    action_count: int
    is_flagged: bool
    expires_at: datetime

    created_by: Optional[UserRef] = None
    assigned_to: Optional[UserRef] = None
    created_at: datetime

    class Config:
        from_attributes = True

class QuoteListItemOut(QuoteOut):
    is_overdue: bool
    expiry: ExpiryInfoOut
    show_expiry_warning: bool
    last_action_text: str

# ---------- Actions / History ----------

class QuoteActionOut(BaseModel):
    id: str
    sequence: int
    action_type: QuoteActionType
    label: str
    notes: Optional[str]
    created_at: datetime
    user: Optional[UserRef] = None

    class Config:
        from_attributes = True

class QuoteDetailOut(QuoteOut):
    expiry: ExpiryInfoOut
    actions: List[QuoteActionOut] = Field(default_factory=list)

class QuoteStatsOut(BaseModel):
    pending: int
    following_up: int
    converted: int
    lost: int
    expired: int
    flagged: int
    expiring_soon: int
