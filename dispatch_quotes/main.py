import logging
from typing import List, Literal, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .clock import Clock, SystemClock, time_until_expiry
from .config import settings
from .database import get_db, init_db
from .errors import InvalidStateTransition, NotFoundError, QuoteError, ValidationError
from .logging_setup import setup_logging
from .prioritize import QuoteView

logger = logging.getLogger(__name__)

app = FastAPI(title="Dispatch Quote Follow-up")

_ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    InvalidStateTransition: 409,
}


@app.exception_handler(QuoteError)
def quote_error_handler(request: Request, exc: QuoteError):
    status_code = _ERROR_STATUS.get(type(exc), 400)
    logger.warning("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.on_event("startup")
def on_startup():
    setup_logging(settings.log_level, settings.log_file)
    init_db()


# =========================================================
# Dependencies
# =========================================================

_clock = SystemClock()


def get_clock() -> Clock:
    return _clock


def current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    # Authentication happens upstream; this only resolves the acting user
    user = db.get(models.User, x_user_id) if x_user_id else None
    if not user:
        raise HTTPException(status_code=401, detail="Unknown or missing X-User-Id")
    return user


# =========================================================
# Helpers
# =========================================================

def quote_to_detail(quote: models.Quote, clock: Clock) -> schemas.QuoteDetailOut:
    base = schemas.QuoteOut.model_validate(quote).model_dump()
    actions = [
        schemas.QuoteActionOut(
            id=a.id,
            sequence=a.sequence,
            action_type=a.action_type,
            label=models.ACTION_LABELS[a.action_type],
            notes=a.notes,
            created_at=a.created_at,
            user=schemas.UserRef.model_validate(a.user) if a.user else None,
        )
        for a in quote.actions
    ]
    expiry = time_until_expiry(quote.expires_at, clock.now())
    return schemas.QuoteDetailOut(
        **base,
        expiry=schemas.ExpiryInfoOut.model_validate(expiry),
        actions=actions,
    )


def view_to_list_item(view: QuoteView) -> schemas.QuoteListItemOut:
    base = schemas.QuoteOut.model_validate(view.quote).model_dump()
    base["status"] = view.status
    return schemas.QuoteListItemOut(
        **base,
        is_overdue=view.is_overdue,
        expiry=schemas.ExpiryInfoOut.model_validate(view.expiry),
        show_expiry_warning=view.show_expiry_warning,
        last_action_text=view.last_action_text,
    )


# =========================================================
# API Endpoints
# =========================================================

@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/quotes", response_model=List[schemas.QuoteListItemOut])
def api_list_quotes(
    filter: Literal["active", "all"] = "active",
    assigned_to: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    views = crud.list_quotes(db, filter, clock=clock, assigned_to=assigned_to, limit=limit)
    return [view_to_list_item(v) for v in views]


@app.get("/api/quotes/stats", response_model=schemas.QuoteStatsOut)
def api_quote_stats(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return crud.quote_stats(db, clock=clock)


@app.get("/api/quotes/service-types", response_model=List[str])
def api_service_types():
    # Suggestions for the create form; service_type itself stays free-form
    return list(models.SERVICE_TYPES)


@app.post("/api/quotes/expire")
def api_expire_quotes(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return {"expired": crud.expire_stale_quotes(db, clock=clock)}


@app.post("/api/quotes", response_model=schemas.QuoteDetailOut, status_code=201)
def api_create_quote(
    payload: schemas.QuoteCreate,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    quote = crud.create_quote(db, payload, user.id, clock=clock)
    return quote_to_detail(crud.get_quote_with_history(db, quote.id, clock=clock), clock)


@app.get("/api/quotes/{quote_id}", response_model=schemas.QuoteDetailOut)
def api_quote_detail(quote_id: str, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


@app.post("/api/quotes/{quote_id}/actions", response_model=schemas.QuoteDetailOut)
def api_record_action(
    quote_id: str,
    payload: schemas.ActionIn,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    crud.record_action(
        db, quote_id, payload.action_type, payload.notes, user.id,
        clock=clock, next_follow_up=payload.next_follow_up,
    )
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


@app.post("/api/quotes/{quote_id}/notes", response_model=schemas.QuoteDetailOut)
def api_add_note(
    quote_id: str,
    payload: schemas.NoteIn,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    crud.add_note(db, quote_id, payload.notes, user.id, clock=clock)
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


@app.post("/api/quotes/{quote_id}/outcome", response_model=schemas.QuoteDetailOut)
def api_set_outcome(
    quote_id: str,
    payload: schemas.OutcomeIn,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    crud.set_outcome(db, quote_id, payload.outcome, user.id, reason=payload.reason, clock=clock)
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


@app.post("/api/quotes/{quote_id}/assign", response_model=schemas.QuoteDetailOut)
def api_reassign(
    quote_id: str,
    payload: schemas.ReassignIn,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    crud.reassign(db, quote_id, payload.user_id, user.id, clock=clock)
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


@app.post("/api/quotes/{quote_id}/flag", response_model=schemas.QuoteDetailOut)
def api_toggle_flag(
    quote_id: str,
    user: models.User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    crud.toggle_flag(db, quote_id, clock=clock)
    return quote_to_detail(crud.get_quote_with_history(db, quote_id, clock=clock), clock)


def run():
    uvicorn.run("dispatch_quotes.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
