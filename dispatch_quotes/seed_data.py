# dispatch_quotes/seed_data.py
"""
One-time seed script for the quote follow-up database.

Run locally with:
    python -m dispatch_quotes.seed_data
"""
import logging
from datetime import timedelta
from decimal import Decimal

from . import crud, models, schemas
from .config import settings
from .database import SessionLocal, init_db
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging(settings.log_level, settings.log_file)
    init_db()

    db = SessionLocal()
    try:
        # If there's already a user, assume it's seeded.
        if db.query(models.User).first():
            logger.info("DB already seeded; skipping.")
            return

        # --- Dispatchers ---
        dana = crud.create_user(db, "Dana Reyes", "dana@example.com", user_id="user-dana")
        marco = crud.create_user(db, "Marco Bell", "marco@example.com", user_id="user-marco")

        # --- Quotes ---
        airport = crud.create_quote(
            db,
            schemas.QuoteCreate(
                client_name="Brenda Caulfield",
                client_phone="555-0100",
                client_email="brenda@example.com",
                service_type="Airport Transfer",
                source="phone",
                pickup_location="The Adolphus Hotel",
                dropoff_location="DFW Terminal D",
                estimated_amount=Decimal("145.00"),
            ),
            dana.id,
        )
        crud.record_action(
            db, airport.id, models.QuoteActionType.CALLED, "Left voicemail about pickup time", dana.id,
            next_follow_up=airport.created_at + timedelta(hours=4),
        )

        wedding = crud.create_quote(
            db,
            schemas.QuoteCreate(
                client_name="Kevin Parker",
                client_email="kevin@example.com",
                service_type="Event Transportation",
                source="web",
                notes="Wedding party, two sprinters",
                estimated_amount=Decimal("1800.00"),
            ),
            marco.id,
        )
        crud.toggle_flag(db, wedding.id)

        corporate = crud.create_quote(
            db,
            schemas.QuoteCreate(
                client_name="Acme Logistics",
                service_type="Corporate",
                source="referral",
            ),
            dana.id,
        )
        crud.record_action(db, corporate.id, models.QuoteActionType.EMAILED, "Sent rate sheet", dana.id)
        crud.set_outcome(db, corporate.id, models.QuoteOutcome.WON, dana.id, reason="Booked quarterly account")

        logger.info("Seed complete.")

    finally:
        db.close()


if __name__ == "__main__":
    main()
