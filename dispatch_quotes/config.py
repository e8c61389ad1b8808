# dispatch_quotes/config.py
import os
from dataclasses import dataclass
from typing import Optional


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")

    # Render/Neon hand out postgres:// URLs, SQLAlchemy wants postgresql://
    if url and url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    return url or "sqlite:///./dispatch_quotes.db"


@dataclass(frozen=True)
class Settings:
    database_url: str
    quote_expiry_hours: int
    log_level: str
    log_file: Optional[str]
    host: str
    port: int


def load_settings() -> Settings:
    return Settings(
        database_url=_database_url(),
        quote_expiry_hours=int(os.getenv("QUOTE_EXPIRY_HOURS", "72")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


settings = load_settings()
