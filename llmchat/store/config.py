"""Persistence configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class StoreConfig(BaseModel):
    """Configuration for the conversation backend.

    Attributes:
        database_url: SQLAlchemy async URL (sqlite+aiosqlite, postgresql+asyncpg, ...).
        echo: Log every SQL statement.
        touch_attempts: Tries for the conversation timestamp update after an append.
    """

    database_url: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/chat.db"),
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(
        default_factory=lambda: os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes"),
        description="Echo SQL statements to the log",
    )
    touch_attempts: int = Field(
        default_factory=lambda: int(os.getenv("STORE_TOUCH_ATTEMPTS", "2")),
        ge=1,
        le=10,
        description="Attempts for the idempotent conversation timestamp update",
    )


def get_store_config() -> StoreConfig:
    """Create store configuration from environment."""
    return StoreConfig()
