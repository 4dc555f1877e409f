"""Environment-driven configuration for the review workflow.

Values are read once from the process environment (after ``load_dotenv()``)
and cached for the lifetime of the process.  Tests build their own
``Settings`` instances directly instead of going through the environment.
"""

import math
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class QuorumPolicy(BaseModel):
    """How many counted votes an application needs before a decision.

    Exactly one of ``fixed_count`` / ``fraction`` drives the result; a fixed
    count takes precedence when both are set.
    """

    fraction: float = Field(1.0, gt=0.0, le=1.0)
    fixed_count: Optional[int] = Field(None, ge=1)

    def votes_required(self, roster_size: int) -> int:
        """Votes required given the size of the *current* eligible roster."""
        if roster_size <= 0:
            return 0
        if self.fixed_count is not None:
            return min(self.fixed_count, roster_size)
        return max(1, math.ceil(self.fraction * roster_size))


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./boardreview.db"
    sqlalchemy_echo: bool = False
    quorum: QuorumPolicy = Field(default_factory=QuorumPolicy)
    require_quorum_for_decision: bool = False
    stale_review_days: int = 30
    reminder_hour: int = 9
    enable_scheduler: bool = True
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str = "noreply@boardreview.local"
    portal_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        fixed = os.getenv("REVIEW_QUORUM_FIXED")
        _settings = Settings(
            database_url=os.getenv(
                "DATABASE_URL", "sqlite+aiosqlite:///./boardreview.db"
            ),
            sqlalchemy_echo=_env_bool("SQLALCHEMY_ECHO", False),
            quorum=QuorumPolicy(
                fraction=float(os.getenv("REVIEW_QUORUM_FRACTION", "1.0")),
                fixed_count=int(fixed) if fixed else None,
            ),
            require_quorum_for_decision=_env_bool(
                "REVIEW_REQUIRE_QUORUM_FOR_DECISION", False
            ),
            stale_review_days=int(os.getenv("REVIEW_STALE_DAYS", "30")),
            reminder_hour=int(os.getenv("REVIEW_REMINDER_HOUR", "9")),
            enable_scheduler=_env_bool("ENABLE_SCHEDULER", True),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER"),
            smtp_password=os.getenv("SMTP_PASSWORD"),
            smtp_from_email=os.getenv("SMTP_FROM_EMAIL", "noreply@boardreview.local"),
            portal_base_url=os.getenv("PORTAL_BASE_URL", "http://localhost:8000"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
    return _settings
