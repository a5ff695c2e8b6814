from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.engine import URL


load_dotenv(Path(__file__).resolve().parents[2] / ".env", override=False)

MAX_BATCH_SIZE = 10000


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def build_database_url(prefix: str, default_user: str = "postgres") -> str:
    """Return the connection URL for the SOURCE or TARGET database.

    A full ``<PREFIX>_DATABASE_URL`` wins; otherwise the URL is assembled from the
    discrete ``<PREFIX>_DB_HOST/PORT/USER/PASSWORD/NAME`` variables.
    """
    explicit = os.getenv(f"{prefix}_DATABASE_URL")
    if explicit:
        return explicit
    url = URL.create(
        "postgresql+psycopg2",
        username=os.getenv(f"{prefix}_DB_USER", default_user),
        password=os.getenv(f"{prefix}_DB_PASSWORD") or None,
        host=os.getenv(f"{prefix}_DB_HOST", "localhost"),
        port=int(os.getenv(f"{prefix}_DB_PORT", "5432")),
        database=os.getenv(f"{prefix}_DB_NAME", "postgres"),
    )
    return url.render_as_string(hide_password=False)


@dataclass(frozen=True)
class Settings:
    source_database_url: str = field(
        default_factory=lambda: build_database_url("SOURCE")
    )
    target_database_url: str = field(
        default_factory=lambda: build_database_url("TARGET")
    )
    echo_sql: bool = _env_bool("SQL_ECHO")
    supabase_url: str | None = os.getenv("SUPABASE_URL") or None
    supabase_service_role: str | None = os.getenv("SUPABASE_SERVICE_ROLE") or None
    batch_size: int = int(os.getenv("BATCH_SIZE", "1000"))
    batch_delay_ms: int = int(os.getenv("BATCH_DELAY_MS", "0"))
    max_retry_attempts: int = int(os.getenv("MAX_RETRY_ATTEMPTS", "3"))
    retry_sleep_seconds: float = float(os.getenv("RETRY_SLEEP_SECONDS", "5"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_json: bool = _env_bool("LOG_JSON")

    def validate(self) -> list[str]:
        problems: list[str] = []
        if self.batch_size < 1 or self.batch_size > MAX_BATCH_SIZE:
            problems.append(f"BATCH_SIZE must be between 1 and {MAX_BATCH_SIZE}")
        if self.batch_delay_ms < 0:
            problems.append("BATCH_DELAY_MS must not be negative")
        if self.max_retry_attempts < 0:
            problems.append("MAX_RETRY_ATTEMPTS must not be negative")
        if self.retry_sleep_seconds < 0:
            problems.append("RETRY_SLEEP_SECONDS must not be negative")
        return problems

    @property
    def rest_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role)


settings = Settings()
