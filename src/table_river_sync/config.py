"""Runtime configuration helpers for the table river sync service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

ROLE_MOUTH = "mouth"
ROLE_TARGET = "target"

FAIL_FAST = "fail_fast"
CONTINUE = "continue"


@dataclass(frozen=True)
class Settings:
    """Immutable container for service configuration."""

    river_name: str
    role: str
    polling_interval_seconds: float
    digesting: bool
    acknowledge: bool
    phase_failure_policy: str
    default_index: str
    default_type: Optional[str]
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_schema: str
    db_write_host: str
    db_write_port: int
    db_write_name: str
    db_write_user: str
    db_write_password: str
    sink_base_url: str = "http://localhost:9200"
    sink_username: str = ""
    sink_password: str = ""
    sink_request_timeout_seconds: float = 10.0
    sink_retry_attempts: int = 3
    sink_retry_base_delay_seconds: float = 0.2
    sink_retry_max_delay_seconds: float = 6.4
    sink_refresh: bool = False

    @property
    def polling_interval(self) -> timedelta:
        return timedelta(seconds=self.polling_interval_seconds)


def _as_bool(value: Optional[str], default: bool) -> bool:
    """Convert environment strings to booleans."""
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no"}


def _coerce_role(value: Optional[str]) -> str:
    """Translate RIVER_ROLE env var to a supported value."""
    if value is None:
        return ROLE_MOUTH
    normalized = value.strip().lower()
    if normalized in {ROLE_MOUTH, ROLE_TARGET}:
        return normalized
    return ROLE_MOUTH


def _coerce_failure_policy(value: Optional[str]) -> str:
    if value is None:
        return FAIL_FAST
    normalized = value.strip().lower().replace("-", "_")
    if normalized in {FAIL_FAST, CONTINUE}:
        return normalized
    return FAIL_FAST


def load_settings() -> Settings:
    """Load configuration from the environment (and `.env`)."""
    load_dotenv()
    river_name = os.getenv("RIVER_NAME", "my_river").strip() or "my_river"
    role = _coerce_role(os.getenv("RIVER_ROLE"))
    polling_interval_seconds = float(
        os.getenv("RIVER_POLLING_INTERVAL_SECONDS", "60")
    )
    if polling_interval_seconds <= 0:
        raise ValueError("RIVER_POLLING_INTERVAL_SECONDS must be positive")
    digesting = _as_bool(os.getenv("RIVER_DIGESTING"), True)
    acknowledge = _as_bool(os.getenv("RIVER_ACKNOWLEDGE"), False)
    phase_failure_policy = _coerce_failure_policy(
        os.getenv("RIVER_PHASE_FAILURE_POLICY")
    )
    default_index = os.getenv("RIVER_DEFAULT_INDEX", river_name)
    # unset leaves _type out of bulk actions
    default_type = os.getenv("RIVER_DEFAULT_TYPE") or None

    db_host = os.getenv("PGHOST", "localhost")
    db_port = int(os.getenv("PGPORT", "5432"))
    db_name = os.getenv("PGDATABASE", "river")
    db_user = os.getenv("PGUSER", "postgres")
    db_password = os.getenv("PGPASSWORD", "")
    db_schema = os.getenv("PGSCHEMA", "public")
    db_write_host = os.getenv("PGWRITEHOST", db_host)
    db_write_port = int(os.getenv("PGWRITEPORT", str(db_port)))
    db_write_name = os.getenv("PGWRITEDATABASE", db_name)
    db_write_user = os.getenv("PGWRITEUSER", db_user)
    db_write_password = os.getenv("PGWRITEPASSWORD", db_password)

    sink_base_url = os.getenv("SINK_BASE_URL", "http://localhost:9200").strip()
    if sink_base_url.endswith("/"):
        sink_base_url = sink_base_url.rstrip("/")
    sink_username = os.getenv("SINK_USERNAME", "").strip()
    sink_password = os.getenv("SINK_PASSWORD", "")
    sink_request_timeout_seconds = float(
        os.getenv("SINK_REQUEST_TIMEOUT_SECONDS", "10.0")
    )
    sink_retry_attempts = int(os.getenv("SINK_RETRY_ATTEMPTS", "3"))
    sink_retry_base_delay_seconds = float(
        os.getenv("SINK_RETRY_BASE_DELAY_SECONDS", "0.2")
    )
    sink_retry_max_delay_seconds = float(
        os.getenv("SINK_RETRY_MAX_DELAY_SECONDS", "6.4")
    )
    sink_refresh = _as_bool(os.getenv("SINK_REFRESH"), False)

    return Settings(
        river_name=river_name,
        role=role,
        polling_interval_seconds=polling_interval_seconds,
        digesting=digesting,
        acknowledge=acknowledge,
        phase_failure_policy=phase_failure_policy,
        default_index=default_index,
        default_type=default_type,
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        db_schema=db_schema,
        db_write_host=db_write_host,
        db_write_port=db_write_port,
        db_write_name=db_write_name,
        db_write_user=db_write_user,
        db_write_password=db_write_password,
        sink_base_url=sink_base_url,
        sink_username=sink_username,
        sink_password=sink_password,
        sink_request_timeout_seconds=sink_request_timeout_seconds,
        sink_retry_attempts=sink_retry_attempts,
        sink_retry_base_delay_seconds=sink_retry_base_delay_seconds,
        sink_retry_max_delay_seconds=sink_retry_max_delay_seconds,
        sink_refresh=sink_refresh,
    )
