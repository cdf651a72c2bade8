from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_COMPANY_POLICY = (
    "- Leaves: 20 days PTO, 10 days Sick Leave.\n"
    "- Remote Work: Hybrid policy (3 days office, 2 days home).\n"
    "- Payroll: Processed on the 28th of every month.\n"
    "- Benefits: Health insurance (BlueCross), Gym reimbursement ($50/mo)."
)


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    rate_limit: str
    screening_rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    cors_allow_credentials: bool
    app_id: str
    record_store_db_path: str
    model_timeout_s: float
    interview_target_turns: int
    interview_max_candidate_turns: int
    session_ttl_s: float
    job_title_preview_chars: int
    company_policy: str


settings = Settings(
    api_key=_get_env("API_KEY"),
    rate_limit=_get_env("RATE_LIMIT", "60/minute") or "60/minute",
    screening_rate_limit=_get_env("SCREENING_RATE_LIMIT", "10/minute") or "10/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    cors_allow_credentials=_get_env_bool("CORS_ALLOW_CREDENTIALS", False),
    app_id=_get_env("APP_ID", "default-app-id") or "default-app-id",
    record_store_db_path=_get_env("RECORD_STORE_DB_PATH", "data/records.db") or "data/records.db",
    model_timeout_s=_get_env_float("MODEL_TIMEOUT_S", 30.0),
    interview_target_turns=_get_env_int("INTERVIEW_TARGET_TURNS", 3),
    interview_max_candidate_turns=_get_env_int("INTERVIEW_MAX_CANDIDATE_TURNS", 8),
    session_ttl_s=_get_env_float("SESSION_TTL_S", 3600.0),
    job_title_preview_chars=_get_env_int("JOB_TITLE_PREVIEW_CHARS", 30),
    company_policy=_get_env("COMPANY_POLICY", _DEFAULT_COMPANY_POLICY) or _DEFAULT_COMPANY_POLICY,
)

if settings.interview_max_candidate_turns < settings.interview_target_turns:
    raise RuntimeError("INTERVIEW_MAX_CANDIDATE_TURNS must be >= INTERVIEW_TARGET_TURNS.")
