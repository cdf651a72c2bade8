from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from smarthr.core.config import settings


def _caller_key(request: Request) -> str:
    caller_id = (request.headers.get("x-user-id") or "").strip()
    if caller_id:
        return f"user:{caller_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=_caller_key)


def rate_limit(limit: str | None = None):
    """Per-caller limit; falls back to the client address when anonymous."""
    if settings.rate_limit_enabled:
        return limiter.limit(limit or settings.rate_limit)

    def decorator(func):
        return func

    return decorator
