from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from smarthr.core.config import settings


@dataclass(frozen=True)
class CallerIdentity:
    id: str
    display_name: str | None = None


def check_api_key(x_api_key: str | None) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please provide a valid API key.",
        )


def get_caller(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_name: str | None = Header(default=None, alias="X-User-Name"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> CallerIdentity:
    """Resolve the identity handed over by the upstream auth layer."""
    check_api_key(x_api_key)
    caller_id = (x_user_id or "").strip()
    if not caller_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity.",
        )
    display_name = (x_user_name or "").strip() or None
    return CallerIdentity(id=caller_id, display_name=display_name)
