from __future__ import annotations

import json
import logging
import time
from typing import Callable, Generic, TypeVar

from smarthr.core.config import settings
from smarthr.core.security import CallerIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Sessions keyed by (caller id, session id); one owner per session.

    Sessions idle for longer than ``ttl_s`` are dropped on the next access,
    except while a reply is still in flight for them.
    """

    def __init__(
        self,
        factory: Callable[[CallerIdentity], T],
        *,
        ttl_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self._ttl_s = settings.session_ttl_s if ttl_s is None else ttl_s
        self._clock = clock
        self._sessions: dict[tuple[str, str], tuple[T, float]] = {}

    def purge_expired(self) -> int:
        cutoff = self._clock() - self._ttl_s
        expired = [
            key
            for key, (session, last_used) in self._sessions.items()
            if last_used <= cutoff and not getattr(session, "in_flight", False)
        ]
        for key in expired:
            del self._sessions[key]
        if expired:
            logger.info(json.dumps({"event": "sessions_expired", "count": len(expired)}))
        return len(expired)

    def get_or_create(self, caller: CallerIdentity, session_id: str) -> T:
        self.purge_expired()
        key = (caller.id, session_id)
        entry = self._sessions.get(key)
        session = entry[0] if entry is not None else self._factory(caller)
        self._sessions[key] = (session, self._clock())
        return session

    def get(self, caller: CallerIdentity, session_id: str) -> T | None:
        self.purge_expired()
        key = (caller.id, session_id)
        entry = self._sessions.get(key)
        if entry is None:
            return None
        self._sessions[key] = (entry[0], self._clock())
        return entry[0]

    def __len__(self) -> int:
        return len(self._sessions)
