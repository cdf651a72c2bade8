from __future__ import annotations

import hashlib
import json
import logging

from smarthr.ai.gateway import ModelGateway, is_fallback
from smarthr.core.config import settings
from smarthr.core.security import CallerIdentity
from smarthr.schemas.chat import ChatMessage
from smarthr.services.prompts import build_policy_greeting, build_policy_system_prompt
from smarthr.services.sessions import SessionGuard

logger = logging.getLogger("smarthr.chat")


def _short_hash(value: str | None) -> str:
    normalized = (value or "").strip()
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]


class PolicyChatSession:
    def __init__(self, gateway: ModelGateway, caller: CallerIdentity | None = None, policy: str | None = None):
        self._gateway = gateway
        self._display_name = caller.display_name if caller else None
        self._system_prompt = build_policy_system_prompt(policy or settings.company_policy)
        self._guard = SessionGuard()
        self.messages: list[ChatMessage] = []
        self._seed()

    def _seed(self) -> None:
        self.messages = [ChatMessage(role="ai", text=build_policy_greeting(self._display_name))]

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    async def send(self, text: str) -> ChatMessage | None:
        user_message = (text or "").strip()
        if not user_message:
            return None

        with self._guard.turn() as generation:
            self.messages.append(ChatMessage(role="user", text=user_message))
            reply = await self._gateway.invoke(user_message, self._system_prompt)
            if not self._guard.is_current(generation):
                logger.info(json.dumps({"event": "chat_stale_reply_discarded", "message_hash": _short_hash(user_message)}))
                return None

            message = ChatMessage(role="ai", text=reply)
            self.messages.append(message)

        logger.info(
            json.dumps(
                {
                    "event": "chat_reply",
                    "message_len": len(user_message),
                    "message_hash": _short_hash(user_message),
                    "degraded": is_fallback(reply),
                }
            )
        )
        return message

    def reset(self) -> None:
        self._guard.reset()
        self._seed()
