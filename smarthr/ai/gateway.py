from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from functools import lru_cache
from typing import Callable

from smarthr.ai.factory import get_ai_client
from smarthr.ai.types import AIClient
from smarthr.core.config import settings

logger = logging.getLogger("smarthr.gateway")

EMPTY_COMPLETION_FALLBACK = "I couldn't process that request."
CONNECTION_FALLBACK = "Error connecting to AI services. Please try again."


def _short_hash(value: str) -> str:
    return hashlib.sha256((value or "").encode("utf-8")).hexdigest()[:12]


def is_fallback(text: str) -> bool:
    return text in {EMPTY_COMPLETION_FALLBACK, CONNECTION_FALLBACK}


class ModelGateway:
    """Single-shot access to the language model.

    ``invoke`` never raises: transport errors, non-success statuses and
    timeouts come back as ``CONNECTION_FALLBACK``, a missing completion as
    ``EMPTY_COMPLETION_FALLBACK``. No retries are made.
    """

    def __init__(
        self,
        client: AIClient | None = None,
        *,
        client_factory: Callable[[], AIClient] = get_ai_client,
        timeout_s: float | None = None,
    ):
        self._client = client
        self._client_factory = client_factory
        self._timeout_s = settings.model_timeout_s if timeout_s is None else timeout_s

    def _get_client(self) -> AIClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def invoke(self, prompt: str, system_instruction: str = "") -> str:
        started = time.perf_counter()
        try:
            client = self._get_client()
            text = await asyncio.wait_for(
                client.generate(prompt, system_instruction),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(
                json.dumps(
                    {
                        "event": "model_call_timeout",
                        "timeout_s": self._timeout_s,
                        "prompt_hash": _short_hash(prompt),
                    }
                )
            )
            return CONNECTION_FALLBACK
        except Exception as exc:  # noqa: BLE001 - callers only ever get display text
            logger.error(
                json.dumps(
                    {
                        "event": "model_call_failed",
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "prompt_hash": _short_hash(prompt),
                        "duration_ms": int((time.perf_counter() - started) * 1000),
                    }
                )
            )
            return CONNECTION_FALLBACK

        if not text:
            logger.warning(
                json.dumps({"event": "model_empty_completion", "prompt_hash": _short_hash(prompt)})
            )
            return EMPTY_COMPLETION_FALLBACK

        logger.info(
            json.dumps(
                {
                    "event": "model_call_complete",
                    "prompt_len": len(prompt),
                    "reply_len": len(text),
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                }
            )
        )
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


@lru_cache(maxsize=1)
def get_gateway() -> ModelGateway:
    return ModelGateway()
