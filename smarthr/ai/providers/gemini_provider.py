from __future__ import annotations

import os
from typing import Any, Optional

import httpx


class GeminiProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
    ):
        self._model = model
        self._api_key = (api_key or os.getenv("GEMINI_API_KEY") or "").strip()
        if not self._api_key:
            raise RuntimeError("GEMINI_API_KEY is missing")
        self._base_url = (
            base_url
            or "https://generativelanguage.googleapis.com/v1beta"
        ).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=float(os.getenv("GEMINI_TIMEOUT_S", str(timeout_s))),
            headers={"Content-Type": "application/json"},
        )

    async def generate(self, prompt: str, system_instruction: str) -> str:
        response = await self._client.post(
            f"{self._base_url}/models/{self._model}:generateContent",
            params={"key": self._api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "systemInstruction": {"parts": [{"text": system_instruction}]},
            },
        )
        response.raise_for_status()
        return _first_text(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()


def _first_text(data: Any) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""
