import os
from dataclasses import dataclass

_DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
}


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    base_url: str | None


def load_ai_config() -> AIConfig:
    provider = os.getenv("AI_PROVIDER", "gemini").strip().lower()
    model = (os.getenv("AI_MODEL") or _DEFAULT_MODELS.get(provider, "")).strip()
    base_url = (os.getenv(f"{provider.upper()}_BASE_URL") or "").strip() or None
    return AIConfig(provider=provider, model=model, base_url=base_url)
