from smarthr.ai.config import load_ai_config
from smarthr.ai.types import AIClient

from smarthr.ai.providers.openai_provider import OpenAIProvider
from smarthr.ai.providers.gemini_provider import GeminiProvider


def get_ai_client() -> AIClient:
    cfg = load_ai_config()

    if cfg.provider == "gemini":
        return GeminiProvider(model=cfg.model, base_url=cfg.base_url)

    if cfg.provider == "openai":
        return OpenAIProvider(model=cfg.model, base_url=cfg.base_url)

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
