from functools import lru_cache

from ollama_bridge.config import get_settings
from .base import ChatProvider, ModelProviderError
from .openai_provider import OpenAICompatibleProvider


PROVIDERS: dict[str, type[ChatProvider]] = {
    'openai': OpenAICompatibleProvider,
}


@lru_cache(maxsize=1)
def get_provider() -> ChatProvider:
    settings = get_settings()
    cls = PROVIDERS.get(settings.provider)
    if not cls:
        raise ModelProviderError(f"Unknown provider '{settings.provider}'")
    return cls(api_key=settings.api_key, base_url=settings.base_url, timeout=settings.upstream_timeout)

__all__ = [
    'get_provider',
    'ModelProviderError',
]
