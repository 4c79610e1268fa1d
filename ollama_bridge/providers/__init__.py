"""Upstream model providers.

Only an OpenAI-compatible provider is wired (OpenRouter by default). Additional
providers can register by adding a module and updating the PROVIDERS map in factory.py.
"""

from .base import (  # noqa: F401
    ChatProvider,
    ChatStream,
    EmptyResponse,
    ModelProviderError,
    UpstreamError,
    UpstreamUnavailable,
)
from .factory import get_provider  # noqa: F401
