from __future__ import annotations
from abc import ABC, abstractmethod
from typing import AsyncIterator


class ModelProviderError(RuntimeError):
    """Standard error raised by model providers to allow uniform handling."""
    kind = "provider_error"
    status_code = 500


class UpstreamUnavailable(ModelProviderError):
    """The provider could not be reached (DNS, connect, read failure)."""
    kind = "unavailable"
    status_code = 502


class UpstreamError(ModelProviderError):
    """The provider answered, but with a non-2xx status or a payload we cannot use."""
    kind = "upstream_error"

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class EmptyResponse(ModelProviderError):
    kind = "empty_response"

    def __init__(self, message: str = "No response from model"):
        super().__init__(message)


class ChatStream(ABC):
    """An established provider stream: status already checked, body not yet consumed."""

    @abstractmethod
    def events(self) -> AsyncIterator[dict]:
        """Yield parsed completion chunks until the provider signals end of stream.

        Raises UpstreamError/UpstreamUnavailable for failures after the stream started.
        """
        raise NotImplementedError

    @abstractmethod
    async def aclose(self) -> None:
        raise NotImplementedError


class ChatProvider(ABC):
    name: str = "base"

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return provider model identifiers in the order the provider lists them."""
        raise NotImplementedError

    @abstractmethod
    async def chat(self, payload: dict) -> dict:
        """Run one non-streaming chat completion and return the decoded response body."""
        raise NotImplementedError

    @abstractmethod
    async def open_chat_stream(self, payload: dict) -> ChatStream:
        """Start a streaming chat completion.

        Implementations should raise ModelProviderError before returning when the
        request cannot be established, so the API layer can still pick a status code.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        pass
