"""OpenAI SSE chunks -> Ollama NDJSON records.

One transcoder per request:

    idle -> streaming -> terminated   provider finished, terminal done=true record sent
                      -> aborted      provider failed mid-stream, one {"error": ...} record
                      -> cancelled    client went away, nothing more is sent

An aborted stream ends without a done=true record.
"""
import json
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from ollama_bridge.providers import ChatStream, ModelProviderError, UpstreamError
from ollama_bridge.utils import compat
from ollama_bridge.utils.logging import logger
from ollama_bridge.utils.metrics import UPSTREAM_ERRORS


def _malformed(event) -> UpstreamError:
    return UpstreamError(f"upstream stream returned a malformed chunk: {json.dumps(event, default=str)[:300]}")


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    TERMINATED = "terminated"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


def ndjson(record: dict) -> str:
    return json.dumps(record, ensure_ascii=False) + "\n"


class StreamTranscoder:
    def __init__(self, model_id: str, disconnected: Optional[Callable[[], Awaitable[bool]]] = None):
        self.model_id = model_id
        self.state = StreamState.IDLE
        self.finish_reason: Optional[str] = None
        self.records = 0
        self._disconnected = disconnected

    def feed(self, event: dict) -> Optional[dict]:
        """Translate one provider chunk; None when it carries no text.

        Raises UpstreamError for a chunk that is not shaped like a chat completion chunk.
        """
        if not isinstance(event, dict):
            raise _malformed(event)
        choices = event.get('choices') or []
        if not isinstance(choices, list):
            raise _malformed(event)
        if not choices:
            return None
        choice = choices[0] or {}
        if not isinstance(choice, dict):
            raise _malformed(event)
        delta = choice.get('delta') or {}
        if not isinstance(delta, dict):
            raise _malformed(event)
        finish_reason = choice.get('finish_reason')
        if finish_reason:
            self.finish_reason = str(finish_reason)
        content = delta.get('content')
        if content is not None and not isinstance(content, str):
            raise _malformed(event)
        if not content:
            return None
        return {
            'model': self.model_id,
            'created_at': compat.rfc3339_now(),
            'message': {'role': 'assistant', 'content': content},
            'done': False,
        }

    def terminal_record(self) -> dict:
        # no usage data on the streaming path: every counter is zero
        return {
            'model': self.model_id,
            'created_at': compat.rfc3339_now(),
            'message': {'role': 'assistant', 'content': ""},
            'done': True,
            'finish_reason': self.finish_reason or compat.DEFAULT_FINISH_REASON,
            'total_duration': 0,
            'load_duration': 0,
            'prompt_eval_count': 0,
            'eval_count': 0,
            'eval_duration': 0,
        }

    async def transcode(self, stream: ChatStream) -> AsyncIterator[str]:
        self.state = StreamState.STREAMING
        events = stream.events()
        try:
            while True:
                if self._disconnected is not None and await self._disconnected():
                    self.state = StreamState.CANCELLED
                    logger.info("stream_client_disconnected", model=self.model_id, records=self.records)
                    return
                try:
                    record = self.feed(await events.__anext__())
                except StopAsyncIteration:
                    break
                except ModelProviderError as e:
                    self.state = StreamState.ABORTED
                    UPSTREAM_ERRORS.labels(e.kind).inc()
                    logger.error("stream_upstream_failed", model=self.model_id, records=self.records, error=str(e))
                    yield ndjson({'error': f"Stream error: {e}"})
                    return
                if record is not None:
                    self.records += 1
                    yield ndjson(record)

            self.state = StreamState.TERMINATED
            yield ndjson(self.terminal_record())
            logger.info("stream_completed", model=self.model_id, records=self.records, finish_reason=self.finish_reason)
        finally:
            if self.state is StreamState.STREAMING:
                # consumer closed or cancelled us mid-stream
                self.state = StreamState.CANCELLED
            aclose = getattr(events, 'aclose', None)
            if aclose is not None:
                await aclose()
            await stream.aclose()
