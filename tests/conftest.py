import json

import httpx
import pytest

from ollama_bridge.main import app
from ollama_bridge.providers import ChatProvider, ChatStream, get_provider
from ollama_bridge.providers.openai_provider import OpenAICompatibleProvider
from ollama_bridge.utils.catalog import ModelCatalog, get_catalog

BASE_URL = 'https://upstream.test/api/v1/'

REGISTRY = [
    'anthropic/claude-3.5-sonnet',
    'openai/gpt-4o',
    'openai/gpt-4o-mini',
    'meta-llama/llama-3-70b',
]


def sse(*chunks, done=True) -> bytes:
    body = "".join(f"data: {json.dumps(chunk)}\n\n" for chunk in chunks)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode()


def delta(content=None, finish_reason=None) -> dict:
    d = {} if content is None else {'content': content}
    return {'choices': [{'index': 0, 'delta': d, 'finish_reason': finish_reason}]}


def completion(content="hello", finish_reason="", usage=None) -> dict:
    return {
        'id': 'chatcmpl-1',
        'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': content}, 'finish_reason': finish_reason}],
        'usage': usage if usage is not None else {'prompt_tokens': 5, 'completion_tokens': 7, 'total_tokens': 12},
    }


class ListStream(ChatStream):
    """In-memory ChatStream; `fail_with` is raised after the listed events."""

    def __init__(self, events, fail_with=None):
        self._events = list(events)
        self._fail_with = fail_with
        self.closed = False

    async def events(self):
        for event in self._events:
            yield event
        if self._fail_with is not None:
            raise self._fail_with

    async def aclose(self):
        self.closed = True


class FakeProvider(ChatProvider):
    name = "fake"

    def __init__(self, models=None):
        self.models = list(REGISTRY if models is None else models)
        self.list_calls = 0

    async def list_models(self):
        self.list_calls += 1
        return list(self.models)

    async def chat(self, payload):
        return completion()

    async def open_chat_stream(self, payload):
        return ListStream([delta("hi"), delta(finish_reason="stop")])


class Upstream:
    """Scripted OpenAI-compatible server behind httpx.MockTransport."""

    def __init__(self):
        self.models = list(REGISTRY)
        # factories: an httpx.Response can only be sent once
        self.chat_response = lambda: httpx.Response(200, json=completion())
        self.stream_response = lambda: httpx.Response(
            200, content=sse(delta("He"), delta("llo"), delta(finish_reason="stop"))
        )
        self.models_error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith('/models'):
            if self.models_error is not None:
                raise self.models_error
            return httpx.Response(200, json={'data': [{'id': m} for m in self.models]})
        if request.url.path.endswith('/chat/completions'):
            if json.loads(request.content).get('stream'):
                return self.stream_response()
            return self.chat_response()
        return httpx.Response(404, json={'error': {'message': 'not found'}})

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def provider(upstream):
    return OpenAICompatibleProvider(api_key='test-key', base_url=BASE_URL, transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def bridge(provider):
    """Route app dependencies to the mock upstream; yields the catalog in use."""
    catalog = ModelCatalog(provider)
    app.dependency_overrides[get_provider] = lambda: provider
    app.dependency_overrides[get_catalog] = lambda: catalog
    yield catalog
    app.dependency_overrides.clear()


class LogRecorder:
    """Stands in for the structlog logger of one module; keeps (level, event, fields)."""

    def __init__(self):
        self.records = []

    def _record(self, level):
        def log(event, **fields):
            self.records.append((level, event, fields))
        return log

    def __getattr__(self, level):
        if level.startswith('_'):
            raise AttributeError(level)
        return self._record(level)

    def events(self, level=None):
        return [event for lvl, event, _ in self.records if level is None or lvl == level]
