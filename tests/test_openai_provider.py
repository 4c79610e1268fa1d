import asyncio
import json

import httpx
import pytest

from ollama_bridge.providers import UpstreamError, UpstreamUnavailable
from ollama_bridge.providers.openai_provider import OpenAICompatibleProvider
from tests.conftest import BASE_URL, delta, sse


def make_provider(handler):
    return OpenAICompatibleProvider(api_key='test-key', base_url=BASE_URL, transport=httpx.MockTransport(handler))


def collect(provider, payload=None):
    async def scenario():
        stream = await provider.open_chat_stream(payload or {'model': 'm', 'messages': []})
        try:
            return [event async for event in stream.events()]
        finally:
            await stream.aclose()
    return asyncio.run(scenario())


def test_requires_api_key():
    with pytest.raises(ValueError):
        OpenAICompatibleProvider(api_key='')


def test_list_models_sends_bearer_token_and_keeps_order():
    seen = {}

    def handler(request):
        seen['auth'] = request.headers['authorization']
        seen['url'] = str(request.url)
        return httpx.Response(200, json={'data': [{'id': 'b/two'}, {'id': 'a/one'}, {'name': 'no-id'}]})

    models = asyncio.run(make_provider(handler).list_models())
    assert models == ['b/two', 'a/one']
    assert seen['auth'] == 'Bearer test-key'
    assert seen['url'] == 'https://upstream.test/api/v1/models'


def test_invalid_models_payload_is_upstream_error():
    provider = make_provider(lambda request: httpx.Response(200, json={'models': []}))
    with pytest.raises(UpstreamError):
        asyncio.run(provider.list_models())


def test_chat_posts_non_streaming_payload():
    captured = {}

    def handler(request):
        captured.update(json.loads(request.content))
        return httpx.Response(200, json={'choices': []})

    asyncio.run(make_provider(handler).chat({'model': 'm', 'messages': [{'role': 'user', 'content': 'x'}]}))
    assert captured['stream'] is False
    assert captured['model'] == 'm'


def test_chat_non_json_body_is_upstream_error():
    provider = make_provider(lambda request: httpx.Response(200, text='<html>bad gateway</html>'))
    with pytest.raises(UpstreamError, match='invalid JSON'):
        asyncio.run(provider.chat({'model': 'm', 'messages': []}))


def test_stream_skips_comments_and_stops_at_done():
    body = b": OPENROUTER PROCESSING\n\n" + sse(delta("a"), delta("b", finish_reason="stop")) + b"data: {\"late\": true}\n\n"

    def handler(request):
        assert request.headers['accept'] == 'text/event-stream'
        assert json.loads(request.content)['stream'] is True
        return httpx.Response(200, content=body)

    events = collect(make_provider(handler))
    assert [e['choices'][0]['delta'].get('content') for e in events] == ['a', 'b']


def test_stream_without_done_ends_at_eof():
    events = collect(make_provider(lambda request: httpx.Response(200, content=sse(delta("a"), done=False))))
    assert len(events) == 1


def test_stream_http_error_raised_before_streaming():
    def handler(request):
        return httpx.Response(400, json={'error': {'message': 'mystery-model is not a valid model ID'}})

    with pytest.raises(UpstreamError, match='not a valid model ID') as info:
        collect(make_provider(handler))
    assert info.value.upstream_status == 400


def test_stream_connect_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("name resolution failed", request=request)

    with pytest.raises(UpstreamUnavailable):
        collect(make_provider(handler))


def test_inline_error_event_raises():
    body = sse(delta("a"), {'error': {'message': 'Provider returned error', 'code': 502}}, done=False)
    provider = make_provider(lambda request: httpx.Response(200, content=body))

    async def scenario():
        stream = await provider.open_chat_stream({'model': 'm', 'messages': []})
        received = []
        with pytest.raises(UpstreamError, match='Provider returned error'):
            async for event in stream.events():
                received.append(event)
        await stream.aclose()
        return received

    assert len(asyncio.run(scenario())) == 1


def test_interrupted_body_is_unavailable():
    async def body():
        yield sse(delta("a"), done=False)
        raise httpx.ReadError("connection reset")

    provider = make_provider(lambda request: httpx.Response(200, content=body()))

    async def scenario():
        stream = await provider.open_chat_stream({'model': 'm', 'messages': []})
        received = []
        with pytest.raises(UpstreamUnavailable, match='connection reset'):
            async for event in stream.events():
                received.append(event)
        return received

    assert len(asyncio.run(scenario())) == 1
