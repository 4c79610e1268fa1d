import json

import httpx

from ollama_bridge.config import DEFAULT_BASE_URL
from ollama_bridge.utils.logging import logger
from .base import ChatProvider, ChatStream, UpstreamError, UpstreamUnavailable


CONNECT_TIMEOUT = 10.0


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def _error_message(error) -> str:
    # OpenAI-style {"error": {"message": ...}} or a bare string
    if isinstance(error, dict):
        message = error.get('message')
        if isinstance(message, str) and message.strip():
            return message
        if isinstance(error.get('type'), str):
            return error['type']
        return json.dumps(error)
    return str(error)


def _format_http_error(response: httpx.Response) -> str:
    body = response.text
    message = body
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        if 'error' in parsed:
            message = _error_message(parsed['error'])
        elif isinstance(parsed.get('message'), str):
            message = parsed['message']
    return f"upstream HTTP {response.status_code}: {message[:300]}"


class OpenAICompatibleStream(ChatStream):
    """Server-sent events from /chat/completions decoded into chunk dicts."""

    def __init__(self, response: httpx.Response):
        self._response = response

    async def events(self):
        try:
            async for line in self._response.aiter_lines():
                line = line.rstrip('\r')
                # blank separators, ": keep-alive" comments, "event:"/"id:" fields
                if not line.startswith('data:'):
                    continue
                data = line[5:].strip()
                if data == '[DONE]':
                    return
                try:
                    event = json.loads(data)
                except json.JSONDecodeError as e:
                    raise UpstreamError(f"upstream stream returned invalid JSON: {data[:300]}") from e
                if not isinstance(event, dict):
                    continue
                if event.get('error'):
                    raise UpstreamError(_error_message(event['error']))
                yield event
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"upstream stream interrupted: {_describe(e)}") from e

    async def aclose(self):
        await self._response.aclose()


class OpenAICompatibleProvider(ChatProvider):
    name = "openai"

    def __init__(self, *, api_key: str, base_url: str | None = None, timeout: float | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        if not api_key:
            raise ValueError("Missing API key. Set OPENAI_API_KEY or pass it on the command line.")
        self.base_url = (base_url or DEFAULT_BASE_URL).strip().rstrip('/') + '/'
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={'Authorization': f'Bearer {api_key}'},
            timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT),
            transport=transport,
        )

    async def list_models(self) -> list[str]:
        payload = await self._request_json('GET', 'models')
        items = payload.get('data')
        if not isinstance(items, list):
            raise UpstreamError("upstream returned an invalid models payload")
        model_ids = []
        for item in items:
            model_id = item.get('id') if isinstance(item, dict) else None
            if isinstance(model_id, str) and model_id:
                model_ids.append(model_id)
        return model_ids

    async def chat(self, payload: dict) -> dict:
        return await self._request_json('POST', 'chat/completions', payload={**payload, 'stream': False})

    async def open_chat_stream(self, payload: dict) -> OpenAICompatibleStream:
        request = self._client.build_request(
            'POST',
            'chat/completions',
            json={**payload, 'stream': True},
            headers={'Accept': 'text/event-stream'},
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning("upstream_stream_connect_failed", url=str(request.url), error=_describe(e))
            raise UpstreamUnavailable(f"upstream connection error: {_describe(e)}") from e
        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            raise UpstreamError(_format_http_error(response), upstream_status=response.status_code)
        return OpenAICompatibleStream(response)

    async def aclose(self):
        await self._client.aclose()

    async def _request_json(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TransportError as e:
            logger.warning("upstream_request_failed", method=method, path=path, error=_describe(e))
            raise UpstreamUnavailable(f"upstream connection error: {_describe(e)}") from e
        if response.status_code >= 400:
            raise UpstreamError(_format_http_error(response), upstream_status=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(f"upstream returned invalid JSON: {response.text[:300]}") from e
        if not isinstance(body, dict):
            raise UpstreamError("upstream returned a non-object JSON response")
        return body
