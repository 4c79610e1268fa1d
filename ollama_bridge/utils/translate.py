"""Ollama /api/chat <-> OpenAI /chat/completions for the non-streaming path."""
from ollama_bridge.models.schemas import ChatMessage, ChatRequest
from ollama_bridge.providers import ChatProvider, EmptyResponse, UpstreamError
from ollama_bridge.utils import compat

# Ollama "options" key -> OpenAI request field
OPTION_FIELD_MAP = {
    'temperature': 'temperature',
    'top_p': 'top_p',
    'top_k': 'top_k',
    'seed': 'seed',
    'stop': 'stop',
    'num_predict': 'max_tokens',
    'presence_penalty': 'presence_penalty',
    'frequency_penalty': 'frequency_penalty',
}

# leading base64 characters of common image signatures
_IMAGE_PREFIXES = {
    'iVBOR': 'image/png',
    '/9j/': 'image/jpeg',
    'R0lGOD': 'image/gif',
    'UklGR': 'image/webp',
}


def image_url(image: str) -> str:
    if image.startswith(('data:', 'http://', 'https://')):
        return image
    mime = next((m for prefix, m in _IMAGE_PREFIXES.items() if image.startswith(prefix)), 'image/png')
    return f"data:{mime};base64,{image}"


def to_provider_message(message: ChatMessage) -> dict:
    content = message.content or ""
    if message.images:
        if isinstance(content, list):
            parts = list(content)
        else:
            parts = [{'type': 'text', 'text': content}] if content else []
        parts.extend({'type': 'image_url', 'image_url': {'url': image_url(img)}} for img in message.images)
        converted = {'role': message.role, 'content': parts}
    else:
        converted = {'role': message.role, 'content': content}
    for key in ('name', 'tool_calls', 'tool_call_id'):
        value = getattr(message, key)
        if value is not None:
            converted[key] = value
    return converted


def build_chat_payload(model_id: str, request: ChatRequest) -> dict:
    payload = {
        'model': model_id,
        'messages': [to_provider_message(m) for m in request.messages],
    }
    for option, field in OPTION_FIELD_MAP.items():
        value = (request.options or {}).get(option)
        if value is not None:
            payload[field] = value
    return payload


def _token_count(usage: dict, key: str) -> int:
    value = usage.get(key) or 0
    if not isinstance(value, int) or isinstance(value, bool):
        raise UpstreamError(f"upstream returned a malformed completion: usage.{key}={value!r}")
    return value


def to_ollama_response(completion: dict, model_id: str) -> dict:
    choices = completion.get('choices') or []
    if not isinstance(choices, list):
        raise UpstreamError("upstream returned a malformed completion: choices is not a list")
    if not choices:
        raise EmptyResponse()
    choice = choices[0] or {}
    if not isinstance(choice, dict):
        raise UpstreamError("upstream returned a malformed completion: choice is not an object")
    message = choice.get('message') or {}
    if not isinstance(message, dict):
        raise UpstreamError("upstream returned a malformed completion: message is not an object")
    content = message.get('content') or ""
    if not isinstance(content, str):
        raise UpstreamError("upstream returned a malformed completion: content is not a string")
    finish_reason = str(choice.get('finish_reason') or compat.DEFAULT_FINISH_REASON)

    usage = completion.get('usage') or {}
    if not isinstance(usage, dict):
        raise UpstreamError("upstream returned a malformed completion: usage is not an object")
    prompt_tokens = _token_count(usage, 'prompt_tokens')
    completion_tokens = _token_count(usage, 'completion_tokens')
    total_tokens = _token_count(usage, 'total_tokens')

    return {
        'model': model_id,
        'created_at': compat.rfc3339_now(),
        'message': {'role': 'assistant', 'content': content},
        'done': True,
        'finish_reason': finish_reason,
        'total_duration': total_tokens * compat.DURATION_PER_TOKEN,
        'load_duration': 0,
        'prompt_eval_count': prompt_tokens,
        'eval_count': completion_tokens,
        'eval_duration': completion_tokens * compat.DURATION_PER_TOKEN,
    }


class ChatTranslator:
    def __init__(self, provider: ChatProvider):
        self.provider = provider

    async def translate(self, request: ChatRequest, model_id: str) -> dict:
        completion = await self.provider.chat(build_chat_payload(model_id, request))
        return to_ollama_response(completion, model_id)
