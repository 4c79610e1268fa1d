import json
from typing import Any, Optional, Union

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ClientInputError(ValueError):
    """Malformed request body; rendered as HTTP 400 {"error": ...}."""


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    role: str
    # Ollama sends a string; some clients send OpenAI-style content parts
    content: Union[str, list[dict[str, Any]], None] = ""
    images: Optional[list[str]] = None
    name: Optional[str] = None
    tool_calls: Optional[list[dict[str, Any]]] = None
    tool_call_id: Optional[str] = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    model: str = Field(min_length=1)
    messages: list[ChatMessage] = Field(default_factory=list)
    # absent or null means streaming, like Ollama itself
    stream: Optional[bool] = None
    options: Optional[dict[str, Any]] = None

    @property
    def wants_stream(self) -> bool:
        return True if self.stream is None else self.stream


class ShowRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = None
    model: Optional[str] = None

    @property
    def alias(self) -> str:
        return self.name or self.model or ""


async def read_json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ClientInputError("Invalid JSON payload") from e


def parse_model(schema: type[BaseModel], body: Any) -> BaseModel:
    if not isinstance(body, dict):
        raise ClientInputError("Invalid JSON payload")
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        fields = sorted({'.'.join(str(p) for p in err['loc']) for err in e.errors()})
        if 'model' in fields:
            raise ClientInputError("Model name is required") from e
        raise ClientInputError(f"Invalid JSON payload: {', '.join(fields)}") from e
