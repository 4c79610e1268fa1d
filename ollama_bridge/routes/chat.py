from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ollama_bridge.models.schemas import ChatRequest, parse_model, read_json_body
from ollama_bridge.providers import ChatProvider, get_provider
from ollama_bridge.utils.catalog import ModelCatalog, get_catalog
from ollama_bridge.utils.logging import logger
from ollama_bridge.utils.metrics import STREAM_OUTCOMES
from ollama_bridge.utils.resolver import ModelResolver
from ollama_bridge.utils.stream import StreamTranscoder
from ollama_bridge.utils.translate import ChatTranslator, build_chat_payload

router = APIRouter(prefix="/api", tags=["chat"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"
NDJSON_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.post('/chat')
async def chat(
    request: Request,
    provider: ChatProvider = Depends(get_provider),
    catalog: ModelCatalog = Depends(get_catalog),
):
    body = parse_model(ChatRequest, await read_json_body(request))
    model_id = await ModelResolver(catalog).resolve(body.model)
    request.state.model = model_id
    request.state.stream = body.wants_stream
    logger.info("chat_model_resolved", requested=body.model, model=model_id, stream=body.wants_stream)

    if not body.wants_stream:
        return await ChatTranslator(provider).translate(body, model_id)

    # Open upstream before answering so connection/HTTP failures still get a status code.
    stream = await provider.open_chat_stream(build_chat_payload(model_id, body))
    transcoder = StreamTranscoder(model_id, disconnected=request.is_disconnected)

    async def body_iterator():
        try:
            async for line in transcoder.transcode(stream):
                yield line
        finally:
            STREAM_OUTCOMES.labels(transcoder.state.value).inc()

    return StreamingResponse(
        body_iterator(),
        media_type=NDJSON_MEDIA_TYPE,
        headers=NDJSON_HEADERS,
        background=BackgroundTask(stream.aclose),
    )
