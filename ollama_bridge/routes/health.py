from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ollama_bridge import __version__
from ollama_bridge.utils.compat import LIVENESS_TEXT

router = APIRouter(tags=["health"])


@router.get('/', response_class=PlainTextResponse)
async def root():
    return LIVENESS_TEXT


@router.head('/', response_class=PlainTextResponse)
async def root_head():
    return ""


@router.get('/api/version')
async def version():
    return {'version': __version__}
