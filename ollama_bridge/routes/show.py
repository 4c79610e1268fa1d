from fastapi import APIRouter, Request

from ollama_bridge.models.schemas import ClientInputError, ShowRequest, parse_model, read_json_body
from ollama_bridge.utils import compat

router = APIRouter(prefix="/api", tags=["models"])


@router.post('/show')
async def show(request: Request):
    # Static metadata: the provider has nothing equivalent to report per model.
    body = parse_model(ShowRequest, await read_json_body(request))
    if not body.alias:
        raise ClientInputError("Model name is required")
    return compat.show_payload()
