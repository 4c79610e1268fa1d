from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from ollama_bridge.utils.logging import logger
import time
import uuid


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request, tagged with the model a chat request resolved to."""

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        request_id = request.headers.get('x-request-id') or uuid.uuid4().hex[:12]
        # every log line emitted while handling the request carries its id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        # routes fill these in; scope["state"] is shared with the endpoint's Request
        request.state.model = None
        request.state.stream = None

        response = await call_next(request)
        # streaming bodies are still being sent at this point; duration is time to headers
        duration = time.time() - start
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            model=request.state.model,
            stream=request.state.stream,
            duration_ms=int(duration * 1000),
        )
        response.headers['X-Request-ID'] = request_id
        structlog.contextvars.clear_contextvars()
        return response
