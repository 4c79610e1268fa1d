import argparse
import sys
import time
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from ollama_bridge.config import apply_cli_args, get_settings
from ollama_bridge.models.schemas import ClientInputError
from ollama_bridge.providers import ModelProviderError, get_provider
from ollama_bridge.routes import chat, health, show, tags
from ollama_bridge.security.middleware import LoggingMiddleware
from ollama_bridge.utils.catalog import get_catalog
from ollama_bridge.utils.logging import logger
from ollama_bridge.utils.metrics import REQUEST_COUNT, REQUEST_LATENCY, UPSTREAM_ERRORS

load_dotenv()  # Load environment variables from .env if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("bridge_starting", base_url=settings.base_url, provider=settings.provider)
    # builds the provider and reads the allow-list once, before the first request
    app.dependency_overrides.get(get_catalog, get_catalog)()
    yield
    if get_provider.cache_info().currsize:
        await get_provider().aclose()
    logger.info("bridge_stopped")


app = FastAPI(title="Ollama Bridge", lifespan=lifespan)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def metrics_middleware(request, call_next):
    start = time.time()
    response = await call_next(request)
    REQUEST_COUNT.labels(request.method, request.url.path, response.status_code).inc()
    REQUEST_LATENCY.labels(request.url.path).observe(time.time() - start)
    return response


@app.exception_handler(ClientInputError)
async def client_input_handler(request: Request, exc: ClientInputError):
    return JSONResponse(status_code=400, content={'error': str(exc)})


@app.exception_handler(ModelProviderError)
async def provider_error_handler(request: Request, exc: ModelProviderError):
    UPSTREAM_ERRORS.labels(exc.kind).inc()
    logger.error("provider_failed", path=request.url.path, kind=exc.kind, error=str(exc))
    return JSONResponse(status_code=exc.status_code, content={'error': str(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Ollama clients read errors from an "error" key, not FastAPI's "detail"
    return JSONResponse(status_code=exc.status_code, content={'error': str(exc.detail)}, headers=exc.headers)


@app.get('/metrics')
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

# Include routers
app.include_router(health.router)
app.include_router(tags.router)
app.include_router(show.router)
app.include_router(chat.router)


def run(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="ollama-bridge",
        description="Serve the Ollama API on top of an OpenAI-compatible provider.",
    )
    parser.add_argument('args', nargs='*', metavar='[BASE_URL] API_KEY',
                        help="used only when OPENAI_BASE_URL / OPENAI_API_KEY are not set")
    parsed = parser.parse_args(sys.argv[1:] if argv is None else argv)

    apply_cli_args(parsed.args)
    get_settings.cache_clear()
    settings = get_settings()
    if not settings.api_key:
        logger.error("missing_api_key", detail="OPENAI_API_KEY environment variable or command-line argument not set.")
        raise SystemExit(1)

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
