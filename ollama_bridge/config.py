import os
from dataclasses import dataclass
from functools import lru_cache

from ollama_bridge.utils.logging import logger


DEFAULT_BASE_URL = 'https://openrouter.ai/api/v1/'
DEFAULT_FILTER_PATH = 'models-filter'
DEFAULT_PORT = 11434


@dataclass(frozen=True)
class Settings:
    api_key: str
    base_url: str
    provider: str = 'openai'
    filter_path: str = DEFAULT_FILTER_PATH
    upstream_timeout: float | None = None
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT


def apply_cli_args(args: list[str], environ=None) -> None:
    """Fill credentials from positional arguments when the environment lacks them.

    `ollama-bridge KEY` or `ollama-bridge BASE_URL KEY`: the key is always the
    last argument, the base URL the first one when at least two are given.
    """
    environ = os.environ if environ is None else environ
    if not environ.get('OPENAI_API_KEY') and args:
        environ['OPENAI_API_KEY'] = args[-1]
    if not environ.get('OPENAI_BASE_URL') and len(args) >= 2:
        environ['OPENAI_BASE_URL'] = args[0]


def _float_or_none(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    return float(raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        api_key=os.getenv('OPENAI_API_KEY', '').strip(),
        base_url=os.getenv('OPENAI_BASE_URL', '').strip() or DEFAULT_BASE_URL,
        provider=os.getenv('MODEL_PROVIDER', 'openai').lower(),
        filter_path=os.getenv('MODELS_FILTER', DEFAULT_FILTER_PATH),
        upstream_timeout=_float_or_none(os.getenv('UPSTREAM_TIMEOUT')),
        host=os.getenv('BRIDGE_HOST', '0.0.0.0'),
        port=int(os.getenv('BRIDGE_PORT', str(DEFAULT_PORT))),
    )


def load_model_filter(path: str) -> frozenset[str]:
    """Read the newline-delimited allow-list; a missing file means no filtering."""
    try:
        with open(path, encoding='utf-8') as handle:
            models = frozenset(line.strip() for line in handle if line.strip())
    except FileNotFoundError:
        logger.info("models_filter_missing", path=path, detail="Skipping model filtering.")
        return frozenset()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("models_filter_failed", path=path, error=str(e))
        raise
    logger.info("models_filter_loaded", path=path, count=len(models))
    for model in sorted(models):
        logger.info("models_filter_entry", model=model)
    return models
