"""Synthetic Ollama-shape metadata.

Ollama clients expect fields (digest, size, quantization, license, ...) that an
OpenAI-compatible provider has no notion of. They are placeholders, kept in one
table so they are never confused with data that comes from the provider.
"""
from datetime import datetime, timezone

# /api/tags entry fields
TAG_SIZE = 270898672
TAG_DIGEST = "9077fe9d2ae1a4a41a868836b56b8163731a8fe16621397028c2c76f838c6907"

# CatalogEntry.details
MODEL_DETAILS = {
    'parent_model': "",
    'format': "gguf",
    'family': "claude",
    'families': ["claude"],
    'parameter_size': "175B",
    'quantization_level': "Q4_K_M",
}

# /api/show body (minus the timestamp)
SHOW_LICENSE = "STUB License"
SHOW_SYSTEM = "STUB SYSTEM"
SHOW_DETAILS = {
    'format': "gguf",
    'parameter_size': "200B",
    'quantization_level': "Q4_K_M",
}
SHOW_MODEL_INFO = {
    'architecture': "STUB",
    'context_length': 200000,
    'parameter_count': 200_000_000_000,
}
SHOW_CAPABILITIES = ["completion", "tools", "insert"]

# Non-streaming responses report durations as token counts times this factor.
DURATION_PER_TOKEN = 10

DEFAULT_FINISH_REASON = "stop"
LIVENESS_TEXT = "Ollama is running"


def rfc3339_now() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec='seconds')


def show_payload() -> dict:
    return {
        'license': SHOW_LICENSE,
        'system': SHOW_SYSTEM,
        'modifiedAt': rfc3339_now(),
        'details': dict(SHOW_DETAILS),
        'model_info': dict(SHOW_MODEL_INFO),
        'capabilities': list(SHOW_CAPABILITIES),
    }
