"""structlog setup shared by every module (`from ollama_bridge.utils.logging import logger`)."""
import logging
import os
import sys

import structlog


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    if json_output is None:
        json_output = os.getenv('LOG_JSON', 'false').lower() in ('1', 'true', 'yes')

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger("ollama_bridge")
