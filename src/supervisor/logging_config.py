"""Log output configuration.

Modules log through the standard library (`logging.getLogger(__name__)`)
and pass context with `extra={...}`. This module decides how those records
are rendered: as JSON lines through structlog's ProcessorFormatter, with
the `extra` fields as top-level keys, or as plain text for local runs.
"""

import logging
from typing import List

import structlog


LOG_FORMATS = ("json", "text")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _shared_processors() -> List[structlog.types.Processor]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Install a single root handler with the requested format.

    Replaces any handlers installed earlier, including the basicConfig
    fallback used before settings are loaded.

    Args:
        level: Root log level name.
        log_format: "json" for structured output, "text" for plain lines.

    Raises:
        ValueError: If the format is unknown.
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format}")

    if log_format == "json":
        formatter: logging.Formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
