"""structlog on top of stdlib logging, rendered to stderr.

stdout carries the report, so every handler installed here writes to
stderr.  ``RISKRADAR_LOG_LEVEL`` and ``RISKRADAR_LOG_FORMAT``
(``console`` or ``json``) override the defaults.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

LOG_FORMATS = ("console", "json")

# Third-party loggers that are noisy at DEBUG.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _resolve_level(verbose: bool) -> int:
    name = os.environ.get("RISKRADAR_LOG_LEVEL") or ("DEBUG" if verbose else "WARNING")
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


def _resolve_format() -> str:
    fmt = os.environ.get("RISKRADAR_LOG_FORMAT", "console").lower()
    return fmt if fmt in LOG_FORMATS else "console"


def build_processors(fmt: str) -> list[structlog.types.Processor]:
    """Processors shared by structlog loggers and foreign stdlib records.

    JSON lines get a UTC timestamp; console lines stay short.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if fmt == "json":
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    return processors


def build_renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(verbose: bool = False) -> None:
    """Route structlog and stdlib records through one stderr handler."""
    level = _resolve_level(verbose)
    fmt = _resolve_format()
    processors = build_processors(fmt)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                build_renderer(fmt),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    logging.getLogger("riskradar").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
