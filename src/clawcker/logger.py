"""Structured logging singleton.

Reads the level from the environment rather than from Settings: the logger is
imported by config-adjacent modules and must work before clawcker.toml is
parsed. The CLI applies ``[logging] level`` afterwards via :func:`set_level`.

Gateway tokens and provider API keys pass through the lifecycle code; any
event field whose name looks like a secret is masked before rendering.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_SECRET_FIELDS = frozenset({"api_key", "token", "gateway_token", "secret", "password"})


def _redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict.keys() & _SECRET_FIELDS:
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def _env_level() -> int:
    level_name = os.environ.get("LOGGING__LEVEL") or os.environ.get("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def _setup_logging() -> structlog.stdlib.BoundLogger:
    # stdlib root logger first so filter_by_level has something to consult
    logging.basicConfig(level=_env_level(), format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            _redact_secrets,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("clawcker")


logger = _setup_logging()


def set_level(level_name: str) -> None:
    """Apply a level name from config (``DEBUG``, ``INFO``...). Unknown names are ignored."""
    level = logging.getLevelName(level_name.upper())
    if isinstance(level, int):
        logging.getLogger().setLevel(level)


def log_line(line: str) -> None:
    """Default operator sink: one human-readable line per call.

    Runtime output streamed from ``pull``/``run`` arrives here line by line,
    as do the progress messages of the lifecycle workflows.
    """
    if line:
        logger.info(line)
