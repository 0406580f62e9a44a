"""Package logging for the notepad server.

All records go to stderr through FastMCP's rich handler; stdout belongs to
the stdio protocol stream.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastmcp.utilities.logging import configure_logging as _fastmcp_configure_logging

ROOT_LOGGER = "notepad_server"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_configured = False


def configure_logging(level: LogLevel | int = "INFO", **rich_kwargs: Any) -> logging.Logger:
    """Install the stderr handler on the package root logger at ``level``."""

    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    _fastmcp_configure_logging(level=level, logger=root, **rich_kwargs)
    _configured = True
    return root


def get_logger(name: str | None = None) -> logging.Logger:
    # Module loggers hang off the package root so one call configures them all.
    if not _configured:
        configure_logging()
    if not name or name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name or ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
