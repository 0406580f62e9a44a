"""Stdio transport wiring."""

from __future__ import annotations

import signal
import threading
from typing import Any

from fastmcp import FastMCP

from ..logging import get_logger

logger = get_logger(__name__)


def _raise_interrupt(signum: int, _frame: Any) -> None:
    raise KeyboardInterrupt(f"received signal {signum}")


def _install_sigterm_handler() -> Any:
    """Treat SIGTERM like Ctrl-C so both end serving through the same shutdown path."""

    if threading.current_thread() is not threading.main_thread():
        return None
    previous = signal.getsignal(signal.SIGTERM)
    signal.signal(signal.SIGTERM, _raise_interrupt)
    return previous


def _restore_sigterm_handler(previous: Any) -> None:
    if previous is None:
        return
    signal.signal(signal.SIGTERM, previous)


def run_stdio(server: FastMCP, *, show_banner: bool = True) -> None:
    """Run the server using the MCP stdio transport until EOF or a termination signal."""

    context = {"show_banner": bool(show_banner)}
    logger.info("transport.stdio.start", extra={"context": context})
    previous_handler = _install_sigterm_handler()
    try:
        server.run(transport="stdio", show_banner=show_banner)
    except KeyboardInterrupt:
        logger.info("transport.stdio.interrupted", extra={"context": context})
        raise
    except Exception:
        logger.exception("transport.stdio.failed", extra={"context": context})
        raise
    else:
        logger.info("transport.stdio.stop", extra={"context": context})
    finally:
        _restore_sigterm_handler(previous_handler)
