"""FastMCP server entrypoint for the notepad MCP service."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import timedelta
from functools import wraps
from typing import Any, Callable, Mapping

import mcp.types as mt
from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult

from .config import Config, ConfigError, load_config
from .dispatcher import NotepadDispatcher
from .errors import CONFIG_ERROR, INTERNAL_ERROR, NotepadError
from .logging import configure_logging, get_logger
from .registry import TOOLS, ToolDescriptor
from .storage import NotepadStore, StorageError
from .transports import run_stdio

LOGGER = get_logger(__name__)
SERVER = FastMCP(name="notepad-server")


@dataclass(slots=True)
class AppState:
    config: Config
    store: NotepadStore
    dispatcher: NotepadDispatcher


APP_STATE: AppState | None = None


class ShutdownManager:
    """Count in-flight tool calls and refuse new ones once shutdown starts."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._active = 0
        self._closing = False

    def reset(self) -> None:
        with self._condition:
            self._active = 0
            self._closing = False

    def try_enter(self) -> Callable[[], None] | None:
        """Register a call; returns its release callback, or None while closing."""

        with self._condition:
            if self._closing:
                return None
            self._active += 1
        return self._leave

    def _leave(self) -> None:
        with self._condition:
            self._active = max(self._active - 1, 0)
            self._condition.notify_all()

    def request_shutdown(self) -> None:
        with self._condition:
            self._closing = True
            self._condition.notify_all()

    def wait_for_drain(self, timeout: timedelta) -> bool:
        """Block until no call is in flight; False when ``timeout`` expires first."""

        seconds = max(timeout.total_seconds(), 0.0)
        with self._condition:
            return self._condition.wait_for(lambda: self._active == 0, timeout=seconds)

    @property
    def active_requests(self) -> int:
        with self._condition:
            return self._active


_SHUTDOWN_MANAGER = ShutdownManager()


def initialize_app(config: Config) -> None:
    """Open the store and build the dispatcher used by tool calls."""

    global APP_STATE
    if APP_STATE is not None:
        APP_STATE.store.close()
        APP_STATE = None
    _SHUTDOWN_MANAGER.reset()
    store = NotepadStore(config)
    dispatcher = NotepadDispatcher(
        store,
        request_timeout=config.request_timeout,
        idempotent_mutations=config.idempotent_mutations,
    )
    APP_STATE = AppState(config=config, store=store, dispatcher=dispatcher)


def shutdown_app() -> None:
    """Stop accepting calls, drain in-flight ones and close the store."""

    global APP_STATE
    if APP_STATE is None:
        return
    config = APP_STATE.config
    _SHUTDOWN_MANAGER.request_shutdown()
    drained = _SHUTDOWN_MANAGER.wait_for_drain(config.shutdown_timeout)
    if not drained:
        LOGGER.warning(
            "shutdown.timeout",
            extra={
                "context": {
                    "active_requests": _SHUTDOWN_MANAGER.active_requests,
                    "timeout_seconds": config.shutdown_timeout.total_seconds(),
                }
            },
        )
    APP_STATE.store.close()
    APP_STATE = None
    LOGGER.info("shutdown.complete")


def get_dispatcher() -> NotepadDispatcher:
    if APP_STATE is None:
        raise NotepadError(CONFIG_ERROR, "Server is not initialised")
    return APP_STATE.dispatcher


def _shutdown_protected(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        release = _SHUTDOWN_MANAGER.try_enter()
        if release is None:
            raise NotepadError(CONFIG_ERROR, "Server is shutting down")
        try:
            return await func(*args, **kwargs)
        finally:
            release()

    return wrapper


def _error_guard(func):
    """Log failed calls and convert unexpected exceptions into INTERNAL_ERROR."""

    @wraps(func)
    async def wrapper(name: str, *args, **kwargs):
        try:
            return await func(name, *args, **kwargs)
        except NotepadError as exc:
            LOGGER.warning("dispatch.failed", extra={"context": {"tool": name, **exc.to_dict()}})
            raise
        except Exception as exc:
            LOGGER.exception("dispatch.crashed", extra={"context": {"tool": name}})
            raise NotepadError(INTERNAL_ERROR, str(exc) or type(exc).__name__, details={"tool": name}) from exc

    return wrapper


@_error_guard
@_shutdown_protected
async def _call_tool_impl(name: str, arguments: Mapping[str, Any] | None = None) -> list[mt.TextContent]:
    dispatcher = get_dispatcher()
    return await dispatcher.call_tool(name, arguments)


class NotepadTool(Tool):
    """FastMCP tool advertising one registry descriptor and delegating to the dispatcher."""

    @classmethod
    def from_descriptor(cls, descriptor: ToolDescriptor) -> "NotepadTool":
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.to_dict()["inputSchema"],
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        content = await _call_tool_impl(self.name, arguments)
        return ToolResult(content=content)


class ToolDispatchMiddleware(Middleware):
    """Route every tools/call through the dispatcher and raise protocol-level errors.

    Unknown tool names reach the dispatcher too, so they are reported as
    METHOD_NOT_FOUND instead of FastMCP's generic tool error.
    """

    async def on_call_tool(
        self,
        context: MiddlewareContext[mt.CallToolRequestParams],
        call_next: CallNext[mt.CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        params = context.message
        try:
            content = await _call_tool_impl(params.name, params.arguments)
        except NotepadError as exc:
            raise exc.to_mcp_error() from exc
        return ToolResult(content=content)


NOTEPAD_TOOLS: dict[str, NotepadTool] = {}
for _descriptor in TOOLS:
    _tool = NotepadTool.from_descriptor(_descriptor)
    SERVER.add_tool(_tool)
    NOTEPAD_TOOLS[_descriptor.name] = _tool

SERVER.add_middleware(ToolDispatchMiddleware())


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for running the notepad server over stdio."""

    try:
        config = load_config(argv)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    configure_logging(config.log_level)
    LOGGER.info(
        "Configuration loaded",
        extra={
            "context": {
                "database_path": str(config.database_path),
                "request_timeout": config.request_timeout.total_seconds(),
                "idempotent_mutations": config.idempotent_mutations,
            }
        },
    )

    try:
        initialize_app(config)
    except StorageError as exc:
        LOGGER.error(
            "Failed to initialize storage",
            exc_info=exc,
            extra={"context": exc.details or {}},
        )
        raise SystemExit(1) from exc

    try:
        run_stdio(SERVER, show_banner=config.show_banner)
    except KeyboardInterrupt:
        LOGGER.info("Shutdown requested")
    finally:
        shutdown_app()


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    main()
