"""Tool-call dispatch: argument validation, store invocation and result shaping."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from mcp.types import TextContent

from .errors import METHOD_NOT_FOUND, NOT_FOUND, TIMEOUT, VALIDATION_ERROR, NotepadError
from .logging import get_logger
from .models import dump_notepad, dump_notepads
from .registry import (
    ADD_NOTEPAD,
    DEL_NOTEPAD,
    LIST_NOTEPADS,
    TOOLS,
    UPDATE_NOTEPAD,
    USE_NOTEPAD,
    ToolDescriptor,
)
from .storage import NotepadStore

logger = get_logger(__name__)

T = TypeVar("T")
Handler = Callable[[dict[str, Any]], Awaitable[str]]


def _not_found(notepad_id: int) -> NotepadError:
    return NotepadError(NOT_FOUND, f"Notepad with ID {notepad_id} not found", details={"id": notepad_id})


class NotepadDispatcher:
    """Map tool names onto single-statement store operations.

    The store is injected so tests can substitute their own. Arguments are
    checked against the registry schema before any handler runs, and every
    failure leaves as a :class:`NotepadError`.
    """

    def __init__(
        self,
        store: NotepadStore,
        *,
        request_timeout: timedelta | float | None = None,
        idempotent_mutations: bool = False,
    ) -> None:
        self._store = store
        if isinstance(request_timeout, timedelta):
            request_timeout = request_timeout.total_seconds()
        self._timeout = request_timeout if request_timeout and request_timeout > 0 else None
        self._idempotent_mutations = idempotent_mutations
        self._validators = {tool.name: Draft202012Validator(tool.input_schema) for tool in TOOLS}
        self._handlers: dict[str, Handler] = {
            ADD_NOTEPAD: self._add_notepad,
            DEL_NOTEPAD: self._del_notepad,
            UPDATE_NOTEPAD: self._update_notepad,
            LIST_NOTEPADS: self._list_notepads,
            USE_NOTEPAD: self._use_notepad,
        }

    def list_tools(self) -> list[ToolDescriptor]:
        return list(TOOLS)

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> list[TextContent]:
        """Invoke a tool by name and return its text content blocks."""

        handler = self._handlers.get(name)
        if handler is None:
            raise NotepadError(METHOD_NOT_FOUND, f"Unknown tool: {name}", details={"tool": name})
        payload = self._validate(name, arguments)
        logger.debug("dispatch.call", extra={"context": {"tool": name}})
        text = await handler(payload)
        return [TextContent(type="text", text=text)]

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _add_notepad(self, arguments: dict[str, Any]) -> str:
        notepad = await self._run(self._store.add_notepad, arguments["name"], arguments["content"])
        return f"Notepad added with ID {notepad.id}"

    async def _del_notepad(self, arguments: dict[str, Any]) -> str:
        notepad_id = _coerce_id(arguments["id"])
        deleted = await self._run(self._store.delete_notepad, notepad_id)
        if not deleted and not self._idempotent_mutations:
            raise _not_found(notepad_id)
        return f"Notepad with ID {notepad_id} deleted"

    async def _update_notepad(self, arguments: dict[str, Any]) -> str:
        notepad_id = _coerce_id(arguments["id"])
        updated = await self._run(self._store.update_notepad, notepad_id, arguments["content"])
        if not updated and not self._idempotent_mutations:
            raise _not_found(notepad_id)
        return f"Notepad with ID {notepad_id} updated"

    async def _list_notepads(self, arguments: dict[str, Any]) -> str:
        notepads = await self._run(self._store.list_notepads)
        return dump_notepads(notepads)

    async def _use_notepad(self, arguments: dict[str, Any]) -> str:
        notepad_id = _coerce_id(arguments["id"])
        notepad = await self._run(self._store.get_notepad, notepad_id)
        if notepad is None:
            raise _not_found(notepad_id)
        return dump_notepad(notepad)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, name: str, arguments: Mapping[str, Any] | None) -> dict[str, Any]:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise NotepadError(VALIDATION_ERROR, f"Arguments for {name} must be an object")
        payload = dict(arguments)
        error = best_match(self._validators[name].iter_errors(payload))
        if error is not None:
            path = "/".join(str(part) for part in error.absolute_path)
            raise NotepadError(
                VALIDATION_ERROR,
                f"Invalid arguments for {name}: {error.message}",
                details={"tool": name, "path": path, "validator": str(error.validator)},
            )
        return payload

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run one blocking store call on a worker thread, bounded by the request timeout."""

        call = asyncio.to_thread(func, *args)
        if self._timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise NotepadError(
                TIMEOUT,
                f"Request timed out after {self._timeout:g}s",
                details={"timeout_seconds": self._timeout},
            ) from exc


# SQLite INTEGER is a signed 64-bit value.
_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1


def _coerce_id(value: Any) -> int:
    # The schema admits any JSON number; ids are integral.
    if isinstance(value, float) and not value.is_integer():
        raise NotepadError(VALIDATION_ERROR, f"Notepad ID must be an integer, got {value!r}", details={"path": "id"})
    notepad_id = int(value)
    if not _MIN_ID <= notepad_id <= _MAX_ID:
        raise NotepadError(
            VALIDATION_ERROR,
            f"Notepad ID {value!r} is outside the 64-bit integer range",
            details={"path": "id"},
        )
    return notepad_id
