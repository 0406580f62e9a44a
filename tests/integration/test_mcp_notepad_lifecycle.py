from __future__ import annotations

import json

import mcp.types as mt
import pytest
from fastmcp import Client
from fastmcp.server.middleware import MiddlewareContext
from mcp.shared.exceptions import McpError

from notepad_server import load_config
from notepad_server.errors import NOT_FOUND, VALIDATION_ERROR, NotepadError
from notepad_server.server import (
    NOTEPAD_TOOLS,
    SERVER,
    ToolDispatchMiddleware,
    _call_tool_impl,
    initialize_app,
    shutdown_app,
)


@pytest.fixture
def app(tmp_path):
    environ = {"NOTEPAD_SERVER_DATABASE_PATH": str(tmp_path / "notepads.db")}
    config = load_config(argv=[], environ=environ)
    initialize_app(config)
    yield config
    shutdown_app()


async def _call(name: str, arguments=None) -> str:
    blocks = await _call_tool_impl(name, arguments)
    return blocks[0].text


@pytest.mark.asyncio
async def test_full_notepad_lifecycle(app) -> None:
    assert await _call("addNotepad", {"name": "shopping", "content": "milk,eggs"}) == "Notepad added with ID 1"

    listing = json.loads(await _call("listNotepads", {}))
    assert listing == [{"id": 1, "name": "shopping", "content": "milk,eggs"}]

    assert await _call("updateNotepad", {"id": 1, "content": "milk,eggs,bread"}) == "Notepad with ID 1 updated"

    pad = json.loads(await _call("useNotepad", {"id": 1}))
    assert pad == {"id": 1, "name": "shopping", "content": "milk,eggs,bread"}

    assert await _call("delNotepad", {"id": 1}) == "Notepad with ID 1 deleted"

    with pytest.raises(NotepadError) as exc:
        await _call("useNotepad", {"id": 1})
    assert exc.value.code == NOT_FOUND

    assert json.loads(await _call("listNotepads")) == []


@pytest.mark.asyncio
async def test_ids_are_not_reused_after_delete(app) -> None:
    for index in range(3):
        await _call("addNotepad", {"name": f"pad-{index}", "content": ""})
    await _call("delNotepad", {"id": 3})

    assert await _call("addNotepad", {"name": "again", "content": ""}) == "Notepad added with ID 4"
    ids = [row["id"] for row in json.loads(await _call("listNotepads"))]
    assert ids == [1, 2, 4]


@pytest.mark.asyncio
async def test_notepads_survive_reinitialisation(app) -> None:
    await _call("addNotepad", {"name": "durable", "content": "kept"})

    shutdown_app()
    initialize_app(app)

    pad = json.loads(await _call("useNotepad", {"id": 1}))
    assert pad["content"] == "kept"


@pytest.mark.asyncio
async def test_middleware_raises_protocol_errors(app) -> None:
    middleware = ToolDispatchMiddleware()

    async def _unreachable(context):  # pragma: no cover - middleware never delegates
        raise AssertionError("call_next should not run")

    unknown = MiddlewareContext(message=mt.CallToolRequestParams(name="dropNotepads", arguments={}))
    with pytest.raises(McpError) as exc:
        await middleware.on_call_tool(unknown, _unreachable)
    assert exc.value.error.code == mt.METHOD_NOT_FOUND
    assert exc.value.error.message == "Unknown tool: dropNotepads"

    invalid = MiddlewareContext(message=mt.CallToolRequestParams(name="useNotepad", arguments={"id": "one"}))
    with pytest.raises(McpError) as exc:
        await middleware.on_call_tool(invalid, _unreachable)
    assert exc.value.error.code == mt.INVALID_PARAMS

    missing = MiddlewareContext(message=mt.CallToolRequestParams(name="useNotepad", arguments={"id": 42}))
    with pytest.raises(McpError) as exc:
        await middleware.on_call_tool(missing, _unreachable)
    assert exc.value.error.code == -32002
    assert exc.value.error.data["details"] == {"id": 42}


@pytest.mark.asyncio
async def test_middleware_returns_text_content(app) -> None:
    middleware = ToolDispatchMiddleware()
    context = MiddlewareContext(
        message=mt.CallToolRequestParams(name="addNotepad", arguments={"name": "n", "content": "c"})
    )

    result = await middleware.on_call_tool(context, None)  # type: ignore[arg-type]

    assert [block.text for block in result.content] == ["Notepad added with ID 1"]


@pytest.mark.asyncio
async def test_registered_tool_run_delegates_to_dispatcher(app) -> None:
    await NOTEPAD_TOOLS["addNotepad"].run({"name": "direct", "content": "x"})

    result = await NOTEPAD_TOOLS["listNotepads"].run({})

    assert json.loads(result.content[0].text) == [{"id": 1, "name": "direct", "content": "x"}]


@pytest.mark.asyncio
async def test_in_memory_client_round_trip(app) -> None:
    async with Client(SERVER) as client:
        tools = await client.list_tools()
        assert sorted(tool.name for tool in tools) == sorted(NOTEPAD_TOOLS)

        added = await client.call_tool("addNotepad", {"name": "client", "content": "hello"})
        assert added.content[0].text == "Notepad added with ID 1"

        used = await client.call_tool("useNotepad", {"id": 1})
        assert json.loads(used.content[0].text) == {"id": 1, "name": "client", "content": "hello"}

        with pytest.raises(Exception, match="Unknown tool: renameNotepad"):
            await client.call_tool("renameNotepad", {"id": 1})

        with pytest.raises(Exception, match="Notepad with ID 99 not found"):
            await client.call_tool("useNotepad", {"id": 99})


@pytest.mark.asyncio
async def test_huge_id_is_rejected_without_crashing(app) -> None:
    with pytest.raises(NotepadError) as exc:
        await _call("useNotepad", {"id": 2**70})

    assert exc.value.code == VALIDATION_ERROR
