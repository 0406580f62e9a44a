"""Static catalog of the notepad tools advertised on discovery."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

ADD_NOTEPAD = "addNotepad"
DEL_NOTEPAD = "delNotepad"
UPDATE_NOTEPAD = "updateNotepad"
LIST_NOTEPADS = "listNotepads"
USE_NOTEPAD = "useNotepad"


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Name, human description and JSON input schema of one tool."""

    name: str
    description: str
    input_schema: Mapping[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(dict(self.input_schema)),
        }


def _id_property(action: str) -> dict[str, Any]:
    return {"type": "number", "description": f"ID of the notepad to {action}"}


TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ADD_NOTEPAD,
        description="Add a new notepad",
        input_schema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Name of the notepad"},
                "content": {"type": "string", "description": "Content of the notepad"},
            },
            "required": ["name", "content"],
        },
    ),
    ToolDescriptor(
        name=DEL_NOTEPAD,
        description="Delete a notepad",
        input_schema={
            "type": "object",
            "properties": {"id": _id_property("delete")},
            "required": ["id"],
        },
    ),
    ToolDescriptor(
        name=UPDATE_NOTEPAD,
        description="Update a notepad",
        input_schema={
            "type": "object",
            "properties": {
                "id": _id_property("update"),
                "content": {"type": "string", "description": "New content for the notepad"},
            },
            "required": ["id", "content"],
        },
    ),
    ToolDescriptor(
        name=LIST_NOTEPADS,
        description="List all notepads",
        input_schema={"type": "object", "properties": {}},
    ),
    ToolDescriptor(
        name=USE_NOTEPAD,
        description="Use a specific notepad",
        input_schema={
            "type": "object",
            "properties": {"id": _id_property("use")},
            "required": ["id"],
        },
    ),
)

_TOOLS_BY_NAME: Mapping[str, ToolDescriptor] = MappingProxyType({tool.name: tool for tool in TOOLS})


def get_tool(name: str) -> ToolDescriptor | None:
    return _TOOLS_BY_NAME.get(name)


def tool_names() -> tuple[str, ...]:
    return tuple(_TOOLS_BY_NAME)
