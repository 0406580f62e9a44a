"""Domain model for persisted notepads."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(slots=True)
class Notepad:
    """A single notepad row: storage-assigned id, immutable name, replaceable content."""

    id: int
    name: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Notepad":
        # Columns are untyped in SQLite; NULLs from foreign writers are kept as-is.
        return cls(id=int(row["id"]), name=row["name"], content=row["content"])


def dump_notepads(notepads: Iterable[Notepad]) -> str:
    """Serialise notepads as a pretty-printed JSON array."""

    return json.dumps([pad.to_dict() for pad in notepads], indent=2, ensure_ascii=False)


def dump_notepad(notepad: Notepad) -> str:
    return json.dumps(notepad.to_dict(), indent=2, ensure_ascii=False)
