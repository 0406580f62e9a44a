from __future__ import annotations

import json
import sqlite3

from notepad_server.models import Notepad, dump_notepad, dump_notepads


def test_to_dict_key_order() -> None:
    pad = Notepad(id=3, name="shopping", content="milk")

    assert list(pad.to_dict()) == ["id", "name", "content"]


def test_from_row_reads_sqlite_rows() -> None:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    row = conn.execute("SELECT 7 AS id, 'n' AS name, 'c' AS content").fetchone()
    conn.close()

    assert Notepad.from_row(row) == Notepad(id=7, name="n", content="c")


def test_dump_notepad_is_pretty_printed_json() -> None:
    text = dump_notepad(Notepad(id=1, name="shopping", content="milk,eggs"))

    assert text == '{\n  "id": 1,\n  "name": "shopping",\n  "content": "milk,eggs"\n}'


def test_dump_notepads_handles_empty_and_many() -> None:
    assert dump_notepads([]) == "[]"

    pads = [Notepad(id=1, name="a", content="x"), Notepad(id=2, name="b", content="y")]
    decoded = json.loads(dump_notepads(pads))

    assert decoded == [pad.to_dict() for pad in pads]


def test_dump_keeps_non_ascii_text() -> None:
    assert "café" in dump_notepad(Notepad(id=1, name="café", content=""))
