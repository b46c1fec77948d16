"""
entry.py

Stored project records and their JSON form.

An entry is either a bare path or a path tagged with a layout name. Both are
plain frozen dataclasses; the untagged shape (string vs. object) only exists
at the JSON boundary:

  [
    "/home/me/code/*",
    {
      "path": "/home/me/notes",
      "layout": "writing"
    }
  ]

Paths are kept as the text the user stored. Glob patterns such as
"~/code/*/" would change meaning if normalized through pathlib.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from open_project.errors import EntryFormatError


def _quote(path: str) -> str:
    return json.dumps(path, ensure_ascii=False)


@dataclass(frozen=True)
class BareEntry:
    path: str

    def __str__(self) -> str:
        return _quote(self.path)


@dataclass(frozen=True)
class LayoutEntry:
    path: str
    layout: str

    def __post_init__(self) -> None:
        if not self.layout:
            raise EntryFormatError(f"entry {self.path!r} has an empty layout name")

    def __str__(self) -> str:
        # escaped like the path: one picker line per entry
        return f"{_quote(self.path)} with layout '{_quote(self.layout)[1:-1]}'"


Entry = Union[BareEntry, LayoutEntry]


def make_entry(path: Union[str, os.PathLike], layout: Optional[str] = None) -> Entry:
    """! @brief Build the entry variant matching whether a layout is given."""
    path = os.fspath(path)
    if layout is None:
        return BareEntry(path)
    return LayoutEntry(path, layout)


def path_of(entry: Entry) -> Path:
    """! @brief Return the entry's path regardless of variant."""
    return Path(entry.path)


def layout_of(entry: Entry) -> Optional[str]:
    return entry.layout if isinstance(entry, LayoutEntry) else None


def with_path(entry: Entry, new_path: Union[str, os.PathLike]) -> Entry:
    """! @brief Copy of @p entry with its path replaced.

    The variant and the layout (if any) are kept unchanged; @p entry itself is
    never modified.

    @param entry Source entry.
    @param new_path Replacement path.
    @return New entry of the same variant.
    """
    new_path = os.fspath(new_path)
    if isinstance(entry, LayoutEntry):
        return LayoutEntry(new_path, entry.layout)
    return BareEntry(new_path)


# ---------------------------
# JSON boundary
# ---------------------------

def entry_to_json(entry: Entry) -> Any:
    if isinstance(entry, LayoutEntry):
        return {"path": entry.path, "layout": entry.layout}
    return entry.path


def entry_from_json(value: Any) -> Entry:
    """! @brief Decode one untagged JSON value into an entry.

    A string is a bare entry. An object needs a string "path"; if it carries
    "layout" as well it becomes a layout entry.

    @param value Decoded JSON value.
    @return Entry.
    @throws EntryFormatError if @p value has neither shape.
    """
    if isinstance(value, str):
        return BareEntry(value)
    if isinstance(value, dict):
        path = value.get("path")
        if not isinstance(path, str):
            raise EntryFormatError(f"entry object without a string 'path': {value!r}")
        if "layout" not in value:
            return BareEntry(path)
        layout = value["layout"]
        if not isinstance(layout, str):
            raise EntryFormatError(f"entry {path!r} has a non-string layout: {layout!r}")
        return LayoutEntry(path, layout)
    raise EntryFormatError(f"expected a path string or an object, got {value!r}")


def dumps_entries(entries: Iterable[Entry]) -> str:
    """! @brief Serialize entries in order as two-space indented JSON.

    No trailing newline and non-ASCII written as is, so files written by
    earlier versions round-trip byte for byte.
    """
    return json.dumps([entry_to_json(e) for e in entries], indent=2, ensure_ascii=False)


def loads_entries(text: str) -> List[Entry]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise EntryFormatError(f"expected a JSON list of entries, got {type(data).__name__}")
    return [entry_from_json(v) for v in data]
