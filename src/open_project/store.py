"""
store.py

The persisted, ordered entry list (projects.json in the data directory).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger

from open_project.entry import Entry, dumps_entries, loads_entries
from open_project.errors import EncodingError, EntryFormatError, StoreError


class EntryStore:
    """! @brief Load, edit and save the entry list in one JSON file.

    Order is significant: earlier entries are listed first in the picker and
    win when two patterns expand to the same directory.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.entries: List[Entry] = []

    def load(self) -> List[Entry]:
        """! @brief Read the entry list, creating an empty one on first use."""
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("[]")
            logger.info("Created entry file", operation="store_load", file=str(self.path))

        try:
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"{self.path} is not valid utf-8") from e
        try:
            self.entries = loads_entries(text)
        except json.JSONDecodeError as e:
            raise StoreError(f"{self.path}: invalid JSON at line {e.lineno} column {e.colno}: {e.msg}") from e
        except EntryFormatError as e:
            raise StoreError(f"{self.path}: {e}") from e

        logger.debug("Loaded entries", operation="store_load", count=len(self.entries))
        return self.entries

    def save(self, entries: Optional[Iterable[Entry]] = None) -> None:
        if entries is not None:
            self.entries = list(entries)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(dumps_entries(self.entries), encoding="utf-8")
        logger.debug("Saved entries", operation="store_save", count=len(self.entries))

    def prepend(self, entry: Entry) -> None:
        self.entries.insert(0, entry)

    def append(self, entry: Entry) -> None:
        self.entries.append(entry)

    def remove_path(self, path: str) -> int:
        """! @brief Drop every entry whose path equals @p path.

        Paths compare component-wise, so "/srv/a/" and "/srv/a" are the same.

        @return Number of removed entries.
        """
        target = Path(path)
        kept = [e for e in self.entries if Path(e.path) != target]
        removed = len(self.entries) - len(kept)
        self.entries = kept
        return removed

    def remove_indices(self, indices: Iterable[int]) -> int:
        drop = set(indices)
        for idx in drop:
            if idx < 0 or idx >= len(self.entries):
                raise IndexError(f"Entry index out of range: {idx} (have {len(self.entries)})")
        self.entries = [e for i, e in enumerate(self.entries) if i not in drop]
        return len(drop)
