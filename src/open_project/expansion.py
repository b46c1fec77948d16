"""
expansion.py

Turn the stored entry list into the concrete, duplicate-free candidate list
shown in the picker.

Each entry path is a glob pattern. Matches keep the source entry's layout,
source order decides output order, and a concrete path is emitted only once
across the whole run: the first entry that produces it wins.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Iterable, Iterator, List, Set

from loguru import logger

from open_project.entry import Entry, layout_of, with_path
from open_project.errors import EncodingError, PatternError


def check_pattern(pattern: str) -> None:
    """! @brief Reject glob patterns that cannot be matched.

    Accepted syntax: `*`, `?`, `[...]`, `[!...]` and `**` as a whole path
    component (recursive). A `]` directly after `[` or `[!` is a literal
    member of the set.

    @param pattern Glob pattern.
    @throws PatternError on an unterminated set or a malformed `**`.
    """
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            run = 1
            while i + run < n and pattern[i + run] == "*":
                run += 1
            if run > 2:
                raise PatternError(pattern, "wildcards are either regular `*` or recursive `**`", i)
            if run == 2:
                before_ok = i == 0 or pattern[i - 1] == "/"
                after_ok = i + 2 == n or pattern[i + 2] == "/"
                if not (before_ok and after_ok):
                    raise PatternError(pattern, "recursive wildcards must form a single path component", i)
            i += run
            continue
        if ch == "[":
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            # first member may be a literal ']'
            if j < n and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                raise PatternError(pattern, "unterminated character set", i)
            i = close + 1
            continue
        i += 1


def _require_utf8(pattern: str) -> str:
    # Undecodable bytes from the filesystem survive as lone surrogates.
    try:
        pattern.encode("utf-8")
    except UnicodeEncodeError:
        raise EncodingError(f"path {pattern!r} is not valid utf-8") from None
    return pattern


def iter_matches(pattern: str) -> Iterator[str]:
    """! @brief Yield the filesystem matches of @p pattern in sorted order.

    Directories that cannot be read while matching (permission errors and the
    like) contribute nothing; they never abort the run.
    """
    matches = glob.glob(pattern, recursive=True, include_hidden=True)
    yield from sorted(matches, key=lambda m: Path(m).parts)


def expand_entries(entries: Iterable[Entry]) -> List[Entry]:
    """! @brief Expand glob entries into concrete, globally unique entries.

    @param entries Stored entries, in stored order.
    @return One entry per distinct concrete path, in source order.
    @throws EncodingError if an entry path is not valid UTF-8.
    @throws PatternError if an entry path is not a valid glob pattern.
    """
    expanded: List[Entry] = []
    seen: Set[Path] = set()

    for entry in entries:
        pattern = _require_utf8(entry.path)
        check_pattern(pattern)

        produced = 0
        for match in iter_matches(pattern):
            key = Path(match)
            if key in seen:
                logger.debug(
                    "Dropping duplicate match",
                    operation="expand_entries",
                    pattern=pattern,
                    match=match,
                    layout=layout_of(entry),
                )
                continue
            seen.add(key)
            expanded.append(with_path(entry, match))
            produced += 1

        logger.debug(
            "Expanded entry",
            operation="expand_entries",
            pattern=pattern,
            produced=produced,
        )

    return expanded
