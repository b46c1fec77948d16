"""
sessions.py

Parse a multiplexer's "list sessions" output and decide what to do with the
session that belongs to the chosen project.

The listing is free text meant for humans, one session per line:

  work [Created 2h 3m ago] (current)
  notes [Created 1day ago] (EXITED - attach to resurrect)
  scratch [Created 5s ago]

The bracketed part is opaque. Session names are restricted to ASCII letters,
digits, '-' and '_' because they are passed straight to targeting commands.
A line that does not match fails the whole parse: silently skipping a
session would make the launcher create a duplicate of it.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Sequence, Union

from open_project.errors import EncodingError, ListingParseError

EXITED_STATUS = "EXITED - attach to resurrect"
CURRENT_STATUS = "current"

_LINE_SPACE = " \t"
_MULTISPACE = " \t\r\n"


@dataclass(frozen=True)
class SessionRecord:
    name: str
    exited: bool = False


# ---------------------------
# Listing parser
# ---------------------------

def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def _is_name_char(ch: str) -> bool:
    return _is_alnum(ch) or ch in "-_"


class _Cursor:
    """! @brief Position in the listing plus the stack of active grammar rules."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.rules: List[str] = []

    @contextmanager
    def rule(self, label: str) -> Iterator[None]:
        self.rules.append(label)
        try:
            yield
        finally:
            self.rules.pop()

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def fail(self, expected: str) -> ListingParseError:
        start = self.text.rfind("\n", 0, self.pos) + 1
        end = self.text.find("\n", self.pos)
        line = self.text[start:] if end == -1 else self.text[start:end]
        offset = len(self.text[: self.pos].encode("utf-8"))
        return ListingParseError(offset, self.rules, expected, line.rstrip("\r"))

    def expect(self, literal: str) -> None:
        if not self.text.startswith(literal, self.pos):
            raise self.fail(repr(literal))
        self.pos += len(literal)

    def accept(self, literal: str) -> bool:
        if self.text.startswith(literal, self.pos):
            self.pos += len(literal)
            return True
        return False

    def skip_while(self, pred) -> str:
        start = self.pos
        while self.pos < len(self.text) and pred(self.text[self.pos]):
            self.pos += 1
        return self.text[start : self.pos]

    def line_ending(self) -> bool:
        return self.accept("\n") or self.accept("\r\n")


def _session_name(cur: _Cursor) -> str:
    with cur.rule("session name"):
        name = cur.skip_while(_is_name_char)
        if not name:
            raise cur.fail("a session name of letters, digits, '-' or '_'")
        return name


def _session_status(cur: _Cursor) -> bool:
    with cur.rule("session status"):
        cur.expect("(")
        if cur.accept(EXITED_STATUS):
            exited = True
        else:
            cur.accept(CURRENT_STATUS)
            exited = False
        cur.expect(")")
        return exited


def _session_entry(cur: _Cursor) -> SessionRecord:
    with cur.rule("session entry"):
        name = _session_name(cur)
        cur.expect(" ")
        cur.expect("[")
        # dimensions / creation time: opaque, only bracket balance matters
        cur.skip_while(lambda ch: _is_alnum(ch) or ch in _MULTISPACE)
        cur.expect("]")
        cur.skip_while(lambda ch: ch in _LINE_SPACE)
        exited = _session_status(cur) if cur.peek() == "(" else False
        return SessionRecord(name=name, exited=exited)


def decode_listing(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"session listing is not valid utf-8 (byte {e.start})") from None


def parse_session_listing(listing: Union[str, bytes]) -> List[SessionRecord]:
    """! @brief Parse "list sessions" output into session records.

    Records come back in input order. An empty input, or a single trailing
    line ending, is fine; anything else that is not a session line fails.

    @param listing Listing text, or raw bytes that must be UTF-8.
    @return Parsed records.
    @throws EncodingError if @p listing is bytes and not valid UTF-8.
    @throws ListingParseError on the first line violating the grammar.
    """
    text = decode_listing(listing) if isinstance(listing, bytes) else listing
    cur = _Cursor(text)
    records: List[SessionRecord] = []

    with cur.rule("session list"):
        if cur.line_ending() or cur.at_end():
            if not cur.at_end():
                raise cur.fail("end of input after the blank line")
            return records

        records.append(_session_entry(cur))
        while not cur.at_end():
            if not cur.line_ending():
                raise cur.fail("a line ending")
            if cur.at_end():
                break
            records.append(_session_entry(cur))

    return records


# ---------------------------
# Resolution
# ---------------------------

class LaunchAction(Enum):
    ATTACH = "attach"
    RECREATE = "recreate"  # delete the exited session, then create
    CREATE = "create"


@dataclass(frozen=True)
class LaunchDecision:
    action: LaunchAction
    name: str

    @classmethod
    def attach(cls, name: str) -> "LaunchDecision":
        return cls(LaunchAction.ATTACH, name)

    @classmethod
    def recreate(cls, name: str) -> "LaunchDecision":
        return cls(LaunchAction.RECREATE, name)

    @classmethod
    def create(cls, name: str) -> "LaunchDecision":
        return cls(LaunchAction.CREATE, name)


def resolve(desired_name: str, sessions: Sequence[SessionRecord]) -> LaunchDecision:
    """! @brief Decide how to reach the session named @p desired_name.

    - not listed: create it
    - listed and exited: recreate it (delete first, then create)
    - listed otherwise: attach to it

    The name is compared exactly and case-sensitively.
    """
    for session in sessions:
        if session.name == desired_name:
            if session.exited:
                return LaunchDecision.recreate(desired_name)
            return LaunchDecision.attach(desired_name)
    return LaunchDecision.create(desired_name)


_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def session_name_for(path: Union[str, Path]) -> str:
    """! @brief Session name for a project directory: its final component.

    Characters a listing could not represent are replaced with '-'.
    """
    name = _UNSAFE_NAME_CHARS.sub("-", Path(path).name)
    return name or "root"
