"""
errors.py

Exception types raised by the launcher.

Everything that should end the current command with a diagnostic derives from
LauncherError. SelectionAborted is separate: the user closing the picker is
not a failure and only maps to a distinct exit code.
"""

from __future__ import annotations

from typing import List, Sequence


class LauncherError(Exception):
    """! @brief Base class for fatal, user-facing launcher errors."""


class EncodingError(LauncherError):
    """! @brief A stored path or a session listing is not valid UTF-8."""


class PatternError(LauncherError):
    """! @brief An entry path is not a syntactically valid glob pattern."""

    def __init__(self, pattern: str, reason: str, position: int) -> None:
        self.pattern = pattern
        self.reason = reason
        self.position = position
        super().__init__(f"invalid glob pattern {pattern!r} at position {position}: {reason}")


class EntryFormatError(LauncherError):
    """! @brief A decoded value does not have the shape of an entry."""


class StoreError(LauncherError):
    pass


class ConfigError(LauncherError):
    pass


class LayoutError(LauncherError):
    """! @brief A tmux layout file is missing or contains an invalid item."""


class BackendError(LauncherError):
    """! @brief A multiplexer or terminal binary could not be run."""


class ListingParseError(LauncherError):
    """! @brief Session listing does not follow the expected grammar.

    @param offset Byte offset into the (UTF-8 encoded) input of the failure.
    @param context Labels of the grammar rules active at the failure point,
                   outermost first.
    @param expected Short description of what was expected at @p offset.
    """

    def __init__(self, offset: int, context: Sequence[str], expected: str, line: str = "") -> None:
        self.offset = offset
        self.context: List[str] = list(context)
        self.expected = expected
        self.line = line
        trail = " > ".join(self.context) or "input"
        msg = f"failed to parse session listing at byte {offset} ({trail}): expected {expected}"
        if line:
            msg += f"\n  in line: {line!r}"
        super().__init__(msg)


class SelectionAborted(Exception):
    """! @brief The user cancelled an interactive selection."""
