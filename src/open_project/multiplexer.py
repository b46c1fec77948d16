"""
multiplexer.py

Open a project in a terminal multiplexer session.

Supported multiplexers:
- zellij: sessions come from `zellij list-sessions --no-formatting`, parsed
  by open_project.sessions; layouts are passed through as `--layout`.
- tmux (libtmux): sessions come from the tmux server; a layout names a YAML
  template applied when the session is created.

The multiplexer command runs either in a new wezterm tab/window or in place
of the launcher process.
"""

from __future__ import annotations

import os
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import libtmux
from libtmux import exc as tmux_exc
from loguru import logger

from open_project.config import LauncherConfig
from open_project.entry import Entry, layout_of, path_of
from open_project.errors import BackendError
from open_project.sessions import (
    LaunchAction,
    LaunchDecision,
    SessionRecord,
    parse_session_listing,
    resolve,
    session_name_for,
)
from open_project.tmux_layout import apply_layout, load_layout


class MultiplexerBackend(ABC):
    """! @brief What the launcher needs from a multiplexer."""

    name: str = ""

    @abstractmethod
    def list_sessions(self) -> List[SessionRecord]:
        """! @brief Sessions currently known to the multiplexer."""

    @abstractmethod
    def delete_session(self, name: str) -> None:
        """! @brief Remove session @p name so it can be created afresh."""

    @abstractmethod
    def prepare(self, decision: LaunchDecision, entry: Entry) -> List[str]:
        """! @brief Command line that attaches to / creates the decided session.

        @param decision Resolved launch decision.
        @param entry Chosen (expanded) entry.
        @return argv to run inside the terminal, rooted at the entry path.
        """


# ---------------------------
# zellij
# ---------------------------

class ZellijBackend(MultiplexerBackend):
    name = "zellij"

    def __init__(self, binary: str = "zellij") -> None:
        self.binary = binary

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run([self.binary, *args], capture_output=True)
        except FileNotFoundError:
            raise BackendError(f"{self.binary} not found in PATH") from None

    def list_sessions(self) -> List[SessionRecord]:
        result = self._run("list-sessions", "--no-formatting")
        if result.returncode != 0 and not result.stdout.strip():
            # "No active zellij sessions found." goes to stderr with status 1
            logger.debug(
                "zellij reported no sessions",
                operation="list_sessions",
                status=result.returncode,
                stderr=result.stderr.decode("utf-8", "replace").strip(),
            )
            return []
        return parse_session_listing(result.stdout)

    def delete_session(self, name: str) -> None:
        result = self._run("delete-session", name)
        if result.returncode != 0:
            err = result.stderr.decode("utf-8", "replace").strip()
            raise BackendError(f"zellij delete-session {name} failed ({result.returncode}): {err}")

    def prepare(self, decision: LaunchDecision, entry: Entry) -> List[str]:
        if decision.action is LaunchAction.ATTACH:
            return [self.binary, "attach", decision.name]
        argv = [self.binary, "--session", decision.name]
        layout = layout_of(entry)
        if layout:
            argv += ["--layout", layout]
        return argv


# ---------------------------
# tmux
# ---------------------------

class TmuxBackend(MultiplexerBackend):
    name = "tmux"

    def __init__(self, layouts_dir: Path, server: Optional[libtmux.Server] = None) -> None:
        self.layouts_dir = layouts_dir
        self.server = server if server is not None else libtmux.Server()

    def find_session(self, name: str) -> Optional[libtmux.Session]:
        ql = self.server.sessions.filter(session_name=name)
        return ql[0] if ql else None

    def list_sessions(self) -> List[SessionRecord]:
        # tmux has no resurrectable sessions: everything listed is alive
        try:
            return [SessionRecord(name=s.session_name) for s in self.server.sessions]
        except tmux_exc.LibTmuxException as e:
            raise BackendError(f"Failed to list tmux sessions: {e}") from e

    def delete_session(self, name: str) -> None:
        existing = self.find_session(name)
        if existing:
            existing.kill()

    def prepare(self, decision: LaunchDecision, entry: Entry) -> List[str]:
        if decision.action is not LaunchAction.ATTACH:
            root = path_of(entry)
            layout_name = layout_of(entry)
            # load before creating so a broken layout leaves no session behind
            layout = load_layout(self.layouts_dir, layout_name) if layout_name else None
            try:
                session = self.server.new_session(
                    session_name=decision.name,
                    start_directory=str(root),
                    attach=False,
                )
            except tmux_exc.LibTmuxException as e:
                raise BackendError(f"Failed to create tmux session {decision.name}: {e}") from e
            if layout is not None:
                apply_layout(session, layout, root)
        return ["tmux", "attach-session", "-t", decision.name]


def make_backend(config: LauncherConfig) -> MultiplexerBackend:
    if config.multiplexer == "tmux":
        return TmuxBackend(config.layouts_dir)
    return ZellijBackend()


# ---------------------------
# Terminal spawning
# ---------------------------

def spawn(argv: Sequence[str], cwd: Path, terminal: str = "wezterm", new_window: bool = False) -> int:
    """! @brief Run @p argv in a terminal, rooted at @p cwd.

    "wezterm" opens a new tab (or window) of the running wezterm and returns
    the exit status of `wezterm cli spawn`. "inline" replaces the current
    process and does not return.
    """
    if terminal == "inline":
        os.chdir(cwd)
        os.execvp(argv[0], list(argv))
        return 0

    cmd = ["wezterm", "cli", "spawn", "--cwd", str(cwd)]
    if new_window:
        cmd.append("--new-window")
    cmd += ["--", *argv]
    try:
        return subprocess.run(cmd, cwd=str(cwd)).returncode
    except FileNotFoundError:
        raise BackendError("wezterm not found in PATH") from None


def launch(
    backend: MultiplexerBackend,
    entry: Entry,
    terminal: str = "wezterm",
    new_window: bool = False,
) -> LaunchDecision:
    """! @brief Attach to, recreate or create the session of @p entry.

    @param backend Multiplexer backend.
    @param entry Chosen (expanded) entry.
    @param terminal "wezterm" or "inline".
    @param new_window Open a wezterm window instead of a tab.
    @return The decision that was carried out.
    """
    root = path_of(entry)
    decision = resolve(session_name_for(root), backend.list_sessions())
    logger.info(
        "Launching session",
        operation="launch",
        backend=backend.name,
        action=decision.action.value,
        session=decision.name,
        path=str(root),
    )

    if decision.action is LaunchAction.RECREATE:
        backend.delete_session(decision.name)

    argv = backend.prepare(decision, entry)
    status = spawn(argv, root, terminal=terminal, new_window=new_window)
    if status != 0:
        print(f"failed to spawn tab: exit status {status}", file=sys.stderr)
        logger.warning("Terminal spawn failed", operation="launch", status=status)
    return decision
