"""
picker.py

Interactive selection of an entry.

Pickers only ever see display strings. The mapping back from the chosen
string to the entry is built once per invocation by build_choices(), so the
display form has to be unique per (path, layout) pair, which Entry.__str__
guarantees.
"""

from __future__ import annotations

import subprocess
import sys
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from open_project.entry import Entry
from open_project.errors import BackendError, LauncherError, SelectionAborted

# fzf exits 1 on "no match" and 130 when interrupted with Esc / Ctrl-C.
FZF_CANCEL_CODES = (1, 130)


def build_choices(entries: Iterable[Entry]) -> Dict[str, Entry]:
    """! @brief Map each entry's display string to the entry.

    @throws LauncherError if two entries render identically.
    """
    choices: Dict[str, Entry] = {}
    for entry in entries:
        key = str(entry)
        if key in choices:
            raise LauncherError(f"Two entries share the display name {key}")
        choices[key] = entry
    return choices


def _run_chooser(argv: Sequence[str], lines: Iterable[str]) -> subprocess.CompletedProcess:
    try:
        # stderr stays attached to the terminal; fzf draws its UI there.
        return subprocess.run(
            list(argv),
            input="\n".join(lines) + "\n",
            stdout=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError:
        raise BackendError(f"{argv[0]} not found. Install it or configure another chooser.") from None


class FzfPicker:
    """! @brief Terminal picker backed by fzf."""

    def __init__(self, binary: str = "fzf") -> None:
        self.binary = binary

    def pick(self, choices: Dict[str, Entry], prompt: str = "project> ") -> Entry:
        result = _run_chooser(
            [self.binary, "--no-sort", "--prompt", prompt],
            choices.keys(),
        )
        if result.returncode in FZF_CANCEL_CODES:
            raise SelectionAborted()
        if result.returncode != 0:
            raise BackendError(f"{self.binary} failed with exit status {result.returncode}")

        selected = result.stdout.rstrip("\n")
        if not selected:
            raise SelectionAborted()
        if selected not in choices:
            raise LauncherError(f"unknown entry (`{selected}`) got selected")
        logger.debug("Entry selected", operation="pick", picker="fzf", selection=selected)
        return choices[selected]

    def pick_many(self, entries: Sequence[Entry], prompt: str = "remove> ") -> List[int]:
        """! @brief Multi-selection; returns the indices of the chosen entries."""
        result = _run_chooser(
            [self.binary, "--multi", "--no-sort", "--prompt", prompt, "--delimiter=\t", "--with-nth=2.."],
            (f"{idx}\t{entry}" for idx, entry in enumerate(entries)),
        )
        if result.returncode in FZF_CANCEL_CODES:
            raise SelectionAborted()
        if result.returncode != 0:
            raise BackendError(f"{self.binary} failed with exit status {result.returncode}")

        indices = sorted(int(line.split("\t", 1)[0]) for line in result.stdout.splitlines() if line)
        if not indices:
            raise SelectionAborted()
        return indices


def default_gui_chooser() -> List[str]:
    if sys.platform.startswith("linux"):
        return ["anyrun", "--plugins", "libstdin.so", "--show-results-immediately", "true"]
    if sys.platform == "darwin":
        return ["choose"]
    raise BackendError(f"No GUI chooser known for {sys.platform}; set gui_chooser in the config")


class GuiPicker:
    """! @brief Launcher-style picker: choices on stdin, the chosen line on stdout."""

    def __init__(self, argv: Optional[Sequence[str]] = None) -> None:
        self.argv = list(argv) if argv else default_gui_chooser()

    def pick(self, choices: Dict[str, Entry]) -> Entry:
        result = _run_chooser(self.argv, choices.keys())
        selected = result.stdout.strip()
        if not selected:
            raise SelectionAborted()
        if selected not in choices:
            raise LauncherError(f"unknown entry (`{selected}`) got selected")
        logger.debug("Entry selected", operation="pick", picker=self.argv[0], selection=selected)
        return choices[selected]
