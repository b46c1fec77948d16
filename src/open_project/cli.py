#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli.py

Open projects without caring about the working directory: pick one of the
stored project locations and land in a multiplexer session rooted there.

Example:
  open-project add ~/code/* --prepend
  open-project add ~/notes --layout writing
  open-project                # same as `open-project open`
  open-project open-gui --new-window
  open-project remove
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from open_project.config import MULTIPLEXERS, TERMINALS, LauncherConfig, load_config
from open_project.entry import Entry, dumps_entries, make_entry
from open_project.errors import EncodingError, LauncherError, SelectionAborted
from open_project.expansion import expand_entries
from open_project.logging_config import setup_logger
from open_project.multiplexer import launch, make_backend
from open_project.picker import FzfPicker, GuiPicker, build_choices
from open_project.store import EntryStore
from open_project.tmux_layout import directive_help

EXIT_ABORTED = 1
EXIT_ERROR = 2


def _open_store(config: LauncherConfig) -> EntryStore:
    store = EntryStore(config.entries_file)
    store.load()
    return store


def _candidates(config: LauncherConfig) -> Dict[str, Entry]:
    entries = expand_entries(_open_store(config).entries)
    if not entries:
        raise LauncherError("No projects found. Add one with: open-project add <path>")
    return build_choices(entries)


# ---------------------------
# Command handlers
# ---------------------------

def cmd_open(args: argparse.Namespace, config: LauncherConfig) -> int:
    """! @brief CLI handler: open (fzf picker, then launch)."""
    entry = FzfPicker().pick(_candidates(config))
    launch(make_backend(config), entry, terminal=config.terminal, new_window=args.new_window)
    return 0


def cmd_open_gui(args: argparse.Namespace, config: LauncherConfig) -> int:
    """! @brief CLI handler: open-gui (graphical chooser, then launch)."""
    entry = GuiPicker(config.gui_chooser).pick(_candidates(config))
    launch(make_backend(config), entry, terminal=config.terminal, new_window=args.new_window)
    return 0


def cmd_list(args: argparse.Namespace, config: LauncherConfig) -> int:
    print(dumps_entries(_open_store(config).entries))
    return 0


def cmd_add(args: argparse.Namespace, config: LauncherConfig) -> int:
    """! @brief CLI handler: add.

    The path is stored with ~ expanded but otherwise verbatim, so glob
    patterns are kept as patterns.
    """
    try:
        args.path.encode("utf-8")
    except UnicodeEncodeError:
        raise EncodingError(f"expected valid utf-8 path, got {args.path!r}") from None

    entry = make_entry(os.path.expanduser(args.path), args.layout)
    store = _open_store(config)
    if args.prepend:
        store.prepend(entry)
    else:
        store.append(entry)
    store.save()
    logger.info("Added entry", operation="add", entry=str(entry), prepend=args.prepend)
    return 0


def cmd_remove(args: argparse.Namespace, config: LauncherConfig) -> int:
    """! @brief CLI handler: remove (by path, or chosen interactively)."""
    store = _open_store(config)

    if args.path is not None:
        path = os.path.expanduser(args.path)
        if store.remove_path(path) == 0:
            print(f"No such entry: {path}", file=sys.stderr)
            return EXIT_ERROR
    else:
        if not store.entries:
            print("(no entries)")
            return 0
        indices = FzfPicker().pick_many(store.entries)
        store.remove_indices(indices)

    store.save()
    return 0


def cmd_sessions(args: argparse.Namespace, config: LauncherConfig) -> int:
    sessions = make_backend(config).list_sessions()
    if not sessions:
        print(f"(no {config.multiplexer} sessions)")
        return 0
    for s in sessions:
        print(f"{s.name} (exited)" if s.exited else s.name)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="open-project",
        description="Open a stored project in a terminal multiplexer session.",
    )
    p.add_argument("-c", "--config", type=Path, help="Config YAML path (default: platform config dir).")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr.")
    p.add_argument("--multiplexer", choices=MULTIPLEXERS, help="Override the configured multiplexer.")
    p.add_argument("--terminal", choices=TERMINALS, help="Override the configured terminal.")
    p.set_defaults(func=cmd_open, new_window=False)
    sub = p.add_subparsers(dest="cmd")

    po = sub.add_parser("open", help="Pick a project in the terminal and open it (default).")
    po.add_argument("-n", "--new-window", action="store_true", help="Open a new window instead of a tab.")
    po.set_defaults(func=cmd_open)

    pg = sub.add_parser("open-gui", help="Pick a project with a graphical chooser and open it.")
    pg.add_argument("-n", "--new-window", action="store_true", help="Open a new window instead of a tab.")
    pg.set_defaults(func=cmd_open_gui)

    pl = sub.add_parser("list", help="Print the stored entries as JSON.")
    pl.set_defaults(func=cmd_list)

    pa = sub.add_parser("add", help="Add a path or glob pattern.")
    pa.add_argument("path", help="Project path; may be a glob pattern such as ~/code/*.")
    pa.add_argument(
        "-p",
        "--prepend",
        action="store_true",
        help="Add it to the start of the list, giving it a higher priority.",
    )
    pa.add_argument("-l", "--layout", help="Layout name passed to the multiplexer.")
    pa.set_defaults(func=cmd_add)

    pr = sub.add_parser("remove", help="Remove entries by path, or pick them interactively.")
    pr.add_argument("path", nargs="?", help="Stored path to remove.")
    pr.set_defaults(func=cmd_remove)

    ps = sub.add_parser("sessions", help="List the multiplexer's sessions.")
    ps.set_defaults(func=cmd_sessions)

    ph = sub.add_parser("layout-help", help="Print the tmux layout directives.")
    ph.set_defaults(func=lambda _a, _c: (print(directive_help()), 0)[-1])

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logger("DEBUG" if args.verbose else "WARNING")
        config = load_config(
            args.config,
            overrides={"multiplexer": args.multiplexer, "terminal": args.terminal},
        )
        if not args.verbose and config.log_level != "WARNING":
            setup_logger(config.log_level)
        return int(args.func(args, config))
    except SelectionAborted:
        return EXIT_ABORTED
    except LauncherError as e:
        logger.opt(exception=e).debug("Command failed", operation=args.cmd or "open", status="failed")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
