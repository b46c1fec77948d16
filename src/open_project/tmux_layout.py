"""
tmux_layout.py

Named window/pane templates for tmux sessions, one YAML file per layout in
the layouts directory (<config dir>/layouts/<name>.yaml):

  env:
    EDITOR: nvim
  windows:
    edit:
      - nvim .
    run:
      - -v
      - git status
      - -select-pane=0
      - make watch

Items starting with "-" are directives, everything else is typed into the
current pane. ${VAR} / ${VAR:-default} are expanded from the layout env,
the process environment, and PROJECT_DIR / PROJECT_NAME.

Requires libtmux.
"""

from __future__ import annotations

import os
import re
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import libtmux
import yaml
from libtmux.constants import PaneDirection
from loguru import logger

from open_project.errors import LayoutError

LAYOUT_SUFFIX = ".yaml"


# ---------------------------
# Layout model + utilities
# ---------------------------

@dataclass
class TmuxLayout:
    name: str
    env: Dict[str, str] = field(default_factory=dict)
    windows: Dict[str, List[str]] = field(default_factory=dict)

    @staticmethod
    def from_yaml(path: Path, name: Optional[str] = None) -> "TmuxLayout":
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise LayoutError(f"invalid YAML in layout {path}: {e}") from e
        if not isinstance(data, dict):
            raise LayoutError(f"layout {path}: expected a mapping at the top level")

        windows = data.get("windows") or {}
        if not isinstance(windows, dict) or not windows:
            raise LayoutError(f"layout {path} has no windows. Expected a 'windows:' mapping.")
        return TmuxLayout(
            name=name or path.stem,
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            windows=windows,
        )


def layout_file(layouts_dir: Path, name: str) -> Path:
    """! @brief Locate the YAML file of layout @p name.

    @throws LayoutError if the name is not a plain file name or no file exists.
    """
    if not name or Path(name).name != name:
        raise LayoutError(f"Invalid layout name: {name!r}")
    path = layouts_dir / f"{name}{LAYOUT_SUFFIX}"
    if not path.exists():
        raise LayoutError(f"Layout '{name}' not found (looked for {path})")
    return path


def load_layout(layouts_dir: Path, name: str) -> TmuxLayout:
    return TmuxLayout.from_yaml(layout_file(layouts_dir, name), name)


_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")


def expand_vars(s: str, env: Dict[str, str]) -> str:
    """! @brief Expand ${VARS} in a string.

    Supports:
      - ${VAR}
      - ${VAR:-default}

    Resolution order: @p env, then os.environ, then the default (or "").
    """

    def repl(m: re.Match) -> str:
        key = m.group(1)
        default = m.group(2)
        if key in env:
            return env[key]
        if key in os.environ:
            return os.environ[key]
        return default if default is not None else ""

    return _VAR_PATTERN.sub(repl, s)


def sh_quote(s: str) -> str:
    """! @brief Quote a string for POSIX-ish shell consumption."""
    if s == "":
        return "''"
    if re.fullmatch(r"[A-Za-z0-9_./:@%+-]+", s):
        return s
    return "'" + s.replace("'", "'\"'\"'") + "'"


def directive_help() -> str:
    return textwrap.dedent(
        """
        Layout directives (items starting with "-"):

          -v                 split side-by-side, continue in new pane
          -h                 split top/bottom, continue in new pane
          -layout=<name>     set window layout (e.g. even-vertical, tiled)
          -select-pane=<n>   continue in pane n of the current window (0-based)
          -cd=<path>         cd inside current pane (relative to the project)
          -env=K=V           export K=V in current pane
          -sleep=<sec>       sleep inside the pane

        Any other item is typed into the current pane.
        """
    ).strip()


# ---------------------------
# Applying a layout
# ---------------------------

@dataclass
class PaneContext:
    root_dir: Path
    env: Dict[str, str]
    pane: libtmux.Pane


def _abs_or_under(root: Path, p: str) -> Path:
    pp = Path(p).expanduser()
    return pp if pp.is_absolute() else (root / pp).resolve()


def _export_env(pane: libtmux.Pane, env: Dict[str, str]) -> None:
    for k, v in env.items():
        pane.send_keys(f"export {k}={sh_quote(v)}", enter=True)


def apply_directive(ctx: PaneContext, window: libtmux.Window, token: str) -> None:
    """! @brief Apply a single layout directive.

    @param ctx Pane context (mutable: env and current pane).
    @param window Current tmux window.
    @param token Directive token (e.g. "-v", "-sleep=2").
    @throws LayoutError on unknown/invalid directive.
    """
    if token in ("-v", "-h"):
        direction = PaneDirection.Right if token == "-v" else PaneDirection.Below
        ctx.pane = ctx.pane.split(direction=direction, start_directory=str(ctx.root_dir), attach=False)
        _export_env(ctx.pane, ctx.env)
        return

    name, _, value = token.partition("=")
    value = value.strip()

    if name == "-layout":
        window.select_layout(value)
    elif name == "-select-pane":
        try:
            idx = int(value)
        except ValueError:
            raise LayoutError(f"Invalid pane index: {value!r}") from None
        panes = window.panes
        if idx < 0 or idx >= len(panes):
            raise LayoutError(f"Pane index out of range: {idx} (have {len(panes)})")
        ctx.pane = panes[idx]
    elif name == "-cd":
        target = _abs_or_under(ctx.root_dir, value)
        ctx.pane.send_keys(f"cd {sh_quote(str(target))}", enter=True)
    elif name == "-env":
        if "=" not in value:
            raise LayoutError(f"Invalid -env directive: {token}. Expected -env=K=V.")
        k, v = value.split("=", 1)
        ctx.env[k.strip()] = v.strip()
        ctx.pane.send_keys(f"export {k.strip()}={sh_quote(v.strip())}", enter=True)
    elif name == "-sleep":
        ctx.pane.send_keys(f"sleep {sh_quote(value)}", enter=True)
    else:
        raise LayoutError(f"Unknown directive: {token}")


def apply_layout(session: libtmux.Session, layout: TmuxLayout, root_dir: Path) -> None:
    """! @brief Create the layout's windows/panes in a fresh session.

    The first window of the new session is reused for the first layout
    window; panes start in @p root_dir.

    @param session Freshly created tmux session.
    @param layout Layout to apply.
    @param root_dir Project directory.
    """
    base_env = {"PROJECT_DIR": str(root_dir), "PROJECT_NAME": root_dir.name}
    base_env.update(layout.env)

    for i, (window_name, items) in enumerate(layout.windows.items()):
        if i == 0:
            win = session.windows[0]
            win.rename_window(str(window_name))
        else:
            win = session.new_window(window_name=str(window_name), start_directory=str(root_dir), attach=False)

        ctx = PaneContext(root_dir=root_dir, env=dict(base_env), pane=win.panes[0])
        _export_env(ctx.pane, ctx.env)

        for raw in items or []:
            if raw is None:
                continue
            if not isinstance(raw, str):
                raise LayoutError(f"Window '{window_name}' has a non-string item: {raw!r}")

            token = expand_vars(raw, ctx.env)
            if token.startswith("-"):
                apply_directive(ctx, win, token)
            else:
                ctx.pane.send_keys(token, enter=True)

    logger.debug(
        "Applied tmux layout",
        operation="apply_layout",
        layout=layout.name,
        windows=len(layout.windows),
    )
