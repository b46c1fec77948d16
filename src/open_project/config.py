"""
config.py

Launcher configuration, read from a YAML file.

Default location is the platform config directory, e.g.
~/.config/open-project-cli/config.yaml on Linux. Every key is optional:

  multiplexer: zellij        # or: tmux
  terminal: wezterm          # or: inline (replace the current process)
  data_dir: ~/.local/share/open-project-cli
  layouts_dir: layouts       # tmux layout YAML files, relative to this file
  gui_chooser: "rofi -dmenu" # string or list, reads choices on stdin
  log_level: WARNING
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import platformdirs
import yaml

from open_project.errors import ConfigError

APP_NAME = "open-project-cli"
CONFIG_FILENAME = "config.yaml"
DATA_FILENAME = "projects.json"

MULTIPLEXERS = ("zellij", "tmux")
TERMINALS = ("wezterm", "inline")


def default_config_dir() -> Path:
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))


def default_data_dir() -> Path:
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def default_config_path() -> Path:
    return default_config_dir() / CONFIG_FILENAME


def _resolve_dir(config_path: Path, value: str) -> Path:
    """! @brief Resolve a directory setting relative to the YAML config.

    @param config_path Path to YAML config.
    @param value Directory string (absolute, relative or starting with ~).
    @return Absolute Path.
    """
    p = Path(value).expanduser()
    if not p.is_absolute():
        p = (config_path.parent / p).resolve()
    return p


def _as_command(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"gui_chooser must be a string or a list of strings, got {value!r}")


@dataclass
class LauncherConfig:
    multiplexer: str = "zellij"
    terminal: str = "wezterm"
    data_dir: Path = field(default_factory=default_data_dir)
    layouts_dir: Path = field(default_factory=lambda: default_config_dir() / "layouts")
    gui_chooser: List[str] = field(default_factory=list)
    log_level: str = "WARNING"

    @property
    def entries_file(self) -> Path:
        return self.data_dir / DATA_FILENAME

    def validate(self) -> "LauncherConfig":
        if self.multiplexer not in MULTIPLEXERS:
            raise ConfigError(
                f"unknown multiplexer {self.multiplexer!r}, expected one of {', '.join(MULTIPLEXERS)}"
            )
        if self.terminal not in TERMINALS:
            raise ConfigError(f"unknown terminal {self.terminal!r}, expected one of {', '.join(TERMINALS)}")
        return self

    @staticmethod
    def from_yaml(path: Path) -> "LauncherConfig":
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")

        cfg = LauncherConfig(
            multiplexer=str(data.get("multiplexer", "zellij")),
            terminal=str(data.get("terminal", "wezterm")),
            gui_chooser=_as_command(data.get("gui_chooser")),
            log_level=str(data.get("log_level", "WARNING")).upper(),
        )
        if data.get("data_dir"):
            cfg.data_dir = _resolve_dir(path, str(data["data_dir"]))
        if data.get("layouts_dir"):
            cfg.layouts_dir = _resolve_dir(path, str(data["layouts_dir"]))
        return cfg.validate()


def load_config(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> LauncherConfig:
    """! @brief Load the config file and apply command line overrides.

    A missing file at the default location means defaults; a missing file
    given explicitly is an error.

    @param path Explicit config path, or None for the default location.
    @param overrides Field values that win over the file (None values ignored).
    @return Validated configuration.
    """
    if path is not None and not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    config_path = path or default_config_path()
    cfg = LauncherConfig.from_yaml(config_path) if config_path.exists() else LauncherConfig()

    for key, value in (overrides or {}).items():
        if value is not None:
            setattr(cfg, key, value)
    return cfg.validate()
