"""Shared fixtures for open-project tests."""

from pathlib import Path

import pytest


@pytest.fixture
def project_tree(tmp_path: Path) -> Path:
    """A small directory tree to glob against.

    code/alpha, code/beta, code/.dotfiles, code/gamma/nested, notes
    """
    root = tmp_path / "tree"
    for rel in ("code/alpha", "code/beta", "code/.dotfiles", "code/gamma/nested", "notes"):
        (root / rel).mkdir(parents=True)
    return root


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config.yaml keeping data and layouts inside tmp_path."""
    path = tmp_path / "config" / "config.yaml"
    path.parent.mkdir()
    path.write_text("data_dir: ../data\nlayouts_dir: layouts\nterminal: inline\n")
    return path
