"""Tests for glob expansion and global de-duplication."""

import os
from pathlib import Path

import pytest

from open_project.entry import BareEntry, LayoutEntry
from open_project.errors import EncodingError, PatternError
from open_project.expansion import check_pattern, expand_entries


def paths(entries):
    return [e.path for e in entries]


class TestExpandEntries:
    def test_concrete_paths_expand_to_themselves(self, project_tree: Path):
        src = [
            BareEntry(str(project_tree / "notes")),
            BareEntry(str(project_tree / "code/beta")),
            BareEntry(str(project_tree / "code/alpha")),
        ]
        assert expand_entries(src) == src

    def test_glob_expands_in_sorted_order(self, project_tree: Path):
        out = expand_entries([BareEntry(f"{project_tree}/code/*")])
        assert paths(out) == [
            f"{project_tree}/code/.dotfiles",
            f"{project_tree}/code/alpha",
            f"{project_tree}/code/beta",
            f"{project_tree}/code/gamma",
        ]

    def test_matches_keep_layout(self, project_tree: Path):
        out = expand_entries([LayoutEntry(f"{project_tree}/code/[ab]*", "dev")])
        assert out == [
            LayoutEntry(f"{project_tree}/code/alpha", "dev"),
            LayoutEntry(f"{project_tree}/code/beta", "dev"),
        ]

    def test_overlap_first_entry_wins(self, project_tree: Path):
        src = [
            LayoutEntry(f"{project_tree}/code/beta", "first"),
            BareEntry(f"{project_tree}/code/*a"),
            LayoutEntry(f"{project_tree}/code/?eta", "late"),
        ]
        out = expand_entries(src)
        # "*a" also matches beta; it stays attributed to the first entry
        assert out == [
            LayoutEntry(f"{project_tree}/code/beta", "first"),
            BareEntry(f"{project_tree}/code/alpha"),
            BareEntry(f"{project_tree}/code/gamma"),
        ]

    def test_each_concrete_path_emitted_once(self, project_tree: Path):
        src = [
            BareEntry(f"{project_tree}/code/*"),
            BareEntry(f"{project_tree}/code/alpha"),
            BareEntry(f"{project_tree}/code/./alpha"),
            BareEntry(f"{project_tree}/*/alpha"),
        ]
        out = expand_entries(src)
        assert len(out) == 4
        assert len({Path(p) for p in paths(out)}) == 4

    def test_zero_matches_contribute_nothing(self, project_tree: Path):
        src = [BareEntry(f"{project_tree}/missing/*"), BareEntry(f"{project_tree}/notes")]
        assert paths(expand_entries(src)) == [f"{project_tree}/notes"]

    def test_missing_literal_path_dropped(self, project_tree: Path):
        assert expand_entries([BareEntry(f"{project_tree}/nope")]) == []

    def test_recursive_wildcard(self, project_tree: Path):
        out = paths(expand_entries([BareEntry(f"{project_tree}/code/**/nested")]))
        assert out == [f"{project_tree}/code/gamma/nested"]

    def test_empty_input(self):
        assert expand_entries([]) == []

    def test_unreadable_directory_skipped(self, tmp_path: Path, monkeypatch):
        (tmp_path / "locked" / "x").mkdir(parents=True)
        (tmp_path / "open" / "y").mkdir(parents=True)
        real_scandir = os.scandir

        def scandir(path=".", *args, **kwargs):
            if isinstance(path, (str, bytes)) and os.path.basename(os.fsdecode(path).rstrip("/")) == "locked":
                raise PermissionError(13, "Permission denied", path)
            return real_scandir(path, *args, **kwargs)

        monkeypatch.setattr(os, "scandir", scandir)
        assert paths(expand_entries([BareEntry(f"{tmp_path}/*/*")])) == [f"{tmp_path}/open/y"]

    def test_pattern_error_aborts_everything(self, project_tree: Path):
        src = [BareEntry(f"{project_tree}/notes"), BareEntry(f"{project_tree}/code/[ab")]
        with pytest.raises(PatternError):
            expand_entries(src)

    def test_non_utf8_path_aborts(self, project_tree: Path):
        src = [BareEntry(f"{project_tree}/notes"), BareEntry(f"{project_tree}/bad\udcff")]
        with pytest.raises(EncodingError, match="not valid utf-8"):
            expand_entries(src)


class TestCheckPattern:
    @pytest.mark.parametrize(
        "pattern",
        ["/a/b", "/a/*", "/a/?", "/a/[abc]", "/a/[!abc]", "/a/[]]", "/a/[!]x]", "**", "/a/**", "**/b", "/a/**/b"],
    )
    def test_valid(self, pattern):
        check_pattern(pattern)

    @pytest.mark.parametrize(
        "pattern,position",
        [("/a/[bc", 3), ("/a/[]", 3), ("/a/***", 3), ("/a/x**", 4), ("/a/**x", 3)],
    )
    def test_invalid(self, pattern, position):
        with pytest.raises(PatternError) as exc:
            check_pattern(pattern)
        assert exc.value.position == position
        assert exc.value.pattern == pattern
