"""Tests for multiplexer backends, terminal spawning and the launch flow."""

import subprocess
from pathlib import Path
from typing import List
from unittest.mock import MagicMock, patch

import pytest
from libtmux import exc as tmux_exc

from open_project.config import LauncherConfig
from open_project.entry import BareEntry, Entry, LayoutEntry
from open_project.errors import BackendError, LayoutError, ListingParseError
from open_project.multiplexer import (
    MultiplexerBackend,
    TmuxBackend,
    ZellijBackend,
    launch,
    make_backend,
    spawn,
)
from open_project.sessions import LaunchAction, LaunchDecision, SessionRecord


def completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class RecordingBackend(MultiplexerBackend):
    name = "recording"

    def __init__(self, sessions: List[SessionRecord]) -> None:
        self.sessions = sessions
        self.deleted: List[str] = []

    def list_sessions(self) -> List[SessionRecord]:
        return self.sessions

    def delete_session(self, name: str) -> None:
        self.deleted.append(name)

    def prepare(self, decision: LaunchDecision, entry: Entry) -> List[str]:
        return ["mux", decision.action.value, decision.name]


class TestZellijBackend:
    @pytest.fixture
    def mock_run(self):
        with patch("open_project.multiplexer.subprocess.run") as run:
            yield run

    def test_list_sessions_parses_output(self, mock_run):
        mock_run.return_value = completed(
            stdout=b"web [Created 1h ago] (current)\napi [Created 2days ago] (EXITED - attach to resurrect)\n"
        )
        assert ZellijBackend().list_sessions() == [SessionRecord("web"), SessionRecord("api", exited=True)]
        assert mock_run.call_args.args[0] == ["zellij", "list-sessions", "--no-formatting"]

    def test_no_sessions(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr=b"No active zellij sessions found.\n")
        assert ZellijBackend().list_sessions() == []

    def test_malformed_listing_propagates(self, mock_run):
        mock_run.return_value = completed(stdout=b"web session\n")
        with pytest.raises(ListingParseError):
            ZellijBackend().list_sessions()

    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        with pytest.raises(BackendError, match="zellij not found"):
            ZellijBackend().list_sessions()

    def test_delete_session(self, mock_run):
        mock_run.return_value = completed()
        ZellijBackend().delete_session("api")
        assert mock_run.call_args.args[0] == ["zellij", "delete-session", "api"]

    def test_delete_session_failure(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr=b"boom")
        with pytest.raises(BackendError, match="boom"):
            ZellijBackend().delete_session("api")

    def test_prepare_commands(self):
        backend = ZellijBackend()
        assert backend.prepare(LaunchDecision.attach("web"), BareEntry("/srv/web")) == ["zellij", "attach", "web"]
        assert backend.prepare(LaunchDecision.create("web"), BareEntry("/srv/web")) == ["zellij", "--session", "web"]
        assert backend.prepare(LaunchDecision.recreate("web"), LayoutEntry("/srv/web", "dev")) == [
            "zellij",
            "--session",
            "web",
            "--layout",
            "dev",
        ]


class TestTmuxBackend:
    @pytest.fixture
    def server(self):
        server = MagicMock()
        alive = MagicMock(session_name="web")
        server.sessions.__iter__.return_value = iter([alive])
        server.sessions.filter.return_value = [alive]
        return server

    def test_list_sessions_never_exited(self, server, tmp_path: Path):
        assert TmuxBackend(tmp_path, server=server).list_sessions() == [SessionRecord("web")]

    def test_delete_session_kills(self, server, tmp_path: Path):
        TmuxBackend(tmp_path, server=server).delete_session("web")
        server.sessions.filter.assert_called_with(session_name="web")
        server.sessions.filter.return_value[0].kill.assert_called_once()

    def test_attach_does_not_create(self, server, tmp_path: Path):
        argv = TmuxBackend(tmp_path, server=server).prepare(LaunchDecision.attach("web"), BareEntry("/srv/web"))
        assert argv == ["tmux", "attach-session", "-t", "web"]
        server.new_session.assert_not_called()

    def test_create_without_layout(self, server, tmp_path: Path):
        with patch("open_project.multiplexer.apply_layout") as apply:
            TmuxBackend(tmp_path, server=server).prepare(LaunchDecision.create("api"), BareEntry("/srv/api"))
        server.new_session.assert_called_once_with(session_name="api", start_directory="/srv/api", attach=False)
        apply.assert_not_called()

    def test_create_with_layout(self, server, tmp_path: Path):
        (tmp_path / "dev.yaml").write_text("windows:\n  edit:\n    - nvim .\n")
        with patch("open_project.multiplexer.apply_layout") as apply:
            TmuxBackend(tmp_path, server=server).prepare(LaunchDecision.create("api"), LayoutEntry("/srv/api", "dev"))
        session, layout, root = apply.call_args.args
        assert session is server.new_session.return_value
        assert layout.name == "dev"
        assert root == Path("/srv/api")

    def test_missing_layout_creates_nothing(self, server, tmp_path: Path):
        with pytest.raises(LayoutError, match="not found"):
            TmuxBackend(tmp_path, server=server).prepare(LaunchDecision.create("api"), LayoutEntry("/srv/api", "nope"))
        server.new_session.assert_not_called()

    def test_tmux_failure_becomes_backend_error(self, server, tmp_path: Path):
        server.new_session.side_effect = tmux_exc.LibTmuxException("server exited")
        with pytest.raises(BackendError, match="server exited"):
            TmuxBackend(tmp_path, server=server).prepare(LaunchDecision.create("api"), BareEntry("/srv/api"))


def test_make_backend(tmp_path: Path):
    assert isinstance(make_backend(LauncherConfig(multiplexer="zellij")), ZellijBackend)
    with patch("open_project.multiplexer.libtmux.Server"):
        backend = make_backend(LauncherConfig(multiplexer="tmux", layouts_dir=tmp_path))
    assert isinstance(backend, TmuxBackend)
    assert backend.layouts_dir == tmp_path


class TestSpawn:
    def test_wezterm_tab(self, tmp_path: Path):
        with patch("open_project.multiplexer.subprocess.run", return_value=completed()) as run:
            assert spawn(["zellij", "attach", "x"], tmp_path) == 0
        assert run.call_args.args[0] == ["wezterm", "cli", "spawn", "--cwd", str(tmp_path), "--", "zellij", "attach", "x"]

    def test_wezterm_new_window(self, tmp_path: Path):
        with patch("open_project.multiplexer.subprocess.run", return_value=completed()) as run:
            spawn(["zellij"], tmp_path, new_window=True)
        assert "--new-window" in run.call_args.args[0]

    def test_inline_execs(self, tmp_path: Path):
        with (
            patch("open_project.multiplexer.os.execvp") as execvp,
            patch("open_project.multiplexer.os.chdir") as chdir,
        ):
            spawn(["tmux", "attach-session", "-t", "x"], tmp_path, terminal="inline")
        chdir.assert_called_once_with(tmp_path)
        execvp.assert_called_once_with("tmux", ["tmux", "attach-session", "-t", "x"])


class TestLaunch:
    @pytest.mark.parametrize(
        "sessions,action,deleted",
        [
            ([], LaunchAction.CREATE, []),
            ([SessionRecord("web")], LaunchAction.ATTACH, []),
            ([SessionRecord("web", exited=True)], LaunchAction.RECREATE, ["web"]),
        ],
    )
    def test_decision_drives_backend(self, sessions, action, deleted):
        backend = RecordingBackend(sessions)
        with patch("open_project.multiplexer.spawn", return_value=0) as mock_spawn:
            decision = launch(backend, BareEntry("/srv/web"), terminal="wezterm", new_window=True)

        assert decision == LaunchDecision(action, "web")
        assert backend.deleted == deleted
        mock_spawn.assert_called_once_with(
            ["mux", action.value, "web"], Path("/srv/web"), terminal="wezterm", new_window=True
        )

    def test_spawn_failure_reported(self, capsys):
        with patch("open_project.multiplexer.spawn", return_value=3):
            launch(RecordingBackend([]), BareEntry("/srv/web"))
        assert "failed to spawn tab: exit status 3" in capsys.readouterr().err
