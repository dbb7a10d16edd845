"""
Tests for the command-line entry point.
"""

import io
from pathlib import Path
from unittest import mock

import pytest

from tai import cli
from tai.llm import ChatResponse, LLMError


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    history_path = tmp_path / "history.json"
    monkeypatch.setenv("TAI_HISTORY_PATH", str(history_path))
    workspace = tmp_path / "ws"
    workspace.mkdir()
    monkeypatch.chdir(workspace)
    return history_path


class TestMain:

    def test_answer_printed(self, env: Path, capsys: pytest.CaptureFixture) -> None:
        with mock.patch.object(cli.LLMClient, "chat", return_value=ChatResponse("Use ls.", [])):
            code = cli.main(["--nocontext", "how", "to", "list", "files"])
        assert code == 0
        assert "Use ls." in capsys.readouterr().out
        assert env.exists()

    def test_llm_error_exits_1(self, env: Path, capsys: pytest.CaptureFixture) -> None:
        with mock.patch.object(cli.LLMClient, "chat", side_effect=LLMError("down")):
            code = cli.main(["--nocontext", "hi"])
        assert code == 1
        assert "down" in capsys.readouterr().err

    def test_clear_history(self, env: Path) -> None:
        env.write_text('{"entries": []}')
        assert cli.main(["--clear-history"]) == 0
        assert not env.exists()

    def test_bad_max_steps_is_usage_error(self, env: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main(["--max-steps", "0", "hi"])
        assert exc.value.code == 2

    def test_empty_stdin_does_nothing(self, env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert cli.main([]) == 0


class TestReadMessage:

    def test_stops_at_blank_line(self) -> None:
        assert cli.read_message(io.StringIO("line one\nline two\n\nignored\n")) == "line one\nline two"
