from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest


class _FakeRunner:
    def __init__(self, results: list[subprocess.CompletedProcess[Any] | BaseException] | None = None) -> None:
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self._results = list(results or [])

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[Any]:
        self.calls.append((list(command), kwargs))
        result = self._results.pop(0) if self._results else subprocess.CompletedProcess(command, 0, "", "")
        if isinstance(result, BaseException):
            raise result
        return result


def test_deliver_sends_text_then_enter() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher

    runner = _FakeRunner()
    TmuxDispatcher("/usr/bin/tmux", runner=runner).deliver("a.rs:5\n```\nx\n```\nwhy?", "work")

    assert [cmd for cmd, _kw in runner.calls] == [
        ["/usr/bin/tmux", "send-keys", "-t", "work", "a.rs:5\n```\nx\n```\nwhy?"],
        ["/usr/bin/tmux", "send-keys", "-t", "work", "Enter"],
    ]
    # tmux output must never reach the protocol stdout.
    for _cmd, kwargs in runner.calls:
        assert kwargs.get("stdout") is subprocess.DEVNULL
        assert kwargs.get("stdin") is subprocess.DEVNULL
        assert "shell" not in kwargs


def test_deliver_passes_shell_metacharacters_as_one_argument() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher

    runner = _FakeRunner()
    text = "$(rm -rf /); `id` && echo 'hi' | cat > /tmp/x\x1b[A"
    TmuxDispatcher("tmux", runner=runner).deliver(text, "s")

    assert runner.calls[0][0] == ["tmux", "send-keys", "-t", "s", text]


def test_deliver_runs_enter_even_if_first_step_fails() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher

    runner = _FakeRunner(
        [
            subprocess.CompletedProcess([], 1, None, b"can't find session: nope"),
            subprocess.CompletedProcess([], 1, None, b"can't find session: nope"),
        ]
    )
    TmuxDispatcher("tmux", runner=runner).deliver("hello", "nope")

    assert len(runner.calls) == 2
    assert runner.calls[1][0][-1] == "Enter"


def test_deliver_launch_failure_is_an_error() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher, TmuxError

    runner = _FakeRunner([FileNotFoundError(2, "No such file or directory")])

    with pytest.raises(TmuxError) as exc_info:
        TmuxDispatcher("tmux", runner=runner).deliver("hello", "work")

    assert str(exc_info.value).startswith("Failed to run tmux: ")
    assert "No such file or directory" in str(exc_info.value)
    assert len(runner.calls) == 1


def test_list_sessions_splits_lines() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher

    runner = _FakeRunner([subprocess.CompletedProcess([], 0, "work\ndev\n", "")])

    assert TmuxDispatcher("tmux", runner=runner).list_sessions() == ["work", "dev"]
    cmd, kwargs = runner.calls[0]
    assert cmd == ["tmux", "list-sessions", "-F", "#{session_name}"]
    assert kwargs.get("capture_output") is True
    assert kwargs.get("stdin") is subprocess.DEVNULL


def test_list_sessions_without_trailing_newline_and_empty_output() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher

    runner = _FakeRunner(
        [
            subprocess.CompletedProcess([], 0, "solo", ""),
            subprocess.CompletedProcess([], 0, "", ""),
        ]
    )
    dispatcher = TmuxDispatcher("tmux", runner=runner)

    assert dispatcher.list_sessions() == ["solo"]
    assert dispatcher.list_sessions() == []


def test_list_sessions_nonzero_exit_carries_stderr() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher, TmuxError

    runner = _FakeRunner([subprocess.CompletedProcess([], 1, "", "no server running on /tmp/tmux-1000/default\n")])

    with pytest.raises(TmuxError, match="^no server running on /tmp/tmux-1000/default$"):
        TmuxDispatcher("tmux", runner=runner).list_sessions()


def test_list_sessions_nonzero_exit_without_stderr() -> None:
    from native_hosts.pigeon.tmux import TmuxDispatcher, TmuxError

    runner = _FakeRunner([subprocess.CompletedProcess([], 3, "", "")])

    with pytest.raises(TmuxError, match="status 3"):
        TmuxDispatcher("tmux", runner=runner).list_sessions()


def test_detect_tmux_binary_prefers_first_existing(tmp_path: Path) -> None:
    from native_hosts.pigeon.tmux import detect_tmux_binary

    first = tmp_path / "first" / "tmux"
    second = tmp_path / "second" / "tmux"
    second.parent.mkdir()
    second.write_text("", encoding="utf-8")

    assert detect_tmux_binary([str(first), str(second)]) == str(second)

    first.parent.mkdir()
    first.write_text("", encoding="utf-8")
    assert detect_tmux_binary([str(first), str(second)]) == str(first)


def test_detect_tmux_binary_falls_back_to_bare_name(tmp_path: Path) -> None:
    from native_hosts.pigeon.tmux import detect_tmux_binary

    assert detect_tmux_binary([str(tmp_path / "nope" / "tmux")]) == "tmux"


def test_dispatcher_probes_candidates_when_no_binary(monkeypatch, tmp_path: Path) -> None:
    from native_hosts.pigeon import tmux

    fake = tmp_path / "tmux"
    fake.write_text("", encoding="utf-8")
    monkeypatch.setattr(tmux, "DEFAULT_TMUX_CANDIDATES", [str(tmp_path / "missing"), str(fake)])

    runner = _FakeRunner([subprocess.CompletedProcess([], 0, "", "")])
    tmux.TmuxDispatcher(runner=runner).list_sessions()

    assert runner.calls[0][0][0] == str(fake)


def test_missing_tmux_everywhere_reports_launch_failure(monkeypatch, tmp_path: Path) -> None:
    from native_hosts.pigeon import tmux

    monkeypatch.setattr(tmux, "DEFAULT_TMUX_CANDIDATES", [str(tmp_path / "missing" / "tmux")])
    monkeypatch.setenv("PATH", str(tmp_path))

    dispatcher = tmux.TmuxDispatcher()
    with pytest.raises(tmux.TmuxError, match="^Failed to run tmux: "):
        dispatcher.deliver("hello", "work")
    with pytest.raises(tmux.TmuxError, match="^Failed to run tmux: "):
        dispatcher.list_sessions()
