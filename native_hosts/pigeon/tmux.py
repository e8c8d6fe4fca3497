"""tmux invocation: deliver keystrokes to a session and list sessions.

This is the only module that starts processes. Everything above it works with
`TmuxDispatcher` and can be tested with a fake runner.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

_LOGGER = logging.getLogger("pigeon.tmux")

# Chrome launches native hosts with a minimal PATH, so probe where package managers put tmux.
DEFAULT_TMUX_CANDIDATES: list[str] = [
    "/opt/homebrew/bin/tmux",  # Homebrew on Apple Silicon
    "/usr/local/bin/tmux",  # Homebrew on Intel macOS, manual installs
    "/usr/bin/tmux",  # System package manager
]

SESSION_NAME_FORMAT = "#{session_name}"

Runner = Callable[..., "subprocess.CompletedProcess[Any]"]


class TmuxError(Exception):
    pass


def detect_tmux_binary(candidates: Sequence[str] | None = None) -> str:
    for candidate in DEFAULT_TMUX_CANDIDATES if candidates is None else candidates:
        if Path(candidate).exists():
            return candidate
    # Last resort: rely on PATH lookup at launch time.
    return "tmux"


class TmuxDispatcher:
    def __init__(self, binary: str | None = None, runner: Runner | None = None) -> None:
        self._binary = binary
        self._runner: Runner = runner or subprocess.run

    @property
    def binary(self) -> str:
        return self._binary or detect_tmux_binary()

    def _run(self, args: list[str], *, capture: bool) -> subprocess.CompletedProcess[Any]:
        command = [self.binary, *args]
        # stdin/stdout carry the native messaging frames; keep tmux off them.
        try:
            if capture:
                return self._runner(command, stdin=subprocess.DEVNULL, capture_output=True, text=True, check=False)
            return self._runner(
                command, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, check=False
            )
        except OSError as exc:
            raise TmuxError(f"Failed to run tmux: {exc}") from exc

    def deliver(self, message: str, target: str) -> None:
        """Type `message` into `target` as literal keystrokes, then press Enter.

        A non-zero exit from the first step does not skip the Enter step; only a
        failure to launch tmux aborts the operation.
        """
        for payload in (message, "Enter"):
            result = self._run(["send-keys", "-t", target, payload], capture=False)
            if result.returncode != 0:
                _LOGGER.warning(
                    "tmux_send_keys_failed target=%s status=%s stderr=%s",
                    target,
                    result.returncode,
                    _stderr_text(result),
                )

    def list_sessions(self) -> list[str]:
        result = self._run(["list-sessions", "-F", SESSION_NAME_FORMAT], capture=True)
        if result.returncode != 0:
            stderr = _stderr_text(result)
            raise TmuxError(stderr or f"tmux list-sessions exited with status {result.returncode}")
        lines = str(result.stdout or "").split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return lines


def _stderr_text(result: subprocess.CompletedProcess[Any]) -> str:
    raw = result.stderr
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return str(raw or "").strip()


__all__ = ["DEFAULT_TMUX_CANDIDATES", "TmuxDispatcher", "TmuxError", "detect_tmux_binary"]
