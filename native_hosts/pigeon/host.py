from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from .config import HostConfig, TargetResolver
from .formatter import format_message
from .framing import FrameError, read_message, write_message
from .protocol import (
    ListSessionsRequest,
    ListSessionsResponse,
    Request,
    RequestDecodeError,
    Response,
    SendRequest,
    SendResponse,
    decode_request,
)
from .tmux import TmuxDispatcher, TmuxError

_LOGGER = logging.getLogger("pigeon.host")


def write_debug_artifact(path: Path | None, html: str) -> None:
    """Overwrite the debug artifact with `html` (best-effort)."""
    if path is None:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("debug_artifact_write_failed path=%s error=%s", path, exc)


class NativeHost:
    """Serve Pigeon requests over Chrome Native Messaging, one at a time.

    - Extension -> host: framed JSON request on stdin.
    - Host -> extension: framed JSON response on stdout.
    - Closing stdin ends the loop.
    """

    def __init__(
        self,
        config: HostConfig,
        *,
        resolver: TargetResolver | None = None,
        dispatcher: TmuxDispatcher | None = None,
        stdin: BinaryIO,
        stdout: BinaryIO,
    ) -> None:
        self.config = config
        self.resolver = resolver or TargetResolver.from_config(config)
        self.dispatcher = dispatcher or TmuxDispatcher(config.tmux_binary)
        self._stdin = stdin
        self._stdout = stdout
        self._handlers: dict[type, Callable[..., Response]] = {
            SendRequest: self.handle_send,
            ListSessionsRequest: self.handle_list_sessions,
        }

    def handle_send(self, req: SendRequest) -> SendResponse:
        if req.debug_html is not None:
            write_debug_artifact(self.config.debug_artifact_path, req.debug_html)

        message = format_message(req.file, req.start_line, req.end_line, req.side, req.code, req.question)
        target = self.resolver.resolve(req.tmux_target)
        try:
            self.dispatcher.deliver(message, target)
        except TmuxError as exc:
            _LOGGER.warning("send_failed target=%s error=%s", target, exc)
            return SendResponse.failure(str(exc))
        _LOGGER.debug("send_ok target=%s file=%s bytes=%s", target, req.file, len(message.encode("utf-8")))
        return SendResponse.success()

    def handle_list_sessions(self, _req: ListSessionsRequest) -> ListSessionsResponse:
        try:
            sessions = self.dispatcher.list_sessions()
        except TmuxError as exc:
            _LOGGER.warning("list_sessions_failed error=%s", exc)
            return ListSessionsResponse.failure(str(exc))
        return ListSessionsResponse.success(sessions)

    def dispatch(self, req: Request) -> Response:
        handler = self._handlers.get(type(req))
        if handler is None:
            raise KeyError(f"Unknown request: {type(req).__name__}")
        try:
            return handler(req)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("handler_crashed request=%s", type(req).__name__)
            if isinstance(req, ListSessionsRequest):
                return ListSessionsResponse.failure(str(exc))
            return SendResponse.failure(str(exc))

    def handle_raw(self, raw: str) -> Response:
        try:
            req = decode_request(raw)
        except RequestDecodeError as exc:
            _LOGGER.debug("decode_failed error=%s", exc)
            return SendResponse.failure(f"Invalid JSON: {exc}")
        return self.dispatch(req)

    def run(self) -> int:
        while True:
            try:
                raw = read_message(self._stdin)
            except EOFError:
                _LOGGER.debug("stdin_closed")
                return 0
            except FrameError as exc:
                _LOGGER.error("frame_error %s", exc)
                return 1
            response = self.handle_raw(raw)
            try:
                write_message(self._stdout, response.to_json())
            except BrokenPipeError:
                _LOGGER.debug("stdout_closed")
                return 0


__all__ = ["NativeHost", "write_debug_artifact"]
