"""
Request/response types for the Pigeon native messaging protocol.

Requests are JSON objects discriminated by an `action` field:

    {"action": "send", "file": ..., "code": ..., "question": ..., ...}
    {"action": "list-sessions"}

Responses omit absent fields, so a success is exactly `{"ok":true}`.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any


class RequestDecodeError(ValueError):
    pass


class Side(enum.Enum):
    OLD = "old"
    NEW = "new"


@dataclass(slots=True, frozen=True)
class SendRequest:
    """Ask about a code selection: format it and type it into a tmux session."""

    file: str
    code: str
    question: str
    start_line: int | None = None
    end_line: int | None = None
    side: Side = Side.NEW
    tmux_target: str = ""
    debug_html: str | None = None


@dataclass(slots=True, frozen=True)
class ListSessionsRequest:
    pass


Request = SendRequest | ListSessionsRequest


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


@dataclass(slots=True, frozen=True)
class SendResponse:
    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> SendResponse:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> SendResponse:
        return cls(ok=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok}
        if self.error is not None:
            out["error"] = self.error
        return out

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass(slots=True, frozen=True)
class ListSessionsResponse:
    ok: bool
    sessions: list[str] | None = None
    error: str | None = None

    @classmethod
    def success(cls, sessions: list[str]) -> ListSessionsResponse:
        return cls(ok=True, sessions=list(sessions))

    @classmethod
    def failure(cls, error: str) -> ListSessionsResponse:
        return cls(ok=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok}
        if self.sessions is not None:
            out["sessions"] = list(self.sessions)
        if self.error is not None:
            out["error"] = self.error
        return out

    def to_json(self) -> str:
        return _dumps(self.to_dict())


Response = SendResponse | ListSessionsResponse


def _utf8_str(key: str, value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise RequestDecodeError(f"field `{key}`: {exc}") from None
    return value


def _required_str(obj: dict[str, Any], key: str) -> str:
    if key not in obj:
        raise RequestDecodeError(f"missing field `{key}`")
    value = obj[key]
    if not isinstance(value, str):
        raise RequestDecodeError(f"field `{key}`: expected a string, got {type(value).__name__}")
    return _utf8_str(key, value)


def _optional_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RequestDecodeError(f"field `{key}`: expected a string, got {type(value).__name__}")
    return _utf8_str(key, value)


def _optional_line(obj: dict[str, Any], key: str) -> int | None:
    value = obj.get(key)
    if value is None:
        return None
    # bool is an int subclass; `true` is not a line number.
    if isinstance(value, bool) or not isinstance(value, int):
        raise RequestDecodeError(f"field `{key}`: expected an unsigned integer, got {type(value).__name__}")
    if value < 0:
        raise RequestDecodeError(f"field `{key}`: expected an unsigned integer, got {value}")
    return value


def _optional_side(obj: dict[str, Any]) -> Side:
    raw = obj.get("side")
    if raw is None:
        return Side.NEW
    try:
        return Side(raw)
    except ValueError:
        raise RequestDecodeError(f"field `side`: unknown variant {raw!r}, expected 'old' or 'new'") from None


def _decode_send(obj: dict[str, Any]) -> SendRequest:
    return SendRequest(
        file=_required_str(obj, "file"),
        code=_required_str(obj, "code"),
        question=_required_str(obj, "question"),
        start_line=_optional_line(obj, "start_line"),
        end_line=_optional_line(obj, "end_line"),
        side=_optional_side(obj),
        tmux_target=_optional_str(obj, "tmux_target") or "",
        debug_html=_optional_str(obj, "debug_html"),
    )


def _decode_list_sessions(_obj: dict[str, Any]) -> ListSessionsRequest:
    return ListSessionsRequest()


_DECODERS = {
    "send": _decode_send,
    "list-sessions": _decode_list_sessions,
}


def decode_request(text: str) -> Request:
    """Parse one message body into a request, raising `RequestDecodeError`."""
    try:
        obj = json.loads(text)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError is a ValueError; so are oversized integer literals.
        raise RequestDecodeError(str(exc)) from exc
    if not isinstance(obj, dict):
        raise RequestDecodeError(f"expected a JSON object, got {type(obj).__name__}")

    if "action" not in obj:
        raise RequestDecodeError("missing field `action`")
    action = obj["action"]
    decoder = _DECODERS.get(action) if isinstance(action, str) else None
    if decoder is None:
        expected = ", ".join(repr(name) for name in _DECODERS)
        raise RequestDecodeError(f"unknown action {action!r}, expected one of {expected}")
    return decoder(obj)


__all__ = [
    "ListSessionsRequest",
    "ListSessionsResponse",
    "Request",
    "RequestDecodeError",
    "Response",
    "SendRequest",
    "SendResponse",
    "Side",
    "decode_request",
]
