from __future__ import annotations

from .protocol import Side

MAX_CODE_BYTES = 2000
TRUNCATION_MARKER = "...(truncated)"
DEFAULT_QUESTION = "Explain this code"


def _location(file: str, start_line: int | None, end_line: int | None) -> str:
    if start_line is not None and end_line is not None and start_line != end_line:
        return f"{file}:{start_line}-{end_line}"
    if start_line is not None:
        return f"{file}:{start_line}"
    return file


def truncate_code(code: str, max_bytes: int = MAX_CODE_BYTES) -> str:
    """Cap `code` at `max_bytes` UTF-8 bytes without splitting a character."""
    raw = code.encode("utf-8")
    if len(raw) <= max_bytes:
        return code
    # errors="ignore" drops the partial trailing sequence, landing on the last boundary.
    head = raw[:max_bytes].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER


def format_message(
    file: str,
    start_line: int | None,
    end_line: int | None,
    side: Side,
    code: str,
    question: str,
) -> str:
    """Render a code selection and question as one chat message.

    Example:
        a.rs:5-9
        ```
        fn f(){}
        ```
        why?
    """
    parts = [_location(file, start_line, end_line)]
    if side is Side.OLD:
        parts.append(" (deleted lines)")
    parts.append("\n")
    parts.append("```\n")
    parts.append(truncate_code(code))
    parts.append("\n```\n")
    parts.append(question if question else DEFAULT_QUESTION)
    return "".join(parts)


__all__ = ["DEFAULT_QUESTION", "MAX_CODE_BYTES", "TRUNCATION_MARKER", "format_message", "truncate_code"]
