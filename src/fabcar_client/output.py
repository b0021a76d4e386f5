"""Rendering of transaction results and error text."""

from __future__ import annotations

import json
import re

from fabcar_client.errors import LedgerEvaluateError

SUCCESS_BANNER = "######## Success ########"
RESULT_PREFIX = "######## Result:"
_JSON_SPACE = " \t\r\n"

_SENSITIVE_FIELDS = (
    "privateKey",
    "private_key",
    "x-fabric-signature",
    "signature",
)
_PEM_PRIVATE_KEY_RE = re.compile(
    r"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.*?-----END \1PRIVATE KEY-----",
    re.DOTALL,
)


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON literal {name}")


def _reindent(text: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False
    pending_break = False
    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch in _JSON_SPACE:
            continue
        if pending_break:
            pending_break = False
            if ch in "}]":
                out.append(ch)
                continue
            out.append("\n")
        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in "{[":
            out.append(ch)
            pending_break = True
        elif ch == ",":
            out.append(",\n")
        elif ch == ":":
            out.append(": ")
        elif ch in "}]":
            out.append("\n" + ch)
        else:
            out.append(ch)
    return "".join(out)


def format_json(data: bytes | str) -> str:
    """Re-emit a JSON payload one element per line, without indentation.

    Only whitespace outside strings changes: literals, escapes and repeated
    keys come through byte for byte. Empty containers stay compact, so
    formatting an already formatted payload returns it unchanged.
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        json.loads(text, parse_constant=_reject_constant)
    except ValueError as exc:
        raise LedgerEvaluateError(f"failed to parse JSON: {exc}") from exc
    return _reindent(text)


def render_result(data: bytes | str) -> str:
    return f"{RESULT_PREFIX}{format_json(data)}"


def sanitize_error_text(value: str) -> str:
    redacted = _PEM_PRIVATE_KEY_RE.sub("[REDACTED PRIVATE KEY]", value)
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({re.escape(field)}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted
