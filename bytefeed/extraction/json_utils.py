"""JSON repair for generative-model output.

Provides robust parsing of JSON objects and arrays from model output,
handling markdown fences, surrounding prose, trailing commas, control
characters, invalid escape sequences, and comments.
"""

from __future__ import annotations

import json
import re
from typing import Any


_FENCE_RE = re.compile(r"```[a-zA-Z]*[ \t]*\n?(.*?)(?:```|$)", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

_CLOSERS = {"{": "}", "[": "]"}


def fix_escape_sequences(text: str) -> str:
    """Fix invalid JSON escape sequences in model output.

    Models sometimes produce backslash sequences like ``\\_`` that are
    invalid in JSON strings. This replaces lone backslashes with
    double-backslashes where they don't form a valid JSON escape.

    Args:
        text: Raw text potentially containing invalid escapes.

    Returns:
        Text with invalid escape sequences fixed.
    """
    return re.sub(r'(?<!\\)\\(?!["\\/bfnrtu])', r"\\\\", text)


def strip_markdown_fences(text: str) -> str:
    """Return the body of the first markdown code fence, if any.

    Handles fences with or without a language tag and fences that are
    never closed.

    Args:
        text: Raw text potentially containing code fences.

    Returns:
        Fence body, or the stripped input when it has no fence.
    """
    text = text.strip()
    if "```" not in text:
        return text
    for match in _FENCE_RE.finditer(text):
        body = match.group(1).strip()
        if body.startswith(("{", "[")):
            return body
    return text.replace("```json", "").replace("```", "").strip()


def extract_outermost_json(text: str) -> str | None:
    """Extract the outermost ``{...}`` or ``[...]`` block from text.

    Whichever bracket appears first wins. Bracket matching ignores
    brackets inside string literals. An unterminated block yields the
    remainder of the text.

    Args:
        text: Raw text potentially containing JSON.

    Returns:
        The JSON block, or None if the text has no opening bracket.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)

    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return text[start : i + 1]
    return text[start:]


def remove_comments(text: str) -> str:
    """Remove ``//`` line comments and ``/* */`` block comments.

    Comment markers inside string literals (such as URLs) are kept.

    Args:
        text: JSON-like text.

    Returns:
        Text without comments.
    """
    out: list[str] = []
    i = 0
    in_string = False
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def clean_json_text(text: str) -> str:
    """Remove trailing commas and replace control characters with spaces."""
    text = _CONTROL_CHARS_RE.sub(" ", text)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _loads(text: str) -> Any | None:
    for candidate in (text, fix_escape_sequences(text)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def parse_ai_response(text: str | None) -> Any | None:
    """Parse a JSON object or array out of model output.

    Args:
        text: Raw model output.

    Returns:
        The parsed object or list, or None if nothing parseable remains
        after all repairs.
    """
    if not text or not text.strip():
        return None

    body = strip_markdown_fences(text)
    extracted = extract_outermost_json(body)
    if extracted is None:
        return None

    cleaned = clean_json_text(extracted)
    parsed = _loads(cleaned)
    if parsed is not None:
        return parsed

    return _loads(clean_json_text(remove_comments(extracted)))
