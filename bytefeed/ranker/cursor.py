"""Opaque pagination cursors bound to a listing scope."""

import base64
import binascii
import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from bytefeed.ranker.models import FeedMode


class InvalidCursorError(ValueError):
    """Raised when a cursor is malformed or belongs to another listing."""


@dataclass(frozen=True)
class CursorState:
    """Decoded cursor contents.

    Attributes:
        after: Sort key to resume after, or None to start from the top.
        served: Ids past ``after`` that earlier pages already served.
    """

    after: tuple[Any, ...] | None
    served: frozenset[str] = field(default_factory=frozenset)


def _scope_name(scope: FeedMode | str) -> str:
    return scope.value if isinstance(scope, FeedMode) else scope


def encode_cursor(
    scope: FeedMode | str,
    key: Sequence[Any] | None,
    served: Iterable[str] = (),
) -> str:
    """Encode a sort key as an opaque URL-safe token.

    Args:
        scope: Feed mode (or other listing name) the cursor belongs to.
        key: Sort key of the last item consumed, or None for the top.
        served: Ids beyond ``key`` that were already served.

    Returns:
        Cursor token.
    """
    body: dict[str, Any] = {
        "m": _scope_name(scope),
        "k": list(key) if key is not None else None,
    }
    served_ids = sorted(served)
    if served_ids:
        body["s"] = served_ids
    payload = json.dumps(body, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor_state(
    token: str, scope: FeedMode | str, key_length: int
) -> CursorState:
    """Decode a cursor token into its resume key and served ids.

    Args:
        token: Cursor token from a previous page.
        scope: Feed mode (or other listing name) of the current request.
        key_length: Expected number of sort key values.

    Returns:
        The decoded cursor state.

    Raises:
        InvalidCursorError: If the token is malformed, was issued for a
            different listing, or carries a key of the wrong shape.
    """
    name = _scope_name(scope)
    padded = token + "=" * (-len(token) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as e:
        msg = "Malformed cursor"
        raise InvalidCursorError(msg) from e

    if not isinstance(payload, dict) or payload.get("m") != name:
        msg = f"Cursor does not belong to the {name} listing"
        raise InvalidCursorError(msg)

    served = payload.get("s", [])
    if not isinstance(served, list) or not all(isinstance(v, str) for v in served):
        msg = "Cursor served ids are invalid"
        raise InvalidCursorError(msg)

    key = payload.get("k")
    if key is None and "k" in payload and served:
        return CursorState(after=None, served=frozenset(served))
    if not isinstance(key, list) or len(key) != key_length:
        msg = "Cursor key has the wrong shape"
        raise InvalidCursorError(msg)
    if not all(isinstance(v, str | int | float) and not isinstance(v, bool) for v in key):
        msg = "Cursor key has invalid values"
        raise InvalidCursorError(msg)
    return CursorState(after=tuple(key), served=frozenset(served))


def decode_cursor(token: str, scope: FeedMode | str, key_length: int) -> tuple[Any, ...]:
    """Decode a cursor token back into a sort key.

    Args:
        token: Cursor token from a previous page.
        scope: Feed mode (or other listing name) of the current request.
        key_length: Expected number of sort key values.

    Returns:
        The sort key.

    Raises:
        InvalidCursorError: If the token is malformed, was issued for a
            different listing, or carries no resume key.
    """
    state = decode_cursor_state(token, scope, key_length)
    if state.after is None:
        msg = "Cursor key has the wrong shape"
        raise InvalidCursorError(msg)
    return state.after
