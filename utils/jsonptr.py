"""JSON Pointer (RFC 6901) lookups over decoded upstream responses."""
from __future__ import annotations

from typing import Any, Iterable


def _unescape_token(token: str) -> str:
    """Return JSON Pointer token with ``~1``/``~0`` sequences restored."""

    return token.replace("~1", "/").replace("~0", "~")


def json_pointer_get(data: Any, pointer: str) -> Any:
    """Resolve *pointer* against *data* following RFC 6901 semantics.

    Parameters
    ----------
    data:
        Root JSON-like structure (``dict``/``list``/primitive).
    pointer:
        JSON Pointer expression such as ``"/candidates/0/content"``. The empty
        string refers to the root object.

    Raises
    ------
    KeyError
        If a map key is missing or if a list index token is invalid.
    IndexError
        If a list index is out of range.
    ValueError
        If *pointer* is not empty and does not start with ``/``.
    """

    if pointer == "":
        return data

    if not pointer.startswith("/"):
        raise ValueError(f"JSON Pointer must start with '/': {pointer}")

    current = data
    for raw_token in pointer[1:].split("/"):
        token = _unescape_token(raw_token)
        if isinstance(current, list):
            if token == "-":
                raise IndexError("JSON Pointer '-' token cannot be read")
            try:
                index = int(token)
            except ValueError as exc:
                raise KeyError(f"Invalid JSON Pointer index: {token}") from exc
            try:
                current = current[index]
            except IndexError as exc:
                raise IndexError(
                    f"JSON Pointer index out of range: {token} (length {len(current)})"
                ) from exc
        elif isinstance(current, dict):
            if token not in current:
                raise KeyError(f"JSON Pointer key not found: {token}")
            current = current[token]
        else:
            raise KeyError(
                f"Cannot resolve JSON Pointer through {type(current).__name__}"
            )

    return current


def first_present(data: Any, pointers: Iterable[str], default: Any = None) -> tuple[str | None, Any]:
    """Return ``(pointer, value)`` for the first pointer that resolves to a non-null value.

    When none of *pointers* resolves, ``(None, default)`` is returned.
    """

    for pointer in pointers:
        try:
            value = json_pointer_get(data, pointer)
        except (KeyError, IndexError):
            continue
        if value is not None:
            return pointer, value
    return None, default
