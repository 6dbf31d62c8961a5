"""Closed set of provider codes understood by the relay."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

from errors import UnsupportedProvider

_LOGGER = logging.getLogger(__name__)

_DISPLAY_NAMES = {
    "g": "GEMINI",
    "c": "CHATGPT",
    "d": "DEEPSEEK",
}


class ProviderCode(str, Enum):
    """Short identifiers used on the wire (``model`` field)."""

    GEMINI = "g"
    CHATGPT = "c"
    DEEPSEEK = "d"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self.value]

    @classmethod
    def parse(cls, value: object) -> "ProviderCode":
        """Return the member for *value* or raise :class:`UnsupportedProvider`."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedProvider(value)


def split_codes(values: Iterable[str]) -> tuple[list[ProviderCode], list[str]]:
    """Split raw codes into ``(valid, invalid)`` lists.

    Codes are lower-cased and de-duplicated with the first occurrence winning.
    Invalid codes are returned (and logged) instead of raising, so a caller
    asking for ``g, x`` still gets an answer from ``g``.
    """

    valid: list[ProviderCode] = []
    invalid: list[str] = []
    seen: set[str] = set()
    for raw in values:
        normalized = str(raw).strip().lower()
        if normalized in seen:
            continue
        seen.add(normalized)
        try:
            valid.append(ProviderCode(normalized))
        except ValueError:
            invalid.append(normalized)

    if invalid:
        _LOGGER.warning("Ignoring invalid provider codes: %s", ", ".join(invalid))
    return valid, invalid
