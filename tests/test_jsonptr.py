"""Tests for JSON Pointer helpers."""
from __future__ import annotations

import pytest

from utils.jsonptr import first_present, json_pointer_get


def test_pointer_walks_dicts_and_lists() -> None:
    data = {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}
    assert json_pointer_get(data, "/candidates/0/content/parts/0/text") == "hi"
    assert json_pointer_get(data, "") is data


def test_pointer_unescapes_tokens() -> None:
    data = {"a/b": {"m~n": 1}}
    assert json_pointer_get(data, "/a~1b/m~0n") == 1


@pytest.mark.parametrize(
    "pointer, exc",
    [
        ("/missing", KeyError),
        ("/items/5", IndexError),
        ("/items/x", KeyError),
        ("items", ValueError),
    ],
)
def test_pointer_errors(pointer: str, exc: type[Exception]) -> None:
    with pytest.raises(exc):
        json_pointer_get({"items": [1]}, pointer)


def test_first_present_skips_missing_and_null() -> None:
    data = {"candidates": None, "response": {"candidates": [1, 2]}}
    pointer, value = first_present(data, ("/candidates", "/response/candidates"))
    assert pointer == "/response/candidates"
    assert value == [1, 2]


def test_first_present_default() -> None:
    assert first_present({}, ("/a", "/b"), default=[]) == (None, [])
