"""Tests for the provider adapters."""
from __future__ import annotations

import base64
import json
import random
from dataclasses import replace
from types import SimpleNamespace

import httpx
import pytest
from pytest_httpx import HTTPXMock

from adapters import GeminiAdapter, OpenRouterAdapter, SimulatedAdapter, build_adapters, make_adapter
from errors import UnsupportedProvider
from providers import ProviderCode
from settings import GeminiSettings, OpenRouterSettings, Settings, SimulatedSettings

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash"
GENERATE_URL = f"{GEMINI_BASE}:generateContent"
COUNT_URL = f"{GEMINI_BASE}:countTokens"
IMAGE_URL = "https://img.example.com/shot.png"


def _gemini(settings: Settings, **overrides) -> GeminiAdapter:
    return GeminiAdapter(replace(settings.gemini, **overrides))


class TestGeminiAdapter:
    async def test_missing_key_is_reported_not_raised(self) -> None:
        result = await GeminiAdapter(GeminiSettings(api_key=None)).invoke("hello")

        assert result.ok is False
        assert "GEMINI_API_KEY" in result.error
        assert result.meta == {"error_kind": "ConfigError"}

    async def test_joins_trimmed_text_parts(self, settings: Settings, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=GENERATE_URL,
            method="POST",
            json={
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"text": "  first  "},
                                {"text": "   "},
                                {"inline_data": {"mime_type": "image/png", "data": "AA=="}},
                                {"text": None},
                                {"text": "second\n"},
                            ]
                        },
                        "finishReason": "STOP",
                    },
                    {"content": {"parts": [{"text": "ignored"}]}},
                ]
            },
        )

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is True
        assert result.text == "first\n\nsecond"
        assert result.meta["finish_reason"] == "STOP"
        assert result.meta["has_inline_data"] is True

        request = httpx_mock.get_request(url=GENERATE_URL)
        assert request.headers["x-goog-api-key"] == "gemini-test-key"
        body = json.loads(request.read())
        assert body["contents"] == [{"parts": [{"text": "hello"}]}]
        assert body["generationConfig"] == {"responseModalities": ["TEXT"]}

    async def test_zero_candidates_is_success_with_note(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=GENERATE_URL, method="POST", json={"candidates": []})

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is True
        assert result.text == ""
        assert result.meta["note"] == "No candidates"
        assert result.to_dict()["ok"] is True

    async def test_missing_candidates_key_is_treated_as_empty(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=GENERATE_URL, method="POST", json={"promptFeedback": {"blockReason": "SAFETY"}}
        )

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is True
        assert result.text == ""
        assert result.meta["debug"] == {"promptFeedback": {"blockReason": "SAFETY"}}

    async def test_reads_nested_candidate_layout(self, settings: Settings, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=GENERATE_URL,
            method="POST",
            json={"response": {"candidates": [{"content": {"parts": [{"text": "nested"}]}}]}},
        )

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.text == "nested"

    async def test_candidates_of_wrong_type_fail(self, settings: Settings, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=GENERATE_URL, method="POST", json={"candidates": "oops"})

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is False
        assert result.meta["error_kind"] == "UpstreamError"

    async def test_http_error_becomes_failed_result(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=GENERATE_URL, method="POST", status_code=500, json={"error": {"message": "boom"}}
        )

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is False
        assert result.error.startswith("Gemini error: HTTP 500")
        assert result.detail == 500

    async def test_network_error_becomes_failed_result(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=GENERATE_URL)

        result = await GeminiAdapter(settings.gemini).invoke("hello")

        assert result.ok is False
        assert result.meta["error_kind"] == "UpstreamError"

    async def test_inlines_fetched_image(self, settings: Settings, httpx_mock: HTTPXMock) -> None:
        image_bytes = b"\x89PNG-bytes"
        httpx_mock.add_response(url=IMAGE_URL, content=image_bytes)
        httpx_mock.add_response(
            url=GENERATE_URL,
            method="POST",
            json={"candidates": [{"content": {"parts": [{"text": "I see a picture"}]}}]},
        )

        result = await GeminiAdapter(settings.gemini).invoke("describe", IMAGE_URL)

        assert result.ok is True
        body = json.loads(httpx_mock.get_request(url=GENERATE_URL).read())
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"text": "describe"}
        assert parts[1]["inline_data"]["mime_type"] == "image/png"
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == image_bytes

    async def test_unreachable_image_fails_with_fetch_error(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("no route to host"), url=IMAGE_URL)

        result = await GeminiAdapter(settings.gemini).invoke("describe", IMAGE_URL)

        assert result.ok is False
        assert "Could not download image" in result.error
        assert result.meta["error_kind"] == "FetchError"
        assert httpx_mock.get_request(url=GENERATE_URL) is None

    async def test_count_tokens_reported_in_meta(self, settings: Settings, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=COUNT_URL, method="POST", json={"totalTokens": 17})
        httpx_mock.add_response(
            url=GENERATE_URL,
            method="POST",
            json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]},
        )

        result = await _gemini(settings, count_tokens=True).invoke("hello")

        assert result.ok is True
        assert result.meta["total_tokens"] == 17

    async def test_count_tokens_failure_does_not_fail_generation(
        self, settings: Settings, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=COUNT_URL, method="POST", status_code=503)
        httpx_mock.add_response(
            url=GENERATE_URL,
            method="POST",
            json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]},
        )

        result = await _gemini(settings, count_tokens=True).invoke("hello")

        assert result.ok is True
        assert "total_tokens" not in result.meta


class TestOpenRouterAdapter:
    async def test_missing_key_is_reported_not_raised(self) -> None:
        result = await OpenRouterAdapter(OpenRouterSettings(api_key=None)).invoke("hello")

        assert result.ok is False
        assert "OPENROUTER_API_KEY" in result.error

    async def test_returns_first_choice_content(self, settings: Settings) -> None:
        calls: list[dict] = []

        async def create(**kwargs: object) -> SimpleNamespace:
            calls.append(kwargs)
            message = SimpleNamespace(role="assistant", content="The answer is 4.")
            usage = SimpleNamespace(
                model_dump=lambda: {"prompt_tokens": 5, "completion_tokens": 6, "total_tokens": 11}
            )
            return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)

        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

        result = await OpenRouterAdapter(settings.openrouter, client=client).invoke("2+2?", IMAGE_URL)

        assert result.ok is True
        assert result.text == "The answer is 4."
        assert result.meta["total_tokens"] == 11
        assert calls == [
            {
                "model": "deepseek/deepseek-chat-v3.1:free",
                "messages": [{"role": "user", "content": "2+2?"}],
            }
        ]

    async def test_upstream_error_is_reported(self, settings: Settings) -> None:
        class RateLimited(Exception):
            status_code = 429
            body = {"message": "rate limited", "code": 429}

        async def create(**_: object) -> SimpleNamespace:
            raise RateLimited("Error code: 429")

        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

        result = await OpenRouterAdapter(settings.openrouter, client=client).invoke("hello")

        assert result.ok is False
        assert result.error == "Deepseek error"
        assert result.detail == {"message": "rate limited", "code": 429}
        assert result.meta == {"error_kind": "UpstreamError", "status_code": 429}

    async def test_builds_sdk_client_against_openrouter(self, settings: Settings) -> None:
        client = OpenRouterAdapter(settings.openrouter)._get_client()

        assert str(client.base_url).rstrip("/") == "https://openrouter.ai/api/v1"
        assert client.max_retries == 0
        assert client.api_key == "openrouter-test-key"

    async def test_unexpected_shape_falls_back_to_raw_text(self, settings: Settings) -> None:
        async def create(**_: object) -> SimpleNamespace:
            return SimpleNamespace(choices=[], usage=None, note="x" * 50)

        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        adapter = OpenRouterAdapter(replace(settings.openrouter, fallback_chars=20), client=client)

        result = await adapter.invoke("hello")

        assert result.ok is True
        assert result.text.startswith("namespace(")
        assert len(result.text) == 20


class TestSimulatedAdapter:
    async def test_waits_within_range_and_echoes_inputs(self) -> None:
        waits: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            waits.append(seconds)

        adapter = SimulatedAdapter(
            SimulatedSettings(min_delay_ms=300, max_delay_ms=2800),
            rng=random.Random(7),
            sleep=fake_sleep,
        )

        result = await adapter.invoke("solve x", IMAGE_URL)

        assert result.ok is True
        assert 300 <= result.meta["latency_ms"] <= 2800
        assert waits == [result.meta["latency_ms"] / 1000]
        assert result.meta["simulated"] is True
        assert 'Simulated ChatGPT response to: "solve x"' in result.text
        assert IMAGE_URL in result.text

    async def test_text_is_deterministic(self) -> None:
        adapter = SimulatedAdapter(SimulatedSettings(min_delay_ms=0, max_delay_ms=0))

        first = await adapter.invoke("same")
        second = await adapter.invoke("same")

        assert first.text == second.text
        assert "image" not in first.text


class TestFactory:
    def test_builds_one_adapter_per_code(self, settings: Settings) -> None:
        adapters = build_adapters(settings)

        assert set(adapters) == set(ProviderCode)
        assert isinstance(adapters[ProviderCode.GEMINI], GeminiAdapter)
        assert isinstance(adapters[ProviderCode.CHATGPT], SimulatedAdapter)
        assert isinstance(adapters[ProviderCode.DEEPSEEK], OpenRouterAdapter)

    def test_unknown_code_is_rejected(self, settings: Settings) -> None:
        with pytest.raises(UnsupportedProvider):
            make_adapter("x", settings)
