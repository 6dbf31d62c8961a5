"""Gemini adapter calling the Generative Language ``generateContent`` endpoint."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from errors import FetchError, UpstreamError
from settings import GeminiSettings
from utils.image_fetch import DEFAULT_TIMEOUT, fetch_image
from utils.jsonptr import first_present

from .base import AdapterResult, BaseAdapter

_LOGGER = logging.getLogger(__name__)

# Response layouts observed across API revisions; the first hit wins.
CANDIDATE_POINTERS = (
    "/candidates",
    "/response/candidates",
    "/response/output/candidates",
    "/output/candidates",
)
_SNIPPET_CHARS = 512


def _preview(text: str, limit: int = 80) -> str:
    flat = text[:limit].replace("\n", " ")
    return flat + ("..." if len(text) > limit else "")


def _has_inline_data(part: Any) -> bool:
    return isinstance(part, dict) and ("inline_data" in part or "inlineData" in part)


class GeminiAdapter(BaseAdapter):
    """Adapter that sends the prompt, and optionally an inlined image, to Gemini."""

    accepts_image = True

    def __init__(
        self,
        settings: GeminiSettings,
        *,
        image_timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.image_timeout = image_timeout
        self._client = client

    async def invoke(self, prompt: str, image_url: str | None = None) -> AdapterResult:
        """Generate text with Gemini; never propagates exceptions to the caller."""

        if not self.settings.api_key:
            return AdapterResult.failure(
                "Missing GEMINI_API_KEY in environment",
                meta={"error_kind": "ConfigError"},
            )

        _LOGGER.info(
            "[GeminiAdapter] model=%s image=%s prompt_preview='%s' len=%s",
            self.settings.model,
            bool(image_url),
            _preview(prompt),
            len(prompt),
        )

        try:
            return await self._invoke_impl(prompt, image_url)
        except (FetchError, UpstreamError) as exc:
            _LOGGER.warning("[GeminiAdapter] %s: %s", type(exc).__name__, exc)
            return AdapterResult.failure(
                f"Gemini error: {exc}",
                detail=getattr(exc, "status_code", None),
                meta={"error_kind": type(exc).__name__},
            )
        except Exception as exc:  # pragma: no cover - defensive top-level guard
            _LOGGER.exception("[GeminiAdapter] invoke fatal error")
            return AdapterResult.failure(
                f"Gemini error: {exc}",
                meta={"error_kind": type(exc).__name__},
            )

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(follow_redirects=True) as client:
            yield client

    async def _invoke_impl(self, prompt: str, image_url: str | None) -> AdapterResult:
        async with self._http() as http:
            contents = await self._build_contents(http, prompt, image_url)

            total_tokens = None
            if self.settings.count_tokens:
                total_tokens = await self._count_tokens(http, contents)

            data = await self._post(
                http,
                "generateContent",
                {
                    "contents": contents,
                    "generationConfig": {"responseModalities": ["TEXT"]},
                },
            )

        return self._parse(data, total_tokens)

    async def _build_contents(
        self, http: httpx.AsyncClient, prompt: str, image_url: str | None
    ) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if image_url:
            image = await fetch_image(image_url, client=http, timeout=self.image_timeout)
            parts.append(
                {"inline_data": {"mime_type": image.mime_type, "data": image.base64_data}}
            )
        return [{"parts": parts}]

    async def _count_tokens(
        self, http: httpx.AsyncClient, contents: list[dict[str, Any]]
    ) -> int | None:
        """Return the prompt token count, or ``None`` when counting fails."""

        try:
            data = await self._post(http, "countTokens", {"contents": contents})
        except UpstreamError as exc:
            _LOGGER.warning("[GeminiAdapter] countTokens failed: %s", exc)
            return None
        total = data.get("totalTokens")
        _LOGGER.info("[GeminiAdapter] countTokens=%s", total)
        return total if isinstance(total, int) else None

    async def _post(
        self, http: httpx.AsyncClient, method: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        url = f"{self.settings.base_url}/models/{self.settings.model}:{method}"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.settings.api_key or "",
        }
        try:
            response = await http.post(
                url, json=payload, headers=headers, timeout=self.settings.timeout
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"request failed: {exc}") from exc

        if not response.is_success:
            snippet = response.text[:_SNIPPET_CHARS]
            raise UpstreamError(
                f"HTTP {response.status_code} | {snippet}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            snippet = response.text[:_SNIPPET_CHARS]
            raise UpstreamError(f"response is not JSON: {exc} | {snippet}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(f"expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _parse(data: dict[str, Any], total_tokens: int | None = None) -> AdapterResult:
        """Turn a ``generateContent`` body into an :class:`AdapterResult`."""

        pointer, candidates = first_present(data, CANDIDATE_POINTERS, default=[])
        if not isinstance(candidates, list):
            raise UpstreamError(
                f"candidates at {pointer} is a {type(candidates).__name__}, not a list"
            )

        meta: dict[str, Any] = {}
        if total_tokens is not None:
            meta["total_tokens"] = total_tokens

        if not candidates:
            _LOGGER.warning("[GeminiAdapter] response carried no candidates")
            meta.update({"note": "No candidates", "debug": data})
            return AdapterResult.success("", meta=meta)

        first = candidates[0]
        if not isinstance(first, dict):
            raise UpstreamError("first candidate is not an object")

        _, parts = first_present(first, ("/content/parts",), default=[])
        if not isinstance(parts, list):
            raise UpstreamError("candidate content.parts is not a list")

        texts = [
            part["text"].strip()
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        meta["finish_reason"] = first.get("finishReason")
        meta["has_inline_data"] = any(_has_inline_data(part) for part in parts)
        return AdapterResult.success("\n\n".join(text for text in texts if text), meta=meta)
