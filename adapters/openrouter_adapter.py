"""Text-only chat adapter for OpenRouter's OpenAI-compatible endpoint."""
from __future__ import annotations

import json
import logging
from typing import Any

from openai import AsyncOpenAI

from settings import OpenRouterSettings

from .base import AdapterResult, BaseAdapter

_LOGGER = logging.getLogger(__name__)


class OpenRouterAdapter(BaseAdapter):
    """Adapter that sends the prompt as a single user message to a chat model."""

    accepts_image = False

    def __init__(self, settings: OpenRouterSettings, *, client: AsyncOpenAI | None = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            # No SDK retries: each call is attempted once and bounded by the timeout.
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=0,
            )
        return self._client

    async def invoke(self, prompt: str, image_url: str | None = None) -> AdapterResult:
        """Generate text via chat completions; ``image_url`` is ignored."""

        if not self.settings.api_key:
            return AdapterResult.failure(
                "Missing OPENROUTER_API_KEY in environment",
                meta={"error_kind": "ConfigError"},
            )

        preview = prompt[:80].replace("\n", " ")
        suffix = "..." if len(prompt) > 80 else ""
        _LOGGER.info(
            "[OpenRouterAdapter] model=%s prompt_preview='%s%s' len=%s",
            self.settings.model,
            preview,
            suffix,
            len(prompt),
        )

        try:
            response = await self._get_client().chat.completions.create(
                model=self.settings.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:  # Broad catch: SDK exposes multiple subclasses.
            status = self._extract_status_code(exc)
            _LOGGER.warning("[OpenRouterAdapter] request failed status=%s: %s", status, exc)
            return AdapterResult.failure(
                "Deepseek error",
                detail=self._format_error(exc),
                meta={"error_kind": "UpstreamError", "status_code": status},
            )

        return self._extract_result(response)

    def _extract_result(self, response: Any) -> AdapterResult:
        """Read ``choices[0].message.content``; fall back to the raw payload."""

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError):
            content = None

        usage = getattr(response, "usage", None)
        meta = usage.model_dump() if hasattr(usage, "model_dump") else None

        if isinstance(content, str) and content:
            return AdapterResult.success(content, meta=meta)

        _LOGGER.warning("[OpenRouterAdapter] unexpected response shape, returning raw payload")
        return AdapterResult.success(self._stringify(response)[: self.settings.fallback_chars], meta=meta)

    @staticmethod
    def _stringify(response: Any) -> str:
        if hasattr(response, "model_dump"):
            try:
                return json.dumps(response.model_dump(), ensure_ascii=False, default=str)
            except Exception:
                _LOGGER.debug("[OpenRouterAdapter] model_dump fallback", exc_info=True)
        return str(response)

    @staticmethod
    def _extract_status_code(exc: Exception) -> int | None:
        """Attempt to get HTTP status code from an SDK exception."""

        status = getattr(exc, "status_code", None)
        if isinstance(status, int):
            return status

        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status
        return None

    @staticmethod
    def _format_error(exc: Exception) -> Any:
        """Prefer the upstream error body; otherwise the exception text."""

        body = getattr(exc, "body", None)
        if body is not None:
            return body
        return str(exc)[:1024]
