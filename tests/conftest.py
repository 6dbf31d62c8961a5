"""Shared fixtures: settings with fake credentials and scriptable adapters."""
from __future__ import annotations

import asyncio
from typing import Any

import pytest

from adapters import AdapterResult, BaseAdapter
from settings import GeminiSettings, OpenRouterSettings, Settings, SimulatedSettings


class FakeAdapter(BaseAdapter):
    """Adapter double that records calls and returns or raises on demand."""

    def __init__(
        self,
        result: AdapterResult | None = None,
        *,
        raises: BaseException | None = None,
        accepts_image: bool = True,
        delay: float = 0.0,
    ):
        self.result = result or AdapterResult.success("fake answer")
        self.raises = raises
        self.accepts_image = accepts_image
        self.delay = delay
        self.calls: list[tuple[str, Any]] = []

    async def invoke(self, prompt: str, image_url: str | None = None) -> AdapterResult:
        self.calls.append((prompt, image_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return self.result


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini=GeminiSettings(api_key="gemini-test-key"),
        openrouter=OpenRouterSettings(api_key="openrouter-test-key"),
        simulated=SimulatedSettings(min_delay_ms=0, max_delay_ms=0),
    )
