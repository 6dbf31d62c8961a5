"""Simulated adapter standing in for a provider that is not wired up yet."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

from settings import SimulatedSettings

from .base import AdapterResult, BaseAdapter

_LOGGER = logging.getLogger(__name__)


class SimulatedAdapter(BaseAdapter):
    """Answers after a random delay without contacting any service."""

    accepts_image = True

    def __init__(
        self,
        settings: SimulatedSettings | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.settings = settings or SimulatedSettings()
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def invoke(self, prompt: str, image_url: str | None = None) -> AdapterResult:
        try:
            wait_ms = self._rng.randint(self.settings.min_delay_ms, self.settings.max_delay_ms)
            await self._sleep(wait_ms / 1000)
        except Exception as exc:
            _LOGGER.exception("[SimulatedAdapter] delay failed")
            return AdapterResult.failure("ChatGPT simulation error", detail=str(exc))

        _LOGGER.info("[SimulatedAdapter] answered after %sms", wait_ms)
        return AdapterResult.success(
            self.render(prompt, image_url),
            meta={"simulated": True, "latency_ms": wait_ms},
        )

    @staticmethod
    def render(prompt: str, image_url: str | None = None) -> str:
        """Return the fixed response text for *prompt* and *image_url*."""

        text = f'Simulated ChatGPT response to: "{prompt}"'
        if image_url:
            text += f"\n[Simulation detected an image at: {image_url}]"
        text += "\n\n(Note: this is a simulated response; no real API is connected.)"
        return text
