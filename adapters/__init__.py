"""Adapter factory used by SnapRelay."""
from __future__ import annotations

from providers import ProviderCode
from settings import Settings

from .base import AdapterResult, BaseAdapter
from .gemini_adapter import GeminiAdapter
from .openrouter_adapter import OpenRouterAdapter
from .simulated_adapter import SimulatedAdapter

__all__ = [
    "AdapterResult",
    "BaseAdapter",
    "GeminiAdapter",
    "OpenRouterAdapter",
    "SimulatedAdapter",
    "build_adapters",
    "make_adapter",
]


def make_adapter(code: ProviderCode | str, settings: Settings) -> BaseAdapter:
    """Return the adapter serving provider *code*.

    Parameters
    ----------
    code:
        Provider code (``"g"``, ``"c"`` or ``"d"``) or :class:`ProviderCode`.
    settings:
        Process-wide settings. Each adapter receives only its own section.
    """

    provider = ProviderCode.parse(code)
    if provider is ProviderCode.GEMINI:
        return GeminiAdapter(settings.gemini, image_timeout=settings.image_fetch_timeout)
    if provider is ProviderCode.DEEPSEEK:
        return OpenRouterAdapter(settings.openrouter)
    return SimulatedAdapter(settings.simulated)


def build_adapters(settings: Settings) -> dict[ProviderCode, BaseAdapter]:
    """Instantiate one adapter per known provider code."""

    return {code: make_adapter(code, settings) for code in ProviderCode}
