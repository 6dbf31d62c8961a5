"""Adapter base classes and the shared result envelope."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class AdapterResult:
    """Outcome of exactly one adapter invocation."""

    ok: bool
    text: str | None = None
    error: str | None = None
    detail: Any = None
    meta: dict[str, Any] | None = None

    @classmethod
    def success(cls, text: str, meta: dict[str, Any] | None = None) -> "AdapterResult":
        return cls(ok=True, text=text, meta=meta)

    @classmethod
    def failure(
        cls,
        error: str,
        detail: Any = None,
        meta: dict[str, Any] | None = None,
    ) -> "AdapterResult":
        return cls(ok=False, error=error, detail=detail, meta=meta)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON envelope, omitting fields that do not apply."""

        out: dict[str, Any] = {"ok": self.ok}
        if self.ok:
            out["text"] = self.text or ""
        else:
            out["error"] = self.error or "Unknown error"
            if self.detail is not None:
                out["detail"] = self.detail
        if self.meta is not None:
            out["meta"] = self.meta
        return out


class BaseAdapter(ABC):
    """Unified interface for provider adapters.

    Implementations must not raise from :meth:`invoke`; every failure is
    reported as ``AdapterResult(ok=False)``.
    """

    #: Whether the provider receives the image reference.
    accepts_image: bool = False

    @abstractmethod
    async def invoke(self, prompt: str, image_url: str | None = None) -> AdapterResult:
        """Given a prompt and optional image URL, return an :class:`AdapterResult`."""
        raise NotImplementedError
