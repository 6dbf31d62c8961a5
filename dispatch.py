"""Dispatch a prompt to one provider or fan it out to several."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from adapters import AdapterResult, BaseAdapter
from errors import InternalError, RelayError, UnsupportedProvider
from providers import ProviderCode
from settings import DEFAULT_PROMPT

_LOGGER = logging.getLogger(__name__)

FAN_OUT_MARKER = "all"


@dataclass(frozen=True, slots=True)
class Request:
    """A normalized relay request."""

    prompt: str
    image_url: str | None = None
    provider: ProviderCode | None = None

    @classmethod
    def from_payload(
        cls, body: Mapping[str, Any], default_prompt: str = DEFAULT_PROMPT
    ) -> "Request":
        """Build a request from a decoded JSON body.

        A missing or blank ``prompt`` becomes *default_prompt*; a blank
        ``image_url`` means no image; a missing, blank or ``"all"`` ``model``
        asks for a fan-out. Any other unknown ``model`` raises
        :class:`UnsupportedProvider`.
        """

        raw_prompt = body.get("prompt")
        prompt = "" if raw_prompt is None else str(raw_prompt).strip()

        raw_image = body.get("image_url")
        image_url = str(raw_image).strip() if raw_image else ""

        raw_model = body.get("model")
        provider = None
        if raw_model is not None and str(raw_model).strip().lower() not in ("", FAN_OUT_MARKER):
            provider = ProviderCode.parse(raw_model)

        return cls(
            prompt=prompt or default_prompt,
            image_url=image_url or None,
            provider=provider,
        )

    def echo(self, include_image: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {"prompt": self.prompt}
        if include_image:
            out["image_url"] = self.image_url or ""
        return out


def _normalize_outcome(outcome: AdapterResult | BaseException) -> dict[str, Any]:
    if isinstance(outcome, AdapterResult):
        return outcome.to_dict()
    return {"ok": False, "error": "Request failed", "detail": str(outcome) or type(outcome).__name__}


class Dispatcher:
    """Route requests to the registered adapters."""

    def __init__(self, adapters: Mapping[ProviderCode, BaseAdapter]):
        self.adapters = dict(adapters)

    def _adapter_for(self, code: ProviderCode) -> BaseAdapter:
        try:
            return self.adapters[code]
        except KeyError:
            raise UnsupportedProvider(code.value if isinstance(code, ProviderCode) else code) from None

    async def dispatch(self, request: Request) -> dict[str, Any]:
        """Serve *request*: one provider when it names one, otherwise all of them."""

        try:
            if request.provider is not None:
                return await self.dispatch_one(request, request.provider)
            return await self.fan_out(request)
        except RelayError:
            raise
        except Exception as exc:
            _LOGGER.exception("Dispatch failed")
            raise InternalError("Internal error", detail=str(exc)) from exc

    async def dispatch_one(self, request: Request, code: ProviderCode) -> dict[str, Any]:
        """Invoke a single adapter and flatten its result with the provider name."""

        adapter = self._adapter_for(code)
        started = time.monotonic()
        image_url = request.image_url if adapter.accepts_image else None
        result = await adapter.invoke(request.prompt, image_url)
        _LOGGER.info(
            "%s answered ok=%s in %.2fs", code.display_name, result.ok, time.monotonic() - started
        )
        return {
            "model": code.value,
            "name": code.display_name,
            "request": request.echo(include_image=adapter.accepts_image),
            **result.to_dict(),
        }

    async def fan_out(
        self, request: Request, codes: Iterable[ProviderCode] | None = None
    ) -> dict[str, Any]:
        """Invoke every selected adapter concurrently and wait for all of them.

        The ``results`` mapping holds exactly one entry per selected code; an
        adapter that raises is reported as a failed entry without affecting
        the others.
        """

        selected = list(dict.fromkeys(codes)) if codes is not None else list(self.adapters)
        adapters = [(code, self._adapter_for(code)) for code in selected]

        started = time.monotonic()
        tasks = [
            asyncio.ensure_future(
                adapter.invoke(request.prompt, request.image_url if adapter.accepts_image else None)
            )
            for _, adapter in adapters
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: dict[str, Any] = {}
        for (code, _), outcome in zip(adapters, outcomes):
            if isinstance(outcome, BaseException):
                _LOGGER.warning("%s raised during fan-out: %r", code.display_name, outcome)
            results[code.value] = _normalize_outcome(outcome)

        _LOGGER.info(
            "Fan-out to %s finished in %.2fs (ok=%s)",
            ",".join(code.value for code in selected),
            time.monotonic() - started,
            sum(1 for item in results.values() if item.get("ok")),
        )
        return {
            "ok": True,
            "request": {**request.echo(), "model": FAN_OUT_MARKER},
            "results": results,
        }
