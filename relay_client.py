"""Client side of the relay: screenshot upload and per-provider requests.

This is the non-UI half of the capture script. It uploads a captured image
to ImageKit and then asks the relay server once per provider, reporting each
answer as soon as it lands instead of waiting for the slowest provider.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

from providers import ProviderCode, split_codes
from settings import IMAGEKIT_UPLOAD_URL, RELAY_ENDPOINT

_LOGGER = logging.getLogger(__name__)

Observer = Callable[[ProviderCode, dict[str, Any]], Optional[Awaitable[None]]]


async def upload_image(
    data: bytes,
    *,
    api_key: str | None,
    upload_url: str = IMAGEKIT_UPLOAD_URL,
    folder: str = "cnv",
    file_name: str = "screenshot.png",
    client: httpx.AsyncClient | None = None,
    timeout: float = 60.0,
) -> str | None:
    """Upload *data* to ImageKit and return the hosted URL.

    Returns ``None`` when no API key is configured or the upload fails; the
    caller then continues without an image.
    """

    if not api_key:
        _LOGGER.warning("IMAGEKIT_API_KEY not set; continuing without an image")
        return None

    owns_client = client is None
    http = client or httpx.AsyncClient()
    try:
        response = await http.post(
            upload_url,
            auth=(api_key, ""),
            files={"file": (file_name, data, "image/png")},
            data={"fileName": file_name, "folder": folder},
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        _LOGGER.error("Screenshot upload failed: %s", exc)
        return None
    finally:
        if owns_client:
            await http.aclose()

    if not response.is_success:
        _LOGGER.error("Screenshot upload failed: HTTP %s %s", response.status_code, response.text[:512])
        return None

    try:
        url = response.json().get("url")
    except (ValueError, AttributeError):
        _LOGGER.error("Screenshot upload returned an unreadable body")
        return None

    if not isinstance(url, str) or not url:
        _LOGGER.error("Screenshot upload response carried no url")
        return None
    _LOGGER.info("Screenshot uploaded: %s", url)
    return url


class RelayClient:
    """Talks to a running relay server."""

    def __init__(
        self,
        endpoint: str = RELAY_ENDPOINT,
        *,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    async def _post(self, http: httpx.AsyncClient, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await http.post(self.endpoint, json=body, timeout=self.timeout)
        except httpx.HTTPError as exc:
            return {"ok": False, "error": f"Relay request failed: {exc}"}

        try:
            reply = response.json()
        except ValueError:
            return {"ok": False, "status": response.status_code, "raw": response.text}
        if not isinstance(reply, dict):
            return {"ok": False, "status": response.status_code, "raw": reply}
        return reply

    async def _with_client(self, body: dict[str, Any]) -> dict[str, Any]:
        if self._client is not None:
            return await self._post(self._client, body)
        async with httpx.AsyncClient() as http:
            return await self._post(http, body)

    async def ask(
        self, prompt: str, code: ProviderCode | str | None, image_url: str | None = None
    ) -> dict[str, Any]:
        """Send one request; ``code=None`` asks the server for a fan-out.

        An empty *prompt* is sent as-is; the server substitutes its default.
        """

        body: dict[str, Any] = {"prompt": prompt or "", "image_url": image_url or ""}
        if code is not None:
            body["model"] = code.value if isinstance(code, ProviderCode) else str(code)
        return await self._with_client(body)

    async def send_independent(
        self,
        prompt: str,
        codes: Iterable[str] | None = None,
        image_url: str | None = None,
        observer: Observer | None = None,
    ) -> dict[ProviderCode, dict[str, Any]]:
        """Ask each provider in its own request, reporting replies as they land.

        Unknown codes are logged and skipped. *observer* is called once per
        provider in completion order; the returned mapping holds every reply
        once all requests have finished.
        """

        requested = list(codes) if codes else [code.value for code in ProviderCode]
        valid, _invalid = split_codes(requested)
        if not valid:
            _LOGGER.warning("No request sent: no valid provider was requested")
            return {}

        async def run(code: ProviderCode) -> tuple[ProviderCode, dict[str, Any]]:
            _LOGGER.info("-> Sending to %s", code.display_name)
            try:
                return code, await self.ask(prompt, code, image_url)
            except Exception as exc:
                _LOGGER.exception("%s request failed", code.display_name)
                return code, {"ok": False, "error": f"Relay request failed: {exc}"}

        replies: dict[ProviderCode, dict[str, Any]] = {}
        for finished in asyncio.as_completed([run(code) for code in valid]):
            code, reply = await finished
            replies[code] = reply
            _LOGGER.info("%s answered ok=%s", code.display_name, reply.get("ok"))
            if observer is not None:
                maybe = observer(code, reply)
                if asyncio.iscoroutine(maybe):
                    await maybe
        return replies
