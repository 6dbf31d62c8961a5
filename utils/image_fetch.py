"""Download an image and turn it into an inline base64 payload."""
from __future__ import annotations

import base64
import logging
import mimetypes
import posixpath
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from errors import FetchError

_LOGGER = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class ImagePayload:
    """Encoded image owned by the adapter invocation that fetched it."""

    base64_data: str
    mime_type: str

    def decode(self) -> bytes:
        return base64.b64decode(self.base64_data, validate=True)


def guess_mime_type(url: str) -> str:
    """Map the extension of *url*'s path to a MIME type.

    Only the extension is consulted; the bytes are never inspected. Anything
    without a known extension is reported as ``application/octet-stream``.
    """

    try:
        path = urlsplit(url).path
    except ValueError:
        return DEFAULT_MIME_TYPE
    ext = posixpath.splitext(path)[1].lower()
    if not ext:
        return DEFAULT_MIME_TYPE
    return mimetypes.types_map.get(ext, DEFAULT_MIME_TYPE)


def encode_image(data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> ImagePayload:
    return ImagePayload(base64.b64encode(data).decode("ascii"), mime_type)


async def fetch_image(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ImagePayload:
    """Fetch *url* and return its bytes as an :class:`ImagePayload`.

    Raises
    ------
    FetchError
        When the host is unreachable, the response status is not 2xx or the
        body transfer fails part way.
    """

    owns_client = client is None
    http = client or httpx.AsyncClient(follow_redirects=True)
    try:
        try:
            response = await http.get(url, timeout=timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"Could not download image: {exc}") from exc

        if not response.is_success:
            raise FetchError(
                f"Could not download image: HTTP {response.status_code}"
            )

        data = response.content
    finally:
        if owns_client:
            await http.aclose()

    mime_type = guess_mime_type(url)
    _LOGGER.debug("Fetched image %s (%s bytes, %s)", url, len(data), mime_type)
    return encode_image(data, mime_type)
