"""HTTP surface of the relay: a single ``POST /`` plus two read-only helpers."""
from __future__ import annotations

import json
import logging

from fastapi import FastAPI, Request as HTTPRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters import build_adapters
from dispatch import Dispatcher, Request
from errors import InternalError, ValidationError
from providers import ProviderCode
from settings import Settings

_LOGGER = logging.getLogger(__name__)


def _error(status_code: int, error: str, detail: object = None) -> JSONResponse:
    body: dict[str, object] = {"ok": False, "error": error}
    if detail is not None:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def create_app(settings: Settings, dispatcher: Dispatcher | None = None) -> FastAPI:
    """Build the FastAPI application serving *dispatcher*.

    When *dispatcher* is omitted, one adapter per known provider is built from
    *settings*.
    """

    dispatcher = dispatcher or Dispatcher(build_adapters(settings))

    app = FastAPI(title="SnapRelay")
    # The capture script runs inside arbitrary pages, so any origin may call us.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    @app.get("/providers")
    async def providers() -> dict:
        return {code.value: code.display_name for code in ProviderCode}

    @app.post("/")
    async def relay(http_request: HTTPRequest) -> JSONResponse:
        raw = await http_request.body()
        try:
            body = json.loads(raw) if raw.strip() else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Request body must be valid JSON")
        if not isinstance(body, dict):
            return _error(400, "Request body must be a JSON object")

        try:
            request = Request.from_payload(body, default_prompt=settings.default_prompt)
            _LOGGER.info(
                "Relay request model=%s image=%s prompt_len=%s",
                request.provider.value if request.provider else "all",
                bool(request.image_url),
                len(request.prompt),
            )
            payload = await dispatcher.dispatch(request)
        except ValidationError as exc:
            _LOGGER.info("Rejected request: %s", exc)
            return _error(400, str(exc))
        except InternalError as exc:
            return _error(500, str(exc), exc.detail)
        except Exception as exc:  # pragma: no cover - defensive top-level guard
            _LOGGER.exception("Unhandled relay failure")
            return _error(500, "Internal error", str(exc))

        return JSONResponse(content=payload)

    return app
