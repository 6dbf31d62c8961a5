"""SnapRelay entry point: run the relay server or ask it from the command line."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import platform
import sys
import time
from pathlib import Path
from typing import Any

import uvicorn
from dotenv import load_dotenv

from providers import ProviderCode
from relay_client import RelayClient, upload_image
from server import create_app
from settings import Settings, build_settings, load_config

APP_NAME = "SnapRelay"
APP_VERSION = "0.3.0"


def setup_logger(log_dir: Path, level: str = "INFO") -> None:
    """Initialize console and dated file logging handlers."""

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"relay-{time.strftime('%Y%m%d')}.log"

    fmt = "%(asctime)s [%(levelname)s] %(message)s"
    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file, encoding="utf-8"),
    ]
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        handlers=handlers,
        force=True,
    )


def print_boot_info(settings: Settings, config_path: Path) -> None:
    """Log boot information for troubleshooting purposes."""

    logging.info("%s v%s starting", APP_NAME, APP_VERSION)
    logging.info(
        "Python: %s | OS: %s %s",
        platform.python_version(),
        platform.system(),
        platform.release(),
    )
    logging.info("Config file: %s", config_path.resolve())
    logging.info(
        "Credentials: gemini=%s | openrouter=%s | imagekit=%s",
        "set" if settings.gemini.api_key else "missing",
        "set" if settings.openrouter.api_key else "missing",
        "set" if settings.relay.imagekit_api_key else "missing",
    )
    logging.info(
        "Models: gemini=%s | openrouter=%s | simulated delay=%s-%sms",
        settings.gemini.model,
        settings.openrouter.model,
        settings.simulated.min_delay_ms,
        settings.simulated.max_delay_ms,
    )


def _print_reply(code: ProviderCode | None, reply: dict[str, Any]) -> None:
    label = code.display_name if code else "ALL"
    print(f"===== {label} (ok={reply.get('ok')}) =====")
    if code is not None and reply.get("text"):
        print(reply["text"])
    else:
        print(json.dumps(reply, ensure_ascii=False, indent=2))
    print()


async def run_ask(settings: Settings, args: argparse.Namespace) -> int:
    """Upload the optional screenshot, then relay the prompt to the chosen providers."""

    image_url = args.image_url
    if args.image:
        data = Path(args.image).expanduser().read_bytes()
        image_url = await upload_image(
            data,
            api_key=settings.relay.imagekit_api_key,
            upload_url=settings.relay.upload_url,
            folder=settings.relay.upload_folder,
            file_name=Path(args.image).name,
        )
        if image_url:
            logging.info("Image URL: %s", image_url)
        else:
            logging.info("No image URL obtained; continuing without an image")

    client = RelayClient(args.endpoint or settings.relay.endpoint, timeout=settings.relay.timeout)
    if args.all:
        reply = await client.ask(args.prompt, None, image_url)
        _print_reply(None, reply)
        return 0 if reply.get("ok") else 1

    replies = await client.send_independent(
        args.prompt, args.models, image_url, observer=_print_reply
    )
    return 0 if replies else 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description="SnapRelay - multi-provider prompt relay")
    parser.add_argument("--config", default="config.yaml", help="Config file path (default config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the relay HTTP server")
    serve.add_argument("--host", help="Override server.host")
    serve.add_argument("--port", type=int, help="Override server.port / PORT")

    ask = sub.add_parser("ask", help="Send a prompt to a running relay server")
    ask.add_argument("prompt", nargs="?", default="", help="Prompt text (blank uses the server default)")
    image = ask.add_mutually_exclusive_group()
    image.add_argument("--image", help="Screenshot file to upload to ImageKit first")
    image.add_argument("--image-url", help="Already hosted image URL")
    ask.add_argument(
        "-m",
        "--model",
        dest="models",
        action="append",
        help="Provider code (g, c, d); repeatable, defaults to all",
    )
    ask.add_argument("--all", action="store_true", help="Ask the server for one combined fan-out")
    ask.add_argument("--endpoint", help="Override relay.endpoint")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entry point used by ``python main.py``."""

    try:
        load_dotenv()
        args = parse_args(argv)
        config_path = Path(args.config)
        settings = build_settings(load_config(config_path))

        setup_logger(settings.log_dir, level=settings.log_level)
        print_boot_info(settings, config_path)

        if args.command == "ask":
            return asyncio.run(run_ask(settings, args))

        host = args.host or settings.host
        port = args.port or settings.port
        logging.info("Single route: POST http://%s:%s/ (JSON body: prompt, image_url, model)", host, port)
        uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
        return 0
    except Exception as exc:
        logging.debug("Unhandled error in main", exc_info=True)
        print(f"{APP_NAME} failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
