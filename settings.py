"""Configuration loading for SnapRelay.

The YAML file holds the tunables, the environment holds the credentials. Both
are read once at startup and frozen into a :class:`Settings` instance that is
handed explicitly to the dispatcher, the adapters and the relay client.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from errors import ConfigError

DEFAULT_PROMPT = "Can you solve this?"
IMAGEKIT_UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENROUTER_MODEL = "deepseek/deepseek-chat-v3.1:free"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
RELAY_ENDPOINT = "http://localhost:4000/"


@dataclass(frozen=True, slots=True)
class GeminiSettings:
    api_key: str | None = None
    model: str = GEMINI_MODEL
    base_url: str = GEMINI_BASE_URL
    timeout: float = 60.0
    count_tokens: bool = False


@dataclass(frozen=True, slots=True)
class OpenRouterSettings:
    api_key: str | None = None
    model: str = OPENROUTER_MODEL
    base_url: str = OPENROUTER_BASE_URL
    timeout: float = 60.0
    fallback_chars: int = 2000


@dataclass(frozen=True, slots=True)
class SimulatedSettings:
    min_delay_ms: int = 300
    max_delay_ms: int = 2800


@dataclass(frozen=True, slots=True)
class RelaySettings:
    """Client-side settings used by ``main.py ask``."""

    endpoint: str = RELAY_ENDPOINT
    timeout: float = 120.0
    imagekit_api_key: str | None = None
    upload_url: str = IMAGEKIT_UPLOAD_URL
    upload_folder: str = "cnv"


@dataclass(frozen=True, slots=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 4000
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    default_prompt: str = DEFAULT_PROMPT
    image_fetch_timeout: float = 30.0
    require_image_credential: bool = False
    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    openrouter: OpenRouterSettings = field(default_factory=OpenRouterSettings)
    simulated: SimulatedSettings = field(default_factory=SimulatedSettings)
    relay: RelaySettings = field(default_factory=RelaySettings)


def load_config(path: Path) -> dict[str, Any]:
    """Load YAML configuration from *path*; a missing file yields defaults."""

    if not path.exists():
        return {}

    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")
    return data


def _section(cfg: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = cfg.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _number(section: Mapping[str, Any], key: str, default: float, label: str) -> float:
    raw = section.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label}.{key} must be a number") from exc
    if value <= 0:
        raise ConfigError(f"{label}.{key} must be positive")
    return value


def _integer(section: Mapping[str, Any], key: str, default: int, label: str) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool):
        raise ConfigError(f"{label}.{key} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label}.{key} must be an integer") from exc


def _string(section: Mapping[str, Any], key: str, default: str, label: str) -> str:
    raw = section.get(key, default)
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(f"{label}.{key} must be a non-empty string")
    return raw.strip()


def _env(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def build_settings(cfg: Mapping[str, Any], env: Mapping[str, str] | None = None) -> Settings:
    """Validate *cfg* and merge credentials from *env* into a :class:`Settings`."""

    env = os.environ if env is None else env

    server = _section(cfg, "server")
    gemini = _section(cfg, "gemini")
    openrouter = _section(cfg, "openrouter")
    simulated = _section(cfg, "simulated")
    relay = _section(cfg, "relay")
    logging_cfg = _section(cfg, "logging")

    port = _integer(server, "port", 4000, "server")
    if _env(env, "PORT"):
        try:
            port = int(env["PORT"])
        except ValueError as exc:
            raise ConfigError("PORT must be an integer") from exc

    min_delay = _integer(simulated, "min_delay_ms", 300, "simulated")
    max_delay = _integer(simulated, "max_delay_ms", 2800, "simulated")
    if min_delay < 0 or max_delay < min_delay:
        raise ConfigError("simulated delays must satisfy 0 <= min_delay_ms <= max_delay_ms")

    default_prompt = server.get("default_prompt", DEFAULT_PROMPT)
    if not isinstance(default_prompt, str) or not default_prompt.strip():
        raise ConfigError("server.default_prompt must be a non-empty string")

    settings = Settings(
        host=_string(server, "host", "127.0.0.1", "server"),
        port=port,
        log_dir=Path(_string(logging_cfg, "dir", "logs", "logging")).expanduser(),
        log_level=_string(logging_cfg, "level", "INFO", "logging"),
        default_prompt=default_prompt.strip(),
        image_fetch_timeout=_number(server, "image_fetch_timeout", 30.0, "server"),
        require_image_credential=bool(server.get("require_image_credential", False)),
        gemini=GeminiSettings(
            api_key=_env(env, "GEMINI_API_KEY"),
            model=_string(gemini, "model", GEMINI_MODEL, "gemini"),
            base_url=_string(gemini, "base_url", GEMINI_BASE_URL, "gemini").rstrip("/"),
            timeout=_number(gemini, "timeout", 60.0, "gemini"),
            count_tokens=bool(gemini.get("count_tokens", False)),
        ),
        openrouter=OpenRouterSettings(
            api_key=_env(env, "OPENROUTER_API_KEY"),
            model=_string(openrouter, "model", OPENROUTER_MODEL, "openrouter"),
            base_url=_string(openrouter, "base_url", OPENROUTER_BASE_URL, "openrouter").rstrip("/"),
            timeout=_number(openrouter, "timeout", 60.0, "openrouter"),
            fallback_chars=_integer(openrouter, "fallback_chars", 2000, "openrouter"),
        ),
        simulated=SimulatedSettings(min_delay_ms=min_delay, max_delay_ms=max_delay),
        relay=RelaySettings(
            endpoint=_string(relay, "endpoint", RELAY_ENDPOINT, "relay"),
            timeout=_number(relay, "timeout", 120.0, "relay"),
            imagekit_api_key=_env(env, "IMAGEKIT_API_KEY"),
            upload_url=_string(relay, "upload_url", IMAGEKIT_UPLOAD_URL, "relay"),
            upload_folder=_string(relay, "upload_folder", "cnv", "relay"),
        ),
    )

    if settings.require_image_credential and not settings.gemini.api_key:
        raise ConfigError("GEMINI_API_KEY is required when server.require_image_credential is set")
    return settings
