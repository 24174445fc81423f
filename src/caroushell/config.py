"""Configuration loading for AI suggestions.

Settings live in ``~/.caroushell/config.json`` (or ``CAROUSHELL_CONFIG_PATH``)
with environment variables as fallbacks.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

CONFIG_DIR_NAME = ".caroushell"

GEMINI_DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
GEMINI_DEFAULT_MODEL = "gemini-2.5-flash-lite"


class ConfigError(Exception):
    """Raised when the config file is unreadable or incomplete."""


@dataclass
class Config:
    """Resolved AI endpoint settings."""

    api_url: str
    api_key: str
    model: str


def config_folder(subpath: str = "") -> Path:
    """Return ``~/.caroushell/<subpath>``."""
    base = Path.home() / CONFIG_DIR_NAME
    return base / subpath if subpath else base


def get_config_path() -> Path:
    env_path = os.environ.get("CAROUSHELL_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return config_folder("config.json")


def _read_config_file(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} must be a JSON object")
    return data


def does_config_exist() -> bool:
    """Return ``True`` if a non-empty, parseable config file exists."""
    path = get_config_path()
    try:
        return bool(_read_config_file(path))
    except (FileNotFoundError, json.JSONDecodeError, ConfigError):
        return False


def get_config() -> Config:
    """Resolve the AI configuration from the config file and environment.

    A lone ``GEMINI_API_KEY`` implies Gemini's OpenAI-compatible endpoint
    and default model.
    """
    path = get_config_path()
    try:
        raw = _read_config_file(path)
    except FileNotFoundError:
        raw = {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config at {path} is not valid JSON: {e}") from e

    gemini_key = raw.get("GEMINI_API_KEY") or os.environ.get("GEMINI_API_KEY")
    api_key = (
        raw.get("apiKey")
        or raw.get("GEMINI_API_KEY")
        or os.environ.get("CAROUSHELL_API_KEY")
        or os.environ.get("GEMINI_API_KEY")
    )
    api_url = raw.get("apiUrl") or os.environ.get("CAROUSHELL_API_URL")
    model = raw.get("model") or os.environ.get("CAROUSHELL_MODEL")

    if not api_url and gemini_key:
        api_url = GEMINI_DEFAULT_API_URL
    if not model and gemini_key:
        model = GEMINI_DEFAULT_MODEL

    if not api_url or not api_key or not model:
        raise ConfigError(
            f"Config at {path} is missing required fields. "
            "Please include apiUrl, apiKey, and model (or just GEMINI_API_KEY)."
        )

    return Config(api_url=api_url.rstrip("/"), api_key=api_key, model=model)


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write *config* as JSON, creating the folder if needed."""
    target = path or get_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    body = {"apiUrl": config.api_url, "apiKey": config.api_key, "model": config.model}
    target.write_text(json.dumps(body, indent=2) + "\n", encoding="utf-8")
    return target
