"""First-run walkthrough that writes an AI config file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
import httpx

from caroushell.ai_suggester import list_models
from caroushell.config import GEMINI_DEFAULT_API_URL, GEMINI_DEFAULT_MODEL, Config, save_config

logger = logging.getLogger(__name__)

OPENROUTER_API_URL = "https://openrouter.ai/api/v1"


def _prompt(text: str, default: str = "") -> str:
    return click.prompt(text, default=default, show_default=bool(default)).strip()


def _choose_model(models: list[str], default: str) -> str:
    if not models:
        return _prompt("Model name", default)
    shown = models[:20]
    for i, name in enumerate(shown, 1):
        click.echo(f"  {i:2}. {name}")
    if len(models) > len(shown):
        click.echo(f"  ... and {len(models) - len(shown)} more")
    choice = _prompt("Pick a model by number or name", default or shown[0])
    if choice.isdigit() and 1 <= int(choice) <= len(shown):
        return shown[int(choice) - 1]
    return choice


async def run_hello_new_user_flow(config_path: Path) -> Path | None:
    """Ask for an endpoint, key and model, then save them to *config_path*.

    Leaving the URL blank skips setup: an empty config is written so the
    walkthrough does not run again, and caroushell runs without AI
    suggestions.  Returns the written path, or ``None`` when skipped.
    """
    click.echo("Welcome to caroushell!")
    click.echo("AI suggestions need an OpenAI-compatible endpoint, for example:")
    click.echo(f"  Gemini:     {GEMINI_DEFAULT_API_URL}")
    click.echo(f"  OpenRouter: {OPENROUTER_API_URL}")
    click.echo("Leave the URL blank to skip AI suggestions for now.")

    api_url = await asyncio.to_thread(_prompt, "API URL", "")
    if not api_url:
        # An empty config marks setup as done
        save_config(Config(api_url="", api_key="", model=""), config_path)
        click.echo("Skipping AI setup.")
        return None
    api_url = api_url.rstrip("/")
    api_key = ""
    while not api_key:
        api_key = await asyncio.to_thread(_prompt, "API key", "")
        if not api_key:
            click.echo("An API key is required.")

    try:
        models = await list_models(api_url, api_key)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Listing models at %s failed: %s", api_url, e)
        click.echo(f"Could not list models: {e}")
        models = []

    default_model = GEMINI_DEFAULT_MODEL if api_url == GEMINI_DEFAULT_API_URL else ""
    model = await asyncio.to_thread(_choose_model, models, default_model)

    path = save_config(Config(api_url=api_url, api_key=api_key, model=model), config_path)
    click.echo(f"Saved config to {path}")
    return path
