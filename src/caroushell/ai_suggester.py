"""AI suggester: command completions from an OpenAI-compatible endpoint.

Talks to ``{api_url}/chat/completions`` over raw HTTP via httpx (no SDK).
Requests are debounced: a refresh waits briefly and gives up if the user
kept typing in the meantime, so only the last keystroke costs a request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from caroushell.config import Config, ConfigError, get_config
from caroushell.suggester import DebouncedSuggester

if TYPE_CHECKING:
    from caroushell.carousel import Carousel

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a shell assistant that suggests terminal command completions."
DEFAULT_DEBOUNCE_SECONDS = 0.12
REQUEST_TIMEOUT_SECONDS = 20.0


# --- Wire types ---


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None


class ChatChoice(BaseModel):
    message: ChatMessage = Field(default_factory=ChatMessage)


class ChatCompletionResponse(BaseModel):
    choices: list[ChatChoice] = Field(default_factory=list)

    def first_text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class ModelInfo(BaseModel):
    id: str


class ListModelsResponse(BaseModel):
    data: list[ModelInfo] = Field(default_factory=list)


# --- HTTP helpers ---


def _headers(api_key: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
        "HTTP-Referer": "https://github.com/ubershmekel/caroushell",
        "X-Title": "Caroushell",
    }


def _build_body(model: str, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    return {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    }


async def generate_content(
    prompt: str,
    config: Config,
    *,
    temperature: float = 0.3,
    max_tokens: int = 256,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Send *prompt* and return the reply text.

    Failures are logged and yield an empty string.
    """
    if not prompt.strip():
        logger.info("AI generation skipped: empty prompt")
        return ""

    url = f"{config.api_url}/chat/completions"
    body = _build_body(config.model, prompt, temperature, max_tokens)
    start = time.monotonic()
    try:
        if client is not None:
            response = await client.post(url, headers=_headers(config.api_key), json=body)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS)) as c:
                response = await c.post(url, headers=_headers(config.api_key), json=body)
    except httpx.HTTPError as e:
        logger.warning("AI request failed: %s", e)
        return ""

    if response.status_code >= 400:
        logger.warning("AI request returned %s: %s", response.status_code, response.text[:200])
        return ""

    try:
        parsed = ChatCompletionResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logger.warning("AI response could not be parsed: %s", e)
        return ""

    logger.info("AI duration: %d ms", (time.monotonic() - start) * 1000)
    return parsed.first_text()


async def list_models(
    api_url: str, api_key: str, *, client: httpx.AsyncClient | None = None
) -> list[str]:
    """Return model ids offered by an OpenAI-compatible endpoint."""
    url = api_url.rstrip("/").removesuffix("/chat/completions") + "/models"
    if client is not None:
        response = await client.get(url, headers=_headers(api_key))
    else:
        async with httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS)) as c:
            response = await c.get(url, headers=_headers(api_key))
    response.raise_for_status()
    return [m.id for m in ListModelsResponse.model_validate(response.json()).data]


def build_prompt(current_row: str, descriptions: list[str], max_displayed: int) -> str:
    context = "\n\n".join(d for d in descriptions if d)
    return (
        f"You are a shell assistant. Given a partial shell input, suggest {max_displayed} "
        "useful, concise shell commands that the user might run next. "
        "Return one suggestion per line, no numbering, no extra text.\n"
        "Return the whole suggestion, not just what remains to type out.\n\n"
        f'The current line is: "{current_row}"\n\n'
        f"{context}\n"
    )


def parse_suggestions(text: str, max_displayed: int) -> list[str]:
    lines = [line.strip() for line in text.splitlines()]
    return [line for line in lines if line][:max_displayed]


class AISuggester(DebouncedSuggester):
    prefix = "🤖"

    def __init__(
        self,
        config: Config | None = None,
        *,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._config = config
        self._debounce = debounce
        self._client = client

    @property
    def config(self) -> Config | None:
        return self._config

    async def init(self) -> None:
        if self._config is not None:
            return
        try:
            self._config = get_config()
        except ConfigError as e:
            logger.info("AI suggestions disabled: %s", e)

    async def suggest(
        self, carousel: Carousel, max_displayed: int, generation: int
    ) -> list[str]:
        if self._config is None:
            return []

        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
            if not self.is_current(generation):
                return []

        descriptions = [s.description_for_ai() for s in carousel.get_suggesters()]
        prompt = build_prompt(carousel.get_current_row(), descriptions, max_displayed)
        logger.debug("AI prompt:\n%s", prompt)

        text = await generate_content(
            prompt,
            self._config,
            temperature=0.3,
            max_tokens=128,
            client=self._client,
        )
        lines = parse_suggestions(text, max_displayed)
        logger.info("AI lines: %d", len(lines))
        return lines
