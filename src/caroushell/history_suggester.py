"""History suggester: previously run commands shown above the prompt.

The history file stores one entry per block::

    # 2025-01-31T12:00:00.000000+00:00
    +first line of the command
    +second line of a multiline command

Lines that do not start with ``+`` end the current entry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from caroushell.config import config_folder
from caroushell.suggester import DebouncedSuggester

if TYPE_CHECKING:
    from caroushell.carousel import Carousel

logger = logging.getLogger(__name__)

MAX_ITEMS = 1000
MAX_AI_HISTORY_LINES = 20


class HistorySuggester(DebouncedSuggester):
    prefix = "⌛"

    def __init__(self, file_path: str | Path | None = None) -> None:
        super().__init__()
        self._file_path = Path(file_path) if file_path else config_folder("history")
        # Newest first
        self._items: list[str] = []

    @property
    def items(self) -> list[str]:
        return self._items

    async def init(self) -> None:
        try:
            data = self._file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            data = ""
        except OSError:
            logger.exception("Failed to read history from %s", self._file_path)
            data = ""
        self._items = parse_history(data)
        self._latest = list(self._items)

    async def add(self, command: str) -> None:
        if not command.strip():
            return
        if self._items and self._items[0] == command:
            return
        self._items.insert(0, command)
        if len(self._items) > MAX_ITEMS:
            self._items.pop()
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_path.open("a", encoding="utf-8") as f:
                f.write(serialize_history_entry(command))
        except OSError:
            logger.exception("Failed to append to history at %s", self._file_path)

    async def on_command_ran(self, command: str) -> None:
        await self.add(command)

    async def suggest(
        self, carousel: Carousel, max_displayed: int, generation: int
    ) -> list[str]:
        query = carousel.get_current_row().lower()
        seen: set[str] = set()
        matches: list[str] = []
        for item in self._items:
            if query in item.lower() and item not in seen:
                seen.add(item)
                matches.append(item)
        return matches

    def description_for_ai(self) -> str:
        recent = self._items[:MAX_AI_HISTORY_LINES]
        lines: list[str] = []
        if recent:
            lines.append(f'The most recent command is: "{recent[0]}"')
        if len(recent) > 1:
            lines.append("The most recent commands are (from recent to oldest):")
            for i, item in enumerate(recent, start=1):
                lines.append(f"  {i}. {item}")
        return "\n".join(lines)


def parse_history(data: str) -> list[str]:
    """Parse history file contents into entries, newest first."""
    entries: list[str] = []
    current: list[str] = []

    for raw_line in data.split("\n"):
        line = raw_line.removesuffix("\r")
        if line.startswith("+"):
            current.append(line[1:])
        elif current:
            entries.append("\n".join(current))
            current = []
    if current:
        entries.append("\n".join(current))

    return entries[-MAX_ITEMS:][::-1]


def serialize_history_entry(command: str, when: datetime | None = None) -> str:
    timestamp = (when or datetime.now(timezone.utc)).isoformat()
    body = "\n".join(f"+{line}" for line in command.split("\n"))
    return f"\n# {timestamp}\n{body}\n"
