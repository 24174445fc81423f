"""File suggester: path completion for the word under the cursor."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from caroushell.suggester import DebouncedSuggester

if TYPE_CHECKING:
    from caroushell.carousel import Carousel

logger = logging.getLogger(__name__)

MAX_FILE_AI_LINES = 10


@dataclass
class _PathQuery:
    dir_display: str
    fragment: str
    dir_path: Path


def _parse_query(query: str, cwd: Path) -> _PathQuery:
    last_separator = max(query.rfind("/"), query.rfind("\\"))
    if last_separator == -1:
        return _PathQuery(dir_display="", fragment=query, dir_path=cwd)
    dir_display = query[: last_separator + 1]
    return _PathQuery(
        dir_display=dir_display,
        fragment=query[last_separator + 1 :],
        dir_path=_resolve_directory(dir_display, cwd),
    )


def _resolve_directory(dir_display: str, cwd: Path) -> Path:
    if dir_display.startswith("~"):
        rest = dir_display[1:].lstrip("/\\")
        return (Path.home() / rest.replace("\\", "/")).resolve()
    return (cwd / dir_display.replace("\\", "/")).resolve()


def _read_directory(dir_path: Path) -> list[str]:
    """Return sorted entry names, directories suffixed with ``/``."""
    try:
        entries = [
            entry.name + "/" if entry.is_dir() else entry.name
            for entry in os.scandir(dir_path)
        ]
    except OSError as e:
        logger.debug("Cannot list %s: %s", dir_path, e)
        return []
    return sorted(entries, key=str.lower)


class FileSuggester(DebouncedSuggester):
    prefix = "📂"

    def __init__(self, cwd: str | Path | None = None) -> None:
        super().__init__()
        self._cwd = Path(cwd) if cwd is not None else None
        self._files: list[str] = []

    @property
    def cwd(self) -> Path:
        return self._cwd if self._cwd is not None else Path.cwd()

    async def init(self) -> None:
        self._files = _read_directory(self.cwd)

    def get_matching_files(self, raw_query: str) -> list[str]:
        self._files = _read_directory(self.cwd)
        query = _parse_query(raw_query.strip(), self.cwd)
        needle = query.fragment.lower()
        return [
            f"{query.dir_display}{entry}"
            for entry in _read_directory(query.dir_path)
            if entry.lower().startswith(needle)
        ]

    async def suggest(
        self, carousel: Carousel, max_displayed: int, generation: int
    ) -> list[str]:
        return self.get_matching_files(carousel.get_word_info_at_cursor().prefix)

    async def find_unique_match(self, prefix: str) -> str | None:
        normalized = prefix.strip()
        if not normalized:
            return None
        matches = self.get_matching_files(normalized)
        return matches[0] if len(matches) == 1 else None

    def description_for_ai(self) -> str:
        files = self._files[:MAX_FILE_AI_LINES]
        listing = "\n".join(files) if files else "(directory is empty)"
        return (
            "# File context\n\n"
            f"The current directory is {self.cwd}.\n\n"
            "The files in the current directory are:\n\n"
            f"{listing}"
        )
