"""Suggester capability: pluggable sources of carousel rows.

A suggester owns a snapshot of candidate rows that the carousel reads
synchronously through :meth:`Suggester.latest`, and refreshes that snapshot
asynchronously whenever the input changes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from caroushell.carousel import Carousel

logger = logging.getLogger(__name__)


@runtime_checkable
class Suggester(Protocol):
    """Interface every row source implements.

    ``on_command_ran`` and ``find_unique_match`` are optional; callers look
    them up with ``getattr``.
    """

    prefix: str

    async def init(self) -> None: ...

    async def refresh_suggestions(self, carousel: Carousel, max_displayed: int) -> None: ...

    def latest(self) -> list[str]: ...

    def description_for_ai(self) -> str: ...


class DebouncedSuggester:
    """Base class applying only the newest refresh result.

    Subclasses implement :meth:`suggest`.  Every call to
    :meth:`refresh_suggestions` takes a new generation number; when the
    suggestion comes back it is applied only if no newer refresh has started
    in the meantime, so a slow stale request can never overwrite a fresh one.
    """

    prefix: str = ""

    def __init__(self) -> None:
        self._latest: list[str] = []
        self._generation: int = 0

    async def init(self) -> None:
        pass

    def latest(self) -> list[str]:
        return self._latest

    def description_for_ai(self) -> str:
        return ""

    def is_current(self, generation: int) -> bool:
        """Return ``True`` if *generation* is still the newest refresh."""
        return generation == self._generation

    async def refresh_suggestions(self, carousel: Carousel, max_displayed: int) -> None:
        self._generation += 1
        generation = self._generation
        try:
            rows = await self.suggest(carousel, max_displayed, generation)
        except Exception:
            logger.exception("%s refresh failed", type(self).__name__)
            return
        if not self.is_current(generation):
            logger.debug("Discarding stale %s result", type(self).__name__)
            return
        if rows == self._latest:
            return
        self._latest = rows
        carousel.render()

    async def suggest(
        self, carousel: Carousel, max_displayed: int, generation: int
    ) -> list[str]:
        """Compute a new snapshot for the carousel's current state.

        *generation* lets long-running implementations check
        :meth:`is_current` and bail out early.
        """
        raise NotImplementedError
