"""Carousel: the multiline input model and its virtualized suggestion rows.

The carousel owns the edit buffer and cursor, and a signed selection index
addressing three row sources as one stack:

* positive indexes are rows of the top suggester (1 is nearest the prompt),
* zero is the editable prompt,
* negative indexes are rows of the bottom suggester.

Suggestion rows are read-only.  Editing while one is selected first adopts
its text into the buffer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from caroushell.utils import get_display_width, is_whitespace_char, truncate_to_width

if TYPE_CHECKING:
    from caroushell.suggester import Suggester
    from caroushell.terminal import Terminal

logger = logging.getLogger(__name__)

PROMPT_MARKER = "$> "
CONTINUATION_MARKER = "> "
SELECTED_MARKER = "👉"
NO_MORE_MARKER = "---"
# One column wide, so offsets into a row still map one-to-one onto the screen
NEWLINE_GLYPH = "↵"


@dataclass
class LineInfo:
    """The logical line a cursor offset falls on."""

    lines: list[str]
    line_index: int
    line_text: str
    line_start: int
    line_end: int
    column: int


@dataclass
class WordInfo:
    """The run of non-whitespace characters touching the cursor."""

    start: int
    end: int
    prefix: str
    word: str


def get_line_info(text: str, cursor: int) -> LineInfo:
    """Locate absolute offset *cursor* within the lines of *text*."""
    lines = text.split("\n")
    cursor = min(max(cursor, 0), len(text))
    start = 0
    for i, line in enumerate(lines):
        end = start + len(line)
        if cursor <= end or i == len(lines) - 1:
            return LineInfo(
                lines=lines,
                line_index=i,
                line_text=line,
                line_start=start,
                line_end=end,
                column=cursor - start,
            )
        start = end + 1
    raise AssertionError("unreachable")


class Carousel:
    """Input buffer plus a sliding window over the suggestion sources."""

    def __init__(
        self,
        *,
        top: Suggester,
        bottom: Suggester,
        top_rows: int,
        bottom_rows: int,
        terminal: Terminal,
        suggesters: list[Suggester] | None = None,
    ) -> None:
        self._top = top
        self._bottom = bottom
        self._top_rows = top_rows
        self._bottom_rows = bottom_rows
        self._terminal = terminal
        self._suggesters = list(suggesters) if suggesters is not None else [top, bottom]

        self._input_buffer: str = ""
        self._cursor_index: int = 0
        self._selection_index: int = 0

    # -- state --------------------------------------------------------------

    @property
    def input_buffer(self) -> str:
        return self._input_buffer

    @property
    def cursor_index(self) -> int:
        return self._cursor_index

    @property
    def selection_index(self) -> int:
        return self._selection_index

    @property
    def top(self) -> Suggester:
        return self._top

    @property
    def bottom(self) -> Suggester:
        return self._bottom

    def get_suggesters(self) -> list[Suggester]:
        return self._suggesters

    # -- rows ---------------------------------------------------------------

    def get_row(self, row_index: int) -> str:
        if row_index < 0:
            items = self._bottom.latest()
            i = -row_index - 1
        elif row_index == 0:
            return self._input_buffer
        else:
            items = self._top.latest()
            i = row_index - 1
        return items[i] if i < len(items) else ""

    def get_current_row(self) -> str:
        return self.get_row(self._selection_index)

    def get_input_line_info_at_cursor(self) -> LineInfo:
        return get_line_info(self.get_current_row(), self._cursor_index)

    def get_word_info_at_cursor(self) -> WordInfo:
        text = self.get_current_row()
        cursor = min(self._cursor_index, len(text))
        start = cursor
        while start > 0 and not is_whitespace_char(text[start - 1]):
            start -= 1
        end = cursor
        while end < len(text) and not is_whitespace_char(text[end]):
            end += 1
        return WordInfo(start=start, end=end, prefix=text[start:cursor], word=text[start:end])

    # -- selection ----------------------------------------------------------

    def adopt_selection(self, *, keep_cursor: bool = False) -> None:
        """Copy the selected suggestion into the buffer and select the prompt.

        The cursor lands at the end of the adopted text unless *keep_cursor*
        is set, in which case it stays where it was displayed.
        """
        if self._selection_index == 0:
            return
        text = self.get_current_row()
        self._input_buffer = text
        self._selection_index = 0
        if keep_cursor:
            self._cursor_index = min(self._cursor_index, len(text))
        else:
            self._cursor_index = len(text)

    def up(self) -> None:
        top_len = len(self._top.latest())
        self._selection_index = min(self._selection_index + 1, top_len)
        self._clamp_cursor_to_row()

    def down(self) -> None:
        bottom_len = len(self._bottom.latest())
        self._selection_index = max(self._selection_index - 1, -bottom_len)
        self._clamp_cursor_to_row()

    def set_top_suggester(self, suggester: Suggester) -> None:
        """Swap the top row source, keeping the selection in range."""
        if suggester is self._top:
            return
        self._top = suggester
        if self._selection_index > 0:
            self._selection_index = min(self._selection_index, len(suggester.latest()))
            self._clamp_cursor_to_row()

    def _clamp_selection(self) -> None:
        top_len = len(self._top.latest())
        bottom_len = len(self._bottom.latest())
        clamped = min(max(self._selection_index, -bottom_len), top_len)
        if clamped != self._selection_index:
            self._selection_index = clamped
            self._clamp_cursor_to_row()

    def _clamp_cursor_to_row(self) -> None:
        self._cursor_index = min(self._cursor_index, len(self.get_current_row()))

    # -- editing ------------------------------------------------------------

    def insert_at_cursor(self, text: str) -> None:
        if not text:
            return
        self.adopt_selection()
        buf = self._input_buffer
        self._input_buffer = buf[: self._cursor_index] + text + buf[self._cursor_index :]
        self._cursor_index += len(text)

    def delete_before_cursor(self) -> None:
        self.adopt_selection()
        if self._cursor_index == 0:
            return
        buf = self._input_buffer
        self._input_buffer = buf[: self._cursor_index - 1] + buf[self._cursor_index :]
        self._cursor_index -= 1

    def delete_at_cursor(self) -> None:
        self.adopt_selection()
        buf = self._input_buffer
        if self._cursor_index >= len(buf):
            return
        self._input_buffer = buf[: self._cursor_index] + buf[self._cursor_index + 1 :]

    def delete_to_line_start(self) -> None:
        self.adopt_selection()
        info = self.get_input_line_info_at_cursor()
        if self._cursor_index == info.line_start:
            return
        buf = self._input_buffer
        self._input_buffer = buf[: info.line_start] + buf[self._cursor_index :]
        self._cursor_index = info.line_start

    def replace_word_at_cursor(self, replacement: str) -> None:
        """Replace the word touching the cursor, used for Tab completion."""
        self.adopt_selection(keep_cursor=True)
        info = self.get_word_info_at_cursor()
        buf = self._input_buffer
        self._input_buffer = buf[: info.start] + replacement + buf[info.end :]
        self._cursor_index = info.start + len(replacement)

    def clear_input(self) -> None:
        self.adopt_selection()
        self._input_buffer = ""
        self._cursor_index = 0
        self._selection_index = 0

    # -- cursor movement ----------------------------------------------------

    def move_cursor_left(self) -> None:
        self._clamp_cursor_to_row()
        if self._cursor_index > 0:
            self._cursor_index -= 1

    def move_cursor_right(self) -> None:
        row_len = len(self.get_current_row())
        if self._cursor_index < row_len:
            self._cursor_index += 1

    def move_cursor_word_left(self) -> None:
        self.adopt_selection(keep_cursor=True)
        buf = self._input_buffer
        i = self._cursor_index
        while i > 0 and is_whitespace_char(buf[i - 1]):
            i -= 1
        while i > 0 and not is_whitespace_char(buf[i - 1]):
            i -= 1
        self._cursor_index = i

    def move_cursor_word_right(self) -> None:
        self.adopt_selection(keep_cursor=True)
        buf = self._input_buffer
        i = self._cursor_index
        while i < len(buf) and is_whitespace_char(buf[i]):
            i += 1
        while i < len(buf) and not is_whitespace_char(buf[i]):
            i += 1
        self._cursor_index = i

    def move_cursor_home(self) -> None:
        self.adopt_selection(keep_cursor=True)
        self._cursor_index = self.get_input_line_info_at_cursor().line_start

    def move_cursor_end(self) -> None:
        self.adopt_selection(keep_cursor=True)
        self._cursor_index = self.get_input_line_info_at_cursor().line_end

    def should_up_move_multiline_cursor(self) -> bool:
        if self._selection_index != 0:
            return False
        return self.get_input_line_info_at_cursor().line_index > 0

    def should_down_move_multiline_cursor(self) -> bool:
        if self._selection_index != 0:
            return False
        info = self.get_input_line_info_at_cursor()
        return info.line_index < len(info.lines) - 1

    def move_multiline_cursor_up(self) -> None:
        if not self.should_up_move_multiline_cursor():
            return
        info = self.get_input_line_info_at_cursor()
        prev_line = info.lines[info.line_index - 1]
        prev_start = info.line_start - len(prev_line) - 1
        self._cursor_index = prev_start + min(info.column, len(prev_line))

    def move_multiline_cursor_down(self) -> None:
        if not self.should_down_move_multiline_cursor():
            return
        info = self.get_input_line_info_at_cursor()
        next_line = info.lines[info.line_index + 1]
        next_start = info.line_end + 1
        self._cursor_index = next_start + min(info.column, len(next_line))

    # -- suggestions --------------------------------------------------------

    def update_suggestions(self) -> asyncio.Future:
        """Start refreshing both sources concurrently.

        Each source renders on its own when its snapshot changes; the
        returned future only matters to callers that want to wait for both.
        """
        return asyncio.gather(
            self._refresh(self._top, self._top_rows),
            self._refresh(self._bottom, self._bottom_rows),
        )

    async def _refresh(self, suggester: Suggester, max_displayed: int) -> None:
        try:
            await suggester.refresh_suggestions(self, max_displayed)
        except Exception:
            logger.exception("Suggester %s failed to refresh", type(suggester).__name__)

    # -- rendering ----------------------------------------------------------

    def get_render_rows(self, width: int) -> tuple[list[str], int, int]:
        """Build the visible window.

        Returns ``(lines, cursor_row, cursor_col)`` where the cursor position
        is in display columns within the returned lines.
        """
        self._clamp_selection()
        colors = self._terminal.color
        max_width = max(1, width - 1)
        selected = self._selection_index

        lines: list[str] = []
        cursor_row = 0
        cursor_col = 0

        first = selected + self._top_rows
        last = selected - self._bottom_rows
        for row_index in range(first, last - 1, -1):
            if row_index == 0:
                info = get_line_info(self._input_buffer, self._cursor_index)
                color = colors.bright_white if selected == 0 else colors.dim
                for line_no, line in enumerate(info.lines):
                    marker = PROMPT_MARKER if line_no == 0 else CONTINUATION_MARKER
                    if selected == 0 and line_no == info.line_index:
                        cursor_row = len(lines)
                        cursor_col = get_display_width(marker + line[: info.column])
                    text = truncate_to_width(marker + line, max_width)
                    lines.append(f"{color}{text}{colors.reset}")
                continue

            row = self.get_row(row_index).replace("\n", NEWLINE_GLYPH)
            if row_index == selected:
                marker = f"{SELECTED_MARKER} "
                cursor_row = len(lines)
                cursor_col = get_display_width(marker + row[: self._cursor_index])
                text = truncate_to_width(marker + row, max_width)
                lines.append(f"{colors.bright_white}{text}{colors.reset}")
            elif not row:
                lines.append(f"{colors.dimmest}{NO_MORE_MARKER}{colors.reset}")
            else:
                source = self._top if row_index > 0 else self._bottom
                text = truncate_to_width(f"{source.prefix} {row}", max_width)
                lines.append(f"{colors.dimmest}{text}{colors.reset}")

        return lines, cursor_row, min(cursor_col, max_width)

    def render(self) -> None:
        lines, cursor_row, cursor_col = self.get_render_rows(self._terminal.columns)
        self._terminal.render_block(lines, cursor_row, cursor_col)
