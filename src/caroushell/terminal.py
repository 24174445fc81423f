"""Block renderer for the region of the screen the shell owns.

The renderer keeps track of how many rows it painted last time and where the
real cursor sits inside that block, so each repaint can jump back to the
block's top-left corner, clear downward, and draw fresh lines without
touching output above it (such as earlier command output).
"""

from __future__ import annotations

import os
import sys
from typing import TextIO

from caroushell.utils import get_display_width

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_CLEAR_SCREEN_DOWN = "\x1b[0J"
_CURSOR_UP_FMT = "\x1b[{}A"
_CURSOR_DOWN_FMT = "\x1b[{}B"
_CURSOR_COLUMN_FMT = "\x1b[{}G"

# Full-screen programs such as vim switch the terminal into application
# cursor-key mode; without this arrows arrive as ESC O A and friends.
_RESET_CURSOR_KEY_MODE = "\x1b[?1l"


class Colors:
    """SGR color codes used by the carousel."""

    reset = "\x1b[0m"
    white = "\x1b[37m"
    bright_white = "\x1b[97m"
    dimmest = "\x1b[2m"
    dim = "\x1b[37m"
    purple = "\x1b[95m"
    yellow = "\x1b[33m"


class Terminal:
    """Repaints a block of lines and positions the cursor inside it.

    *out* is the text stream the renderer owns; it defaults to
    ``sys.stdout``.
    """

    color = Colors

    def __init__(self, out: TextIO | None = None) -> None:
        self._out: TextIO = out if out is not None else sys.stdout
        self._active_rows: int = 0
        self._cursor_row: int = 0
        self._cursor_col: int = 0
        self._writes_disabled: bool = False

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(self._out.fileno()).columns
        except (AttributeError, ValueError, OSError):
            return 80

    @property
    def active_rows(self) -> int:
        return self._active_rows

    @property
    def cursor_row(self) -> int:
        return self._cursor_row

    @property
    def cursor_col(self) -> int:
        return self._cursor_col

    # -- write suppression --------------------------------------------------

    def disable_writes(self) -> None:
        """Drop all output until :meth:`enable_writes` is called."""
        self._writes_disabled = True

    def enable_writes(self) -> None:
        self._writes_disabled = False

    @property
    def writes_enabled(self) -> bool:
        return not self._writes_disabled

    # -- raw output ---------------------------------------------------------

    def write(self, text: str) -> None:
        if self._writes_disabled or not text:
            return
        self._out.write(text)
        self._out.flush()

    def reset(self) -> None:
        """Restore normal cursor-key mode after a subprocess changed it."""
        self.write(_RESET_CURSOR_KEY_MODE)

    def hide_cursor(self) -> None:
        self.write(_HIDE_CURSOR)

    def show_cursor(self) -> None:
        self.write(_SHOW_CURSOR)

    # -- block rendering ----------------------------------------------------

    def render_block(
        self,
        lines: list[str],
        cursor_row: int | None = None,
        cursor_col: int | None = None,
    ) -> None:
        """Replace the previously painted block with *lines*.

        The output is assembled in one buffer and written at once so the
        terminal never shows a half-drawn frame.  When *cursor_row* or
        *cursor_col* is given the cursor ends up there (clamped into the
        block); otherwise it stays at the end of the last line.
        """
        if self._writes_disabled:
            return

        out: list[str] = []
        self._move_to_top_of_block(out)
        if self._active_rows > 0:
            out.append(_CLEAR_SCREEN_DOWN)

        out.append("\n".join(lines))

        self._active_rows = len(lines)
        self._cursor_row = max(0, self._active_rows - 1)
        last_line = lines[self._cursor_row] if lines else ""
        self._cursor_col = get_display_width(last_line)

        if cursor_row is not None or cursor_col is not None:
            target_row = self._cursor_row if cursor_row is None else cursor_row
            target_col = self._cursor_col if cursor_col is None else cursor_col
            self._append_move(out, target_row, target_col)

        self._out.write("".join(out))
        self._out.flush()

    def move_cursor_to(self, line_index: int, column: int) -> None:
        """Move the cursor to (*line_index*, *column*) inside the block."""
        if self._writes_disabled:
            return
        out: list[str] = []
        self._append_move(out, line_index, column)
        if out:
            self._out.write("".join(out))
            self._out.flush()

    def reset_block_tracking(self) -> None:
        """Forget the painted block after output the renderer didn't write.

        The next :meth:`render_block` then starts on the current line instead
        of erasing rows it never owned.
        """
        self._active_rows = 0
        self._cursor_row = 0
        self._cursor_col = 0

    # -- private ------------------------------------------------------------

    def _move_to_top_of_block(self, out: list[str]) -> None:
        if self._active_rows == 0:
            return
        out.append("\r")
        if self._cursor_row > 0:
            out.append(_CURSOR_UP_FMT.format(self._cursor_row))
        self._cursor_row = 0
        self._cursor_col = 0

    def _append_move(self, out: list[str], line_index: int, column: int) -> None:
        if self._active_rows == 0:
            return
        safe_line = min(max(line_index, 0), max(0, self._active_rows - 1))
        safe_column = max(0, column)

        row_delta = safe_line - self._cursor_row
        if row_delta < 0:
            out.append(_CURSOR_UP_FMT.format(-row_delta))
        elif row_delta > 0:
            out.append(_CURSOR_DOWN_FMT.format(row_delta))
        # Columns in CSI G are 1-based
        out.append(_CURSOR_COLUMN_FMT.format(safe_column + 1))

        self._cursor_row = safe_line
        self._cursor_col = safe_column
