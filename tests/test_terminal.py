"""Tests for caroushell.terminal.Terminal -- block repaint bookkeeping."""

from __future__ import annotations

import io

from caroushell.terminal import Terminal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_terminal() -> tuple[Terminal, io.StringIO]:
    out = io.StringIO()
    return Terminal(out), out


def take(out: io.StringIO) -> str:
    value = out.getvalue()
    out.seek(0)
    out.truncate()
    return value


# ---------------------------------------------------------------------------
# render_block
# ---------------------------------------------------------------------------


class TestRenderBlock:
    def test_first_render_writes_lines(self) -> None:
        term, out = make_terminal()
        term.render_block(["a", "b"])
        assert take(out) == "a\nb"
        assert term.active_rows == 2
        assert term.cursor_row == 1
        assert term.cursor_col == 1

    def test_repaint_returns_to_top_and_clears(self) -> None:
        term, out = make_terminal()
        term.render_block(["a", "b"])
        take(out)
        term.render_block(["c"])
        assert take(out) == "\r\x1b[1A\x1b[0Jc"
        assert term.active_rows == 1

    def test_cursor_positioned_inside_block(self) -> None:
        term, out = make_terminal()
        term.render_block(["ab", "cd"], 0, 1)
        assert take(out) == "ab\ncd\x1b[1A\x1b[2G"
        assert (term.cursor_row, term.cursor_col) == (0, 1)

    def test_repaint_from_positioned_cursor(self) -> None:
        term, out = make_terminal()
        term.render_block(["ab", "cd", "ef"], 1, 0)
        take(out)
        term.render_block(["x"])
        assert take(out) == "\r\x1b[1A\x1b[0Jx"

    def test_cursor_target_is_clamped(self) -> None:
        term, out = make_terminal()
        term.render_block(["a"], 5, -3)
        assert take(out) == "a\x1b[1G"
        assert (term.cursor_row, term.cursor_col) == (0, 0)

    def test_cursor_moves_down(self) -> None:
        term, out = make_terminal()
        term.render_block(["a", "b", "c"], 0, 0)
        take(out)
        term.move_cursor_to(2, 1)
        assert take(out) == "\x1b[2B\x1b[2G"

    def test_cursor_col_uses_display_width(self) -> None:
        term, _ = make_terminal()
        term.render_block(["\x1b[97m界x\x1b[0m"])
        assert term.cursor_col == 3

    def test_empty_block_clears(self) -> None:
        term, out = make_terminal()
        term.render_block(["a", "b"])
        take(out)
        term.render_block([])
        assert take(out) == "\r\x1b[1A\x1b[0J"
        assert term.active_rows == 0


# ---------------------------------------------------------------------------
# Write suppression and tracking reset
# ---------------------------------------------------------------------------


class TestWrites:
    def test_disabled_writes_are_dropped(self) -> None:
        term, out = make_terminal()
        term.disable_writes()
        assert term.writes_enabled is False
        term.render_block(["a"])
        term.write("x")
        term.move_cursor_to(0, 0)
        assert take(out) == ""
        assert term.active_rows == 0
        term.enable_writes()
        term.write("y")
        assert take(out) == "y"

    def test_reset_block_tracking_starts_fresh(self) -> None:
        term, out = make_terminal()
        term.render_block(["a", "b"])
        term.reset_block_tracking()
        take(out)
        term.render_block(["z"])
        assert take(out) == "z"

    def test_reset_restores_cursor_key_mode(self) -> None:
        term, out = make_terminal()
        term.reset()
        assert take(out) == "\x1b[?1l"

    def test_cursor_visibility(self) -> None:
        term, out = make_terminal()
        term.hide_cursor()
        term.show_cursor()
        assert take(out) == "\x1b[?25l\x1b[?25h"

    def test_columns_fallback_for_non_tty(self) -> None:
        term, _ = make_terminal()
        assert term.columns == 80
