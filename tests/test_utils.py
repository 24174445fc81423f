"""Tests for caroushell.utils -- display width and truncation."""

from __future__ import annotations

from caroushell.utils import (
    get_display_width,
    is_whitespace_char,
    strip_ansi,
    truncate_to_width,
)


# ---------------------------------------------------------------------------
# get_display_width
# ---------------------------------------------------------------------------


class TestDisplayWidth:
    def test_ascii(self) -> None:
        assert get_display_width("abc") == 3

    def test_empty(self) -> None:
        assert get_display_width("") == 0

    def test_colored_text_ignores_escapes(self) -> None:
        assert get_display_width("\x1b[31mred\x1b[0m") == 3

    def test_only_escapes(self) -> None:
        assert get_display_width("\x1b[2m\x1b[0m") == 0

    def test_combining_mark_folds_into_base(self) -> None:
        assert get_display_width("é") == 1

    def test_precomposed_accent(self) -> None:
        assert get_display_width("é") == 1

    def test_cjk_is_wide(self) -> None:
        assert get_display_width("界") == 2
        assert get_display_width("日本") == 4

    def test_emoji_is_wide(self) -> None:
        assert get_display_width("🙂") == 2

    def test_zwj_sequence_is_one_cluster(self) -> None:
        assert get_display_width("👩‍💻") == 2

    def test_tab(self) -> None:
        assert get_display_width("\t") == 3

    def test_osc_hyperlink_is_invisible(self) -> None:
        link = "\x1b]8;;https://example.com\x07link\x1b]8;;\x07"
        assert get_display_width(link) == 4

    def test_repeated_calls_agree(self) -> None:
        assert get_display_width("a界") == get_display_width("a界") == 3


# ---------------------------------------------------------------------------
# strip_ansi
# ---------------------------------------------------------------------------


class TestStripAnsi:
    def test_removes_sgr(self) -> None:
        assert strip_ansi("\x1b[97mhi\x1b[0m") == "hi"

    def test_removes_cursor_moves(self) -> None:
        assert strip_ansi("\r\x1b[2A\x1b[0Jx") == "\rx"


# ---------------------------------------------------------------------------
# truncate_to_width
# ---------------------------------------------------------------------------


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate_to_width("hi", 5) == "hi"

    def test_cuts_ascii(self) -> None:
        assert truncate_to_width("hello", 3) == "hel"

    def test_never_splits_wide_character(self) -> None:
        assert truncate_to_width("界界", 3) == "界"

    def test_keeps_trailing_reset(self) -> None:
        assert truncate_to_width("\x1b[31mhello\x1b[0m", 2) == "\x1b[31mhe\x1b[0m"

    def test_ellipsis(self) -> None:
        assert truncate_to_width("hello world", 8, "...") == "hello..."

    def test_zero_width(self) -> None:
        assert truncate_to_width("hello", 0) == ""

    def test_result_fits(self) -> None:
        text = "👉 git status --short 🙂"
        for width in range(1, 30):
            assert get_display_width(truncate_to_width(text, width)) <= width


class TestWhitespace:
    def test_whitespace(self) -> None:
        assert is_whitespace_char(" ")
        assert is_whitespace_char("\t")
        assert is_whitespace_char("\n")
        assert not is_whitespace_char("a")
