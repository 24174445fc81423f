"""Terminal text utilities: ANSI handling and display-width measurement.

Provides the display-width function shared by the renderer and the carousel
row formatter, plus a width-aware truncation helper that keeps escape
sequences intact.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth


# ---------------------------------------------------------------------------
# Regex patterns for ANSI sequences
# ---------------------------------------------------------------------------

# CSI: ESC [ <parameter bytes> <intermediate bytes> <final byte>
_CSI = r"\x1b\[[0-?]*[ -/]*[@-~]"
# OSC: ESC ] <payload> (BEL | ST)
_OSC = r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
# Two-byte escapes such as ESC 7 / ESC 8
_ESC2 = r"\x1b[@-Z\\-_]"

_ANSI_RE = re.compile(f"{_CSI}|{_OSC}|{_ESC2}")

# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------

def _grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster.

    Rules:
    1. Control characters and lone combining marks -> 0
    2. Emoji clusters (VS16, ZWJ, skin tones, flags) -> 2
    3. Otherwise the width of the base character per wcwidth, so a base
       letter followed by combining marks still counts once.
    """
    if not g:
        return 0

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or (0x7F <= cp <= 0x9F):
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        if cp == 0xFE0F:  # VS16
            return 2
        if cp == 0x200D:  # ZWJ
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF:  # Skin tone modifiers
            return 2
        if 0x1F1E6 <= cp <= 0x1F1FF:  # Regional indicators
            return 2

    base = g[0]
    if ord(base) >= 0x1F000:
        return 2

    cat = unicodedata.category(base)
    if cat.startswith("M") or cat == "Cf":
        return 0

    return max(_wcwidth.wcwidth(base), 0)


# ---------------------------------------------------------------------------
# get_display_width
# ---------------------------------------------------------------------------

def strip_ansi(text: str) -> str:
    """Remove every ANSI escape sequence from *text*."""
    return _ANSI_RE.sub("", text)


def get_display_width(text: str) -> int:
    """Calculate the number of terminal columns *text* occupies.

    * ANSI escape sequences are skipped as opaque, zero-width tokens.
    * Combining marks fold into the preceding base character.
    * Wide characters (CJK ideographs, most emoji) take two columns.
    * Tabs count as 3 columns.
    """
    if not text:
        return 0

    stripped = strip_ansi(text)
    if not stripped:
        return 0

    stripped = stripped.replace("\t", "   ")

    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = 0
    for g in grapheme.graphemes(stripped):
        total += _grapheme_width(g)

    return _cache_width(stripped, total)


# ---------------------------------------------------------------------------
# truncate_to_width
# ---------------------------------------------------------------------------

def truncate_to_width(text: str, max_width: int, ellipsis: str = "") -> str:
    """Truncate *text* to fit within *max_width* display columns.

    Escape sequences are kept (so colors still get reset) and the text is cut
    at grapheme boundaries, never through a wide character. When *ellipsis*
    is given it replaces the cut-off tail and counts towards the width.
    """
    if max_width <= 0:
        return ""

    if get_display_width(text) <= max_width:
        return text

    ellipsis_width = get_display_width(ellipsis)
    target_width = max_width - ellipsis_width
    if target_width <= 0:
        return _take_columns(ellipsis, max_width)

    return _take_columns(text, target_width) + ellipsis


def _take_columns(text: str, max_cols: int) -> str:
    """Return the prefix of *text* fitting in *max_cols* columns.

    Escape sequences after the cut are still appended so trailing resets
    survive truncation.
    """
    result: list[str] = []
    cols = 0
    full = False
    pos = 0

    for match in _ANSI_RE.finditer(text):
        if not full:
            cols, full = _take_plain(text[pos : match.start()], max_cols, cols, result)
        result.append(match.group(0))
        pos = match.end()

    if not full:
        _take_plain(text[pos:], max_cols, cols, result)

    return "".join(result)


def _take_plain(
    chunk: str, max_cols: int, cols: int, result: list[str]
) -> tuple[int, bool]:
    for g in grapheme.graphemes(chunk):
        w = _grapheme_width(g)
        if cols + w > max_cols:
            return cols, True
        result.append(g)
        cols += w
    return cols, False


# ---------------------------------------------------------------------------
# Character classification
# ---------------------------------------------------------------------------

def is_whitespace_char(char: str) -> bool:
    """Return ``True`` if *char* is a whitespace character."""
    return char.isspace()
