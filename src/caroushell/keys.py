"""Key table and sequence matching for raw terminal input.

Maps the fixed escape/control sequences terminals send for editing keys to
semantic key names, and decides for an accumulated input buffer whether it
holds a complete key, a literal character, or the start of a longer sequence
that needs more bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

# ---------------------------------------------------------------------------
# Key helper object
# ---------------------------------------------------------------------------


class Key:
    """Named key constants."""

    char = "char"
    enter = "enter"
    backspace = "backspace"
    delete = "delete"
    escape = "escape"
    tab = "tab"
    up = "up"
    down = "down"
    left = "left"
    right = "right"
    home = "home"
    end = "end"
    ctrl_c = "ctrl-c"
    ctrl_d = "ctrl-d"
    ctrl_u = "ctrl-u"
    ctrl_left = "ctrl-left"
    ctrl_right = "ctrl-right"
    focus_in = "focus-in"
    focus_out = "focus-out"


# Recognized but never surfaced to listeners
SWALLOWED_KEYS: frozenset[str] = frozenset({Key.focus_in, Key.focus_out})


@dataclass(frozen=True)
class KeyEvent:
    """A single decoded key press.

    ``sequence`` holds the raw text consumed for this event.
    """

    name: str
    sequence: str = ""
    ctrl: bool = False
    meta: bool = False
    shift: bool = False


# ---------------------------------------------------------------------------
# Sequence table
# ---------------------------------------------------------------------------

KEYMAP: dict[str, KeyEvent] = {
    # Control keys
    "\x03": KeyEvent(Key.ctrl_c, ctrl=True),
    "\x04": KeyEvent(Key.ctrl_d, ctrl=True),
    "\x15": KeyEvent(Key.ctrl_u, ctrl=True),
    "\t": KeyEvent(Key.tab),
    "\r": KeyEvent(Key.enter),
    "\n": KeyEvent(Key.enter),
    "\x7f": KeyEvent(Key.backspace),
    "\x08": KeyEvent(Key.backspace),
    "\x1b": KeyEvent(Key.escape),
    # Arrows (ANSI)
    "\x1b[A": KeyEvent(Key.up),
    "\x1b[B": KeyEvent(Key.down),
    "\x1b[C": KeyEvent(Key.right),
    "\x1b[D": KeyEvent(Key.left),
    # Arrows (application cursor mode)
    "\x1bOA": KeyEvent(Key.up),
    "\x1bOB": KeyEvent(Key.down),
    "\x1bOC": KeyEvent(Key.right),
    "\x1bOD": KeyEvent(Key.left),
    # Home/End/Delete variants
    "\x1b[H": KeyEvent(Key.home),
    "\x1b[F": KeyEvent(Key.end),
    "\x1bOH": KeyEvent(Key.home),
    "\x1bOF": KeyEvent(Key.end),
    "\x1b[1~": KeyEvent(Key.home),
    "\x1b[4~": KeyEvent(Key.end),
    "\x1b[7~": KeyEvent(Key.home),
    "\x1b[8~": KeyEvent(Key.end),
    "\x1b[3~": KeyEvent(Key.delete),
    # Ctrl+Arrow word jumps
    "\x1b[1;5C": KeyEvent(Key.ctrl_right, ctrl=True),
    "\x1b[1;5D": KeyEvent(Key.ctrl_left, ctrl=True),
    "\x1b[5C": KeyEvent(Key.ctrl_right, ctrl=True),
    "\x1b[5D": KeyEvent(Key.ctrl_left, ctrl=True),
    # Option/Alt word jumps
    "\x1b[1;3C": KeyEvent(Key.ctrl_right, meta=True),
    "\x1b[1;3D": KeyEvent(Key.ctrl_left, meta=True),
    "\x1bf": KeyEvent(Key.ctrl_right, meta=True),
    "\x1bb": KeyEvent(Key.ctrl_left, meta=True),
    "\x1b\x1b[C": KeyEvent(Key.ctrl_right, meta=True),
    "\x1b\x1b[D": KeyEvent(Key.ctrl_left, meta=True),
    # Terminal focus reporting
    "\x1b[I": KeyEvent(Key.focus_in),
    "\x1b[O": KeyEvent(Key.focus_out),
}

# Every strict prefix of a table entry
KEY_PREFIXES: frozenset[str] = frozenset(
    seq[:i] for seq in KEYMAP for i in range(1, len(seq))
)

MatchResult = KeyEvent | Literal["need-more"] | None


def match_sequence(buf: str, *, final: bool = False) -> MatchResult:
    """Match the start of *buf* against the key table.

    Returns the matched :class:`KeyEvent` (with ``sequence`` set to the text
    it consumes), ``"need-more"`` when *buf* could still grow into a longer
    entry, or ``None`` when the first character is not part of any known
    sequence.  With *final* set the buffer is not expected to grow, so a
    pending prefix is resolved to the longest entry it starts with.
    """
    if not buf:
        return "need-more"

    if not final and buf in KEY_PREFIXES:
        return "need-more"

    exact = KEYMAP.get(buf)
    if exact is not None:
        return replace(exact, sequence=buf)

    matched: str | None = None
    for seq in KEYMAP:
        if buf.startswith(seq) and (matched is None or len(seq) > len(matched)):
            matched = seq
    if matched is not None:
        return replace(KEYMAP[matched], sequence=matched)

    return None


def is_discarded_control(ch: str) -> bool:
    """Return ``True`` for control characters that never become text."""
    return ord(ch) < 32 and ch != "\t"
