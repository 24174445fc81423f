"""Keyboard buffers raw stdin input and emits decoded key events.

Input arrives in arbitrary chunks: an escape sequence may be split across
reads and a multi-byte UTF-8 character across byte boundaries.  The keyboard
accumulates input until it is unambiguous, then emits exactly one
:class:`~caroushell.keys.KeyEvent` per consumed sequence.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import termios
import tty
from typing import Callable

from caroushell.keys import (
    SWALLOWED_KEYS,
    KeyEvent,
    Key,
    is_discarded_control,
    match_sequence,
)

logger = logging.getLogger(__name__)

KeyListener = Callable[[KeyEvent], None]


class Keyboard:
    """Decodes a raw terminal input stream into key events.

    *input_fd* is the file descriptor capture reads from; ``None`` leaves the
    keyboard detached so input can only arrive through :meth:`feed`.
    *timeout* is how long (seconds) an ambiguous prefix such as a bare ESC
    waits for more bytes before it is resolved.
    """

    def __init__(self, input_fd: int | None = None, *, timeout: float = 0.05) -> None:
        self._input_fd = input_fd
        self._timeout = timeout
        self._buffer: str = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._listeners: list[KeyListener] = []
        self._eof_listeners: list[Callable[[], None]] = []
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._active: bool = False
        self._reader_active: bool = False
        self._saved_termios: list | None = None

    # -- listeners ----------------------------------------------------------

    def on_key(self, callback: KeyListener) -> None:
        """Register *callback* for every emitted key event."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def off_key(self, callback: KeyListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def on_eof(self, callback: Callable[[], None]) -> None:
        """Register *callback* for when the input reaches end of file."""
        if callback not in self._eof_listeners:
            self._eof_listeners.append(callback)

    def off_eof(self, callback: Callable[[], None]) -> None:
        if callback in self._eof_listeners:
            self._eof_listeners.remove(callback)

    def _emit(self, event: KeyEvent) -> None:
        if event.name in SWALLOWED_KEYS:
            return
        for listener in list(self._listeners):
            listener(event)

    # -- capture ------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    def enable_capture(self) -> None:
        """Put the input into raw mode and start reading from it.

        Calling this while capture is already enabled does nothing.
        """
        if self._active:
            return
        self._active = True

        if self._input_fd is None:
            return

        if os.isatty(self._input_fd):
            self._saved_termios = termios.tcgetattr(self._input_fd)
            tty.setraw(self._input_fd)
            # Keep output processing on so "\n" still returns the carriage
            mode = termios.tcgetattr(self._input_fd)
            mode[tty.OFLAG] |= termios.OPOST | termios.ONLCR
            termios.tcsetattr(self._input_fd, termios.TCSANOW, mode)

        try:
            loop = asyncio.get_running_loop()
            loop.add_reader(self._input_fd, self._on_readable)
            self._reader_active = True
        except RuntimeError:
            # No running event loop -- input can only be fed manually
            logger.debug("Keyboard capture enabled without an event loop")

    def disable_capture(self) -> None:
        """Stop reading input and restore the saved terminal mode.

        Any partially buffered sequence is dropped so re-enabling starts from
        a clean state.
        """
        if not self._active:
            return
        self._active = False
        self.clear()

        if self._input_fd is None:
            return

        if self._reader_active:
            try:
                asyncio.get_running_loop().remove_reader(self._input_fd)
            except RuntimeError:
                pass
            self._reader_active = False

        if self._saved_termios is not None:
            termios.tcsetattr(self._input_fd, termios.TCSADRAIN, self._saved_termios)
            self._saved_termios = None

    def _on_readable(self) -> None:
        """Callback invoked by the event loop when the input has data."""
        try:
            raw = os.read(self._input_fd, 4096)
        except OSError as e:
            logger.warning("Reading input failed: %s", e)
            self._on_eof()
            return
        if not raw:
            self._on_eof()
            return
        self.feed_bytes(raw)

    def _on_eof(self) -> None:
        logger.warning("Input reached end of file, stopping capture")
        if self._reader_active:
            asyncio.get_running_loop().remove_reader(self._input_fd)
            self._reader_active = False
        self.flush()
        for listener in list(self._eof_listeners):
            listener()

    # -- decoding -----------------------------------------------------------

    def feed_bytes(self, data: bytes) -> None:
        """Feed raw bytes; incomplete UTF-8 characters wait for the rest."""
        self.feed(self._decoder.decode(data))

    def feed(self, data: str) -> None:
        """Feed decoded text into the buffer and emit every complete key."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

        if not data:
            return

        self._buffer += data
        self._process(final=False)

        if self._buffer:
            self._schedule_flush()

    def flush(self) -> None:
        """Resolve whatever is pending as if no more input will follow."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        self._process(final=True)

    def clear(self) -> None:
        """Drop any buffered, not yet decoded input."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        self._buffer = ""
        self._decoder.reset()

    def get_buffer(self) -> str:
        return self._buffer

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Without a loop the prefix stays pending until flush() or more input
            return
        self._timeout_handle = loop.call_later(self._timeout, self._flush_timeout)

    def _flush_timeout(self) -> None:
        self._timeout_handle = None
        self._process(final=True)

    def _process(self, *, final: bool) -> None:
        while self._buffer:
            evt = match_sequence(self._buffer, final=final)
            if evt == "need-more":
                return
            if evt is not None:
                self._buffer = self._buffer[len(evt.sequence) :]
                self._emit(evt)
                continue

            ch = self._buffer[0]
            self._buffer = self._buffer[1:]
            if is_discarded_control(ch):
                continue
            self._emit(KeyEvent(Key.char, sequence=ch))
