"""App: wires the keyboard, carousel, renderer and suggesters together.

Key events are queued by the keyboard and handled strictly one at a time, so
an edit never observes a half-applied previous edit.  Suggestion refreshes
run as background tasks and repaint on their own when they finish.
"""

from __future__ import annotations

import asyncio
import logging
import re
import signal
import sys
from typing import Awaitable, Callable

from caroushell.ai_suggester import AISuggester
from caroushell.carousel import CONTINUATION_MARKER, PROMPT_MARKER, Carousel
from caroushell.file_suggester import FileSuggester
from caroushell.history_suggester import HistorySuggester
from caroushell.keyboard import Keyboard
from caroushell.keys import Key, KeyEvent
from caroushell.spawner import ExitRequested, run_user_command
from caroushell.suggester import Suggester
from caroushell.terminal import Terminal

logger = logging.getLogger(__name__)

CommandRunner = Callable[[str], Awaitable[bool]]

_CONTINUATION_RE = re.compile(r"\\\r?\n[ \t]*")


def collapse_line_continuations(text: str) -> str:
    """Join lines ending in a backslash, dropping the continuation's indent."""
    return _CONTINUATION_RE.sub("", text)


def _ignore_signal() -> None:
    logger.debug("Ignoring SIGINT while a command runs")


class App:
    """The interactive shell: owns the TTY until the user exits."""

    def __init__(
        self,
        *,
        terminal: Terminal | None = None,
        keyboard: Keyboard | None = None,
        history: Suggester | None = None,
        ai: Suggester | None = None,
        files: Suggester | None = None,
        suggesters: list[Suggester] | None = None,
        run_command: CommandRunner = run_user_command,
        top_rows: int = 2,
        bottom_rows: int = 2,
    ) -> None:
        self.terminal = terminal or Terminal()
        self.keyboard = keyboard or Keyboard(sys.stdin.fileno())
        self.history = history or HistorySuggester()
        self.ai = ai or AISuggester()
        self.files = files or FileSuggester()
        self.suggesters = suggesters or [self.history, self.ai, self.files]
        self.carousel = Carousel(
            top=self.history,
            bottom=self.ai,
            top_rows=top_rows,
            bottom_rows=bottom_rows,
            terminal=self.terminal,
            suggesters=self.suggesters,
        )
        self._run_user_command = run_command

        self._queue: asyncio.Queue[KeyEvent] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._pending_updates: set[asyncio.Future] = set()
        self._exit_event = asyncio.Event()
        self._exit_code = 0

        self._handlers: dict[str, Callable[[KeyEvent], Awaitable[None]]] = {
            Key.char: self._on_char,
            Key.enter: self._on_enter,
            Key.backspace: self._on_backspace,
            Key.delete: self._on_delete,
            Key.ctrl_u: self._on_ctrl_u,
            Key.tab: self._on_tab,
            Key.escape: self._on_escape,
            Key.up: self._on_up,
            Key.down: self._on_down,
            Key.left: self._on_left,
            Key.right: self._on_right,
            Key.ctrl_left: self._on_word_left,
            Key.ctrl_right: self._on_word_right,
            Key.home: self._on_home,
            Key.end: self._on_end,
            Key.ctrl_c: self._on_ctrl_c,
            Key.ctrl_d: self._on_ctrl_d,
        }

    # -- lifecycle ----------------------------------------------------------

    async def init(self) -> None:
        for suggester in self.suggesters:
            try:
                await suggester.init()
            except Exception:
                logger.exception("%s failed to initialize", type(suggester).__name__)

    async def start(self) -> None:
        """Initialize, take over input and draw the first frame."""
        await self.init()
        self.keyboard.on_key(self._enqueue)
        self.keyboard.on_eof(self.request_exit)
        self.keyboard.enable_capture()
        self._consumer = asyncio.get_running_loop().create_task(self._consume())
        self._install_resize_handler()
        self.carousel.render()
        self._schedule_update()

    async def run(self) -> int:
        """Run until the user exits; returns the exit code."""
        await self.start()
        try:
            await self._exit_event.wait()
        finally:
            await self.stop()
        return self._exit_code

    async def stop(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        for fut in list(self._pending_updates):
            fut.cancel()
        self.keyboard.disable_capture()
        self.keyboard.off_key(self._enqueue)
        self.keyboard.off_eof(self.request_exit)
        self._remove_resize_handler()
        # Leave a clean line behind for the parent shell
        self.terminal.render_block([])
        self.terminal.show_cursor()

    def request_exit(self, code: int = 0) -> None:
        self._exit_code = code
        self._exit_event.set()

    @property
    def exit_requested(self) -> bool:
        return self._exit_event.is_set()

    async def wait_until_idle(self) -> None:
        """Wait for queued keys and in-flight suggestion refreshes."""
        await self._queue.join()
        while self._pending_updates:
            await asyncio.gather(*list(self._pending_updates), return_exceptions=True)

    # -- key dispatch -------------------------------------------------------

    def _enqueue(self, event: KeyEvent) -> None:
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle_key(event)
            except Exception:
                logger.exception("Key handler for %s failed", event.name)
            finally:
                self._queue.task_done()

    async def handle_key(self, event: KeyEvent) -> None:
        handler = self._handlers.get(event.name)
        if handler is not None:
            await handler(event)

    def _schedule_update(self) -> None:
        fut = self.carousel.update_suggestions()
        self._pending_updates.add(fut)
        fut.add_done_callback(self._pending_updates.discard)

    def _render_and_update(self) -> None:
        self.carousel.render()
        self._schedule_update()

    # -- handlers -----------------------------------------------------------

    async def _on_char(self, event: KeyEvent) -> None:
        self.carousel.insert_at_cursor(event.sequence)
        self._render_and_update()

    async def _on_backspace(self, event: KeyEvent) -> None:
        self.carousel.delete_before_cursor()
        self._render_and_update()

    async def _on_delete(self, event: KeyEvent) -> None:
        self.carousel.delete_at_cursor()
        self._render_and_update()

    async def _on_ctrl_u(self, event: KeyEvent) -> None:
        self.carousel.delete_to_line_start()
        self._render_and_update()

    async def _on_up(self, event: KeyEvent) -> None:
        if self.carousel.should_up_move_multiline_cursor():
            self.carousel.move_multiline_cursor_up()
        else:
            self.carousel.up()
        self.carousel.render()

    async def _on_down(self, event: KeyEvent) -> None:
        if self.carousel.should_down_move_multiline_cursor():
            self.carousel.move_multiline_cursor_down()
        else:
            self.carousel.down()
        self.carousel.render()

    async def _on_left(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_left()
        self.carousel.render()

    async def _on_right(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_right()
        self.carousel.render()

    async def _on_word_left(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_word_left()
        self.carousel.render()

    async def _on_word_right(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_word_right()
        self.carousel.render()

    async def _on_home(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_home()
        self.carousel.render()

    async def _on_end(self, event: KeyEvent) -> None:
        self.carousel.move_cursor_end()
        self.carousel.render()

    async def _on_tab(self, event: KeyEvent) -> None:
        carousel = self.carousel
        carousel.set_top_suggester(self.files)
        find_unique_match = getattr(self.files, "find_unique_match", None)
        if find_unique_match is not None:
            match = await find_unique_match(carousel.get_word_info_at_cursor().prefix)
            if match:
                carousel.replace_word_at_cursor(match)
        self._render_and_update()

    async def _on_escape(self, event: KeyEvent) -> None:
        if self.carousel.top is self.history:
            return
        self.carousel.set_top_suggester(self.history)
        self._render_and_update()

    async def _on_ctrl_c(self, event: KeyEvent) -> None:
        carousel = self.carousel
        if carousel.input_buffer or carousel.selection_index != 0:
            carousel.clear_input()
            self._render_and_update()
            return
        self.request_exit()

    async def _on_ctrl_d(self, event: KeyEvent) -> None:
        carousel = self.carousel
        if not carousel.input_buffer and carousel.selection_index == 0:
            self.request_exit()
            return
        carousel.delete_at_cursor()
        self._render_and_update()

    async def _on_enter(self, event: KeyEvent) -> None:
        carousel = self.carousel
        carousel.adopt_selection()
        if carousel.get_input_line_info_at_cursor().line_text.endswith("\\"):
            carousel.move_cursor_end()
            carousel.insert_at_cursor("\n")
            carousel.render()
            return

        entry = carousel.input_buffer
        carousel.clear_input()
        await self.run_command(collapse_line_continuations(entry), entry)
        carousel.set_top_suggester(self.history)
        if not self.exit_requested:
            self._render_and_update()

    # -- command execution --------------------------------------------------

    async def run_command(self, command: str, history_entry: str | None = None) -> None:
        """Echo *command*, hand the terminal to it, then take the terminal back.

        Capture and writes are always restored, whatever the command does.
        """
        colors = self.terminal.color
        if not command.strip():
            self.terminal.render_block([PROMPT_MARKER.rstrip()])
            self.terminal.write("\n")
            self.terminal.reset_block_tracking()
            return

        echoed = (history_entry or command).split("\n")
        self.terminal.render_block(
            [
                f"{colors.yellow}{PROMPT_MARKER if i == 0 else CONTINUATION_MARKER}{line}{colors.reset}"
                for i, line in enumerate(echoed)
            ]
        )
        self.terminal.write("\n")
        self.terminal.reset_block_tracking()

        record = False
        self.keyboard.disable_capture()
        self.terminal.disable_writes()
        previous_sigint = self._ignore_sigint()
        try:
            record = await self._run_user_command(command)
        except ExitRequested as e:
            self.request_exit(e.code)
        except Exception:
            logger.exception("Command failed: %s", command)
        finally:
            self._restore_sigint(previous_sigint)
            self.terminal.enable_writes()
            self.keyboard.enable_capture()
            self.terminal.reset()
            self.terminal.reset_block_tracking()

        if record:
            await self._notify_command_ran(history_entry or command)

    async def _notify_command_ran(self, command: str) -> None:
        for suggester in self.suggesters:
            on_command_ran = getattr(suggester, "on_command_ran", None)
            if on_command_ran is None:
                continue
            try:
                result = on_command_ran(command)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("%s.on_command_ran failed", type(suggester).__name__)

    # -- signals ------------------------------------------------------------

    def _ignore_sigint(self) -> object | None:
        """Keep Ctrl-C from ending caroushell while a child owns the terminal.

        The child still receives SIGINT: caught signals reset to their
        default disposition on exec.  Returns the handler to restore.
        """
        try:
            previous = signal.getsignal(signal.SIGINT)
            if previous is None:
                previous = signal.SIG_DFL
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, _ignore_signal)
        except (AttributeError, NotImplementedError, RuntimeError, ValueError):
            return None
        return previous

    def _restore_sigint(self, previous: object | None) -> None:
        if previous is None:
            return
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            signal.signal(signal.SIGINT, previous)
        except (AttributeError, NotImplementedError, RuntimeError, ValueError):
            pass

    # -- resize -------------------------------------------------------------

    def _install_resize_handler(self) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGWINCH, self.carousel.render)
        except (AttributeError, NotImplementedError, RuntimeError, ValueError):
            pass

    def _remove_resize_handler(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGWINCH)
        except (AttributeError, NotImplementedError, RuntimeError, ValueError):
            pass
