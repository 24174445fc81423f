"""End-to-end tests for caroushell.app.App driven through a fed keyboard."""

from __future__ import annotations

import asyncio
import os
import signal

import pytest

from caroushell.app import App, collapse_line_continuations
from caroushell.file_suggester import FileSuggester
from caroushell.keyboard import Keyboard
from caroushell.spawner import ExitRequested

from .recording_terminal import RecordingTerminal, StaticSuggester


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class CommandRecorder:
    """Stands in for the spawner; records commands and the app state seen."""

    def __init__(self, app_ref: list[App] | None = None, record: bool = True) -> None:
        self.commands: list[str] = []
        self.states: list[tuple[bool, bool]] = []
        self.app_ref = app_ref if app_ref is not None else []
        self.record = record
        self.error: BaseException | None = None

    async def __call__(self, command: str) -> bool:
        self.commands.append(command)
        if self.app_ref:
            app = self.app_ref[0]
            self.states.append((app.keyboard.active, app.terminal.writes_enabled))
        if self.error is not None:
            raise self.error
        return self.record


def make_app(
    history: list[str] | None = None,
    ai: list[str] | None = None,
    files=None,
) -> tuple[App, CommandRecorder]:
    ref: list[App] = []
    recorder = CommandRecorder(ref)
    app = App(
        terminal=RecordingTerminal(),
        keyboard=Keyboard(),
        history=StaticSuggester(history, prefix="⌛"),
        ai=StaticSuggester(ai, prefix="🤖"),
        files=files if files is not None else StaticSuggester(prefix="📂"),
        run_command=recorder,
    )
    ref.append(app)
    return app, recorder


async def type_keys(app: App, text: str) -> None:
    app.keyboard.feed(text)
    app.keyboard.flush()
    await app.wait_until_idle()


# ---------------------------------------------------------------------------
# Line continuation
# ---------------------------------------------------------------------------


class TestCollapse:
    def test_joins_lines(self) -> None:
        assert collapse_line_continuations("a \\\n   b") == "a b"

    def test_leaves_plain_newlines(self) -> None:
        assert collapse_line_continuations("a\nb") == "a\nb"

    def test_crlf(self) -> None:
        assert collapse_line_continuations("a\\\r\nb") == "ab"


# ---------------------------------------------------------------------------
# Typing and rendering
# ---------------------------------------------------------------------------


class TestTyping:
    @pytest.mark.asyncio
    async def test_first_frame(self) -> None:
        app, _ = make_app(history=["ls"], ai=["pwd"])
        await app.start()
        try:
            assert app.terminal.blocks[0] == ["---", "⌛ ls", "$> ", "🤖 pwd", "---"]
            assert app.keyboard.active
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_typed_text_appears_in_prompt(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "ls -la")
            assert app.carousel.input_buffer == "ls -la"
            assert "$> ls -la" in app.terminal.last_block
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_editing_keys(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "abcd")
            await type_keys(app, "\x1b[D\x1b[D\x7f")
            assert app.carousel.input_buffer == "acd"
            await type_keys(app, "\x1b[3~")
            assert app.carousel.input_buffer == "ad"
            await type_keys(app, "\x1b[F\x15")
            assert app.carousel.input_buffer == ""
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_arrows_browse_suggestions(self) -> None:
        app, _ = make_app(history=["git status"], ai=["pwd"])
        await app.start()
        try:
            await type_keys(app, "\x1b[A")
            assert app.carousel.selection_index == 1
            assert "👉 git status" in app.terminal.last_block
            await type_keys(app, "\x1b[B\x1b[B")
            assert app.carousel.selection_index == -1
        finally:
            await app.stop()


# ---------------------------------------------------------------------------
# Running commands
# ---------------------------------------------------------------------------


class TestEnter:
    @pytest.mark.asyncio
    async def test_runs_typed_command(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "echo hi\r")
            assert recorder.commands == ["echo hi"]
            assert app.carousel.input_buffer == ""
            assert ["$> echo hi"] in app.terminal.blocks
            assert app.terminal.last_block[2] == "$> "
            assert app.history.ran == ["echo hi"]
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_line_continuation(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "echo 123\\\r")
            assert recorder.commands == []
            assert app.carousel.input_buffer == "echo 123\\\n"
            await type_keys(app, "x\\\r")
            await type_keys(app, " y\\\r")
            await type_keys(app, " z\r")
            assert recorder.commands == ["echo 123xyz"]
            assert app.history.ran == ["echo 123\\\nx\\\n y\\\n z"]
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_continuation_needs_backslash_at_line_end(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "a\\b\x1b[D\r")
            assert recorder.commands == ["a\\b"]
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_continuation_breaks_at_line_end(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "echo 123\\\x1b[D\x1b[D\r")
            assert recorder.commands == []
            assert app.carousel.input_buffer == "echo 123\\\n"
            assert app.carousel.cursor_index == len("echo 123\\\n")
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_enter_runs_selected_suggestion(self) -> None:
        app, recorder = make_app(history=["git status"])
        await app.start()
        try:
            await type_keys(app, "\x1b[A\r")
            assert recorder.commands == ["git status"]
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_empty_enter_skips_runner(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "\r")
            assert recorder.commands == []
            assert ["$>"] in app.terminal.blocks
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_capture_and_writes_suspended_during_command(self) -> None:
        app, recorder = make_app()
        await app.start()
        try:
            await type_keys(app, "vim\r")
            assert recorder.states == [(False, False)]
            assert app.keyboard.active
            assert app.terminal.writes_enabled
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_state_restored_after_runner_error(self) -> None:
        app, recorder = make_app()
        recorder.error = RuntimeError("spawn failed")
        await app.start()
        try:
            await type_keys(app, "boom\r")
            assert app.keyboard.active
            assert app.terminal.writes_enabled
            assert app.history.ran == []
            assert not app.exit_requested
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_not_recorded_when_runner_says_so(self) -> None:
        app, recorder = make_app()
        recorder.record = False
        await app.start()
        try:
            await type_keys(app, "secret\r")
            assert app.history.ran == []
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_exit_builtin_requests_exit(self) -> None:
        app, recorder = make_app()
        recorder.error = ExitRequested(3)
        await app.start()
        try:
            await type_keys(app, "exit 3\r")
            assert app.exit_requested
        finally:
            await app.stop()


# ---------------------------------------------------------------------------
# Tab completion and source switching
# ---------------------------------------------------------------------------


class TestSources:
    @pytest.mark.asyncio
    async def test_tab_switches_to_files_and_escape_back(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "\t")
            assert app.carousel.top is app.files
            await type_keys(app, "\x1b")
            assert app.carousel.top is app.history
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_tab_completes_unique_file(self, tmp_path) -> None:
        (tmp_path / "readme.md").write_text("hi")
        (tmp_path / "setup.cfg").write_text("")
        app, _ = make_app(files=FileSuggester(cwd=tmp_path))
        await app.start()
        try:
            await type_keys(app, "cat rea\t")
            assert app.carousel.input_buffer == "cat readme.md"
            assert app.carousel.cursor_index == len("cat readme.md")
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_running_command_restores_history(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "\tls\r")
            assert app.carousel.top is app.history
        finally:
            await app.stop()


# ---------------------------------------------------------------------------
# Exit gestures
# ---------------------------------------------------------------------------


class TestExitGestures:
    @pytest.mark.asyncio
    async def test_ctrl_c_clears_then_exits(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "abc\x03")
            assert app.carousel.input_buffer == ""
            assert not app.exit_requested
            await type_keys(app, "\x03")
            assert app.exit_requested
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_ctrl_d_deletes_then_exits(self) -> None:
        app, _ = make_app()
        await app.start()
        try:
            await type_keys(app, "ab\x1b[H\x04")
            assert app.carousel.input_buffer == "b"
            assert not app.exit_requested
            await type_keys(app, "\x04\x04")
            assert app.exit_requested
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_run_returns_after_exit(self) -> None:
        app, _ = make_app()
        task = asyncio.create_task(app.run())
        while not app.keyboard.active:
            await asyncio.sleep(0)
        app.keyboard.feed("\x03")
        assert await asyncio.wait_for(task, timeout=1) == 0
        assert not app.keyboard.active
        assert app.terminal.output().endswith("\x1b[?25h")

    @pytest.mark.asyncio
    async def test_input_eof_exits(self) -> None:
        read_fd, write_fd = os.pipe()
        app = App(
            terminal=RecordingTerminal(),
            keyboard=Keyboard(read_fd),
            history=StaticSuggester(),
            ai=StaticSuggester(),
            files=StaticSuggester(),
            run_command=CommandRecorder(),
        )
        try:
            task = asyncio.create_task(app.run())
            while not app.keyboard.active:
                await asyncio.sleep(0)
            os.close(write_fd)
            assert await asyncio.wait_for(task, timeout=1) == 0
        finally:
            os.close(read_fd)


# ---------------------------------------------------------------------------
# Interrupts while a command runs
# ---------------------------------------------------------------------------


class TestInterrupt:
    @pytest.mark.asyncio
    async def test_sigint_during_command_does_not_reach_shell(self) -> None:
        interrupted: list[int] = []

        def on_sigint(signum, frame) -> None:
            interrupted.append(signum)

        async def interrupted_command(command: str) -> bool:
            os.kill(os.getpid(), signal.SIGINT)
            await asyncio.sleep(0.05)
            return True

        previous = signal.signal(signal.SIGINT, on_sigint)
        try:
            app, _ = make_app()
            app._run_user_command = interrupted_command
            await app.start()
            try:
                await type_keys(app, "sleep 10\r")
                assert not app.exit_requested
                assert app.history.ran == ["sleep 10"]
                assert interrupted == []
                assert signal.getsignal(signal.SIGINT) is on_sigint
            finally:
                await app.stop()
        finally:
            signal.signal(signal.SIGINT, previous)

    @pytest.mark.asyncio
    async def test_sigint_handler_restored_after_failed_command(self) -> None:
        def on_sigint(signum, frame) -> None:
            pass

        previous = signal.signal(signal.SIGINT, on_sigint)
        try:
            app, recorder = make_app()
            recorder.error = RuntimeError("spawn failed")
            await app.start()
            try:
                await type_keys(app, "boom\r")
                assert signal.getsignal(signal.SIGINT) is on_sigint
            finally:
                await app.stop()
        finally:
            signal.signal(signal.SIGINT, previous)
