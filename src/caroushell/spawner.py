"""Runs confirmed command lines: a few built-ins, the rest via the shell."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shlex
import sys
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"
_DRIVE_RE = re.compile(r"^[a-zA-Z]:$")

_dir_stack: list[str] = []


class ExitRequested(Exception):
    """Raised by the ``exit`` built-in; the app shuts down cleanly."""

    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.code = code


def _shell_argv(command: str) -> list[str]:
    if IS_WINDOWS:
        return [os.environ.get("COMSPEC", "cmd.exe"), "/c", command]
    return [os.environ.get("SHELL") or "/bin/bash", "-c", command]


def _expand(arg: str) -> str:
    return os.path.expandvars(os.path.expanduser(arg))


def _print_stack() -> None:
    print(" ".join([os.getcwd(), *reversed(_dir_stack)]))


def _change_dir(target: str) -> bool:
    try:
        os.chdir(target)
    except OSError as e:
        print(f"cd: {target}: {e.strerror}", file=sys.stderr)
        return False
    return True


async def _cd(args: list[str]) -> None:
    if len(args) == 1:
        print(os.getcwd())
        return
    _change_dir(_expand(args[1]))


async def _pushd(args: list[str]) -> None:
    current = os.getcwd()
    if len(args) == 1:
        if not _dir_stack:
            print("pushd: no other directory", file=sys.stderr)
            return
        if not _change_dir(_dir_stack[-1]):
            return
        _dir_stack[-1] = current
    else:
        if not _change_dir(_expand(args[1])):
            return
        _dir_stack.append(current)
    _print_stack()


async def _popd(args: list[str]) -> None:
    if not _dir_stack:
        print("popd: directory stack empty", file=sys.stderr)
        return
    if not _change_dir(_dir_stack[-1]):
        return
    _dir_stack.pop()
    _print_stack()


async def _dirs(args: list[str]) -> None:
    _print_stack()


async def _exit(args: list[str]) -> None:
    code = 0
    if len(args) > 1:
        try:
            code = int(args[1])
        except ValueError:
            print(f"exit: {args[1]}: numeric argument required", file=sys.stderr)
            code = 2
    raise ExitRequested(code)


BUILT_IN_COMMANDS: dict[str, Callable[[list[str]], Awaitable[None]]] = {
    "cd": _cd,
    "pushd": _pushd,
    "popd": _popd,
    "dirs": _dirs,
    "exit": _exit,
}


def get_dir_stack() -> list[str]:
    return list(_dir_stack)


def clear_dir_stack() -> None:
    _dir_stack.clear()


async def run_user_command(command: str) -> bool:
    """Run *command* and return whether it belongs in history.

    Built-ins run in-process.  Anything else runs through the user's shell
    with the terminal's stdio inherited, so interactive programs work.
    """
    trimmed = command.strip()
    if not trimmed:
        return False

    if IS_WINDOWS and _DRIVE_RE.match(trimmed):
        _change_dir(trimmed + "\\")
        return True

    try:
        args = shlex.split(trimmed)
    except ValueError:
        args = []

    if args and args[0] in BUILT_IN_COMMANDS:
        await BUILT_IN_COMMANDS[args[0]](args)
        return True

    # Output of built-ins goes through sys.stdout; make sure it lands before
    # the child writes to the same terminal.
    sys.stdout.flush()
    try:
        proc = await asyncio.create_subprocess_exec(*_shell_argv(trimmed))
    except OSError as e:
        print(f"caroushell: failed to start shell: {e}", file=sys.stderr)
        logger.exception("Failed to spawn %r", trimmed)
        return True

    code = await proc.wait()
    if code != 0:
        logger.info("Command exited with %s: %s", code, trimmed)
    return True
