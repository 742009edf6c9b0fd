# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Built-in script commands.

A command handler takes the State and its arguments. It either finishes
synchronously and returns None, or returns a wait handle the engine awaits
to collect the command's (stdout, stderr). Asynchronous commands must not
block inside the handler: they start their work and return the handle.
"""

import asyncio
import os
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from io import StringIO
from typing import Callable, Dict, List, Optional, Tuple

from gscript.engine.errors import CommandError, ExitError, UsageError
from gscript.engine.state import State, WaitFunc

Handler = Callable[..., Optional[WaitFunc]]

DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$")
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


class Stop(Exception):
    """Raised by the stop command to end a script early and successfully."""

    pass


@dataclass
class CmdUsage:
    """Usage descriptor shown by the help command."""

    summary: str
    args: str = ""
    detail: List[str] = field(default_factory=list)
    is_async: bool = False


class Command:
    """A named behavior in the engine's command table."""

    def __init__(self, usage: CmdUsage, handler: Handler):
        self.usage = usage
        self.handler = handler

    def run(self, state: State, *args: str) -> Optional[WaitFunc]:
        return self.handler(state, *args)


def output(stdout: str = "", stderr: str = "") -> WaitFunc:
    """Wrap already-known output as a wait handle."""

    async def wait(state: State) -> Tuple[str, str]:
        return stdout, stderr

    return wait


def _cat(state: State, *args: str) -> Optional[WaitFunc]:
    if not args:
        raise UsageError()
    chunks = []
    for name in args:
        with open(state.path(name), encoding="utf-8", errors="replace") as f:
            chunks.append(f.read())
    return output("".join(chunks))


def _cd(state: State, *args: str) -> Optional[WaitFunc]:
    if len(args) != 1:
        raise UsageError()
    state.chdir(args[0])
    return None


def _cp(state: State, *args: str) -> Optional[WaitFunc]:
    if len(args) < 2:
        raise UsageError()
    dst = state.path(args[-1])
    dst_is_dir = os.path.isdir(dst)
    if len(args) > 2 and not dst_is_dir:
        raise CommandError(f"destination {args[-1]} is not a directory")

    for src in args[:-1]:
        target = os.path.join(dst, os.path.basename(src)) if dst_is_dir else dst
        # stdout and stderr name the last command's output
        if src in ("stdout", "stderr"):
            data = state.last_stdout if src == "stdout" else state.last_stderr
            with open(target, "w", encoding="utf-8") as f:
                f.write(data)
        else:
            shutil.copyfile(state.path(src), target)
    return None


def _echo(state: State, *args: str) -> Optional[WaitFunc]:
    return output(" ".join(args) + "\n")


def _env(state: State, *args: str) -> Optional[WaitFunc]:
    if not args:
        return output("".join(f"{entry}\n" for entry in state.environ()))

    lines = []
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep:
            state.setenv(key, value)
        else:
            value, _ = state.lookup_env(key)
            lines.append(f"{key}={value}\n")
    return output("".join(lines)) if lines else None


def _lookup_program(state: State, name: str) -> str:
    """Resolve a program name against the State's PATH."""
    if os.sep in name or (os.altsep and os.altsep in name):
        path = state.path(name)
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        raise CommandError(f"{name}: not an executable file")

    search_path, _ = state.lookup_env("PATH")
    found = shutil.which(name, path=search_path)
    if found is None:
        raise CommandError(f'exec: "{name}": executable file not found in $PATH')
    return found


async def _run_process(state: State, program: str, args: Tuple[str, ...]) -> Tuple[str, str, int]:
    proc = await asyncio.create_subprocess_exec(
        program,
        *args,
        cwd=state.pwd,
        env=state.environ_dict(),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    try:
        out, err = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
    return (
        out.decode("utf-8", errors="replace"),
        err.decode("utf-8", errors="replace"),
        proc.returncode,
    )


def _exec(state: State, *args: str) -> Optional[WaitFunc]:
    if not args:
        raise UsageError()
    program = _lookup_program(state, args[0])
    task = asyncio.ensure_future(_run_process(state, program, args[1:]))

    async def wait(s: State) -> Tuple[str, str]:
        try:
            stdout, stderr, returncode = await task
        except OSError as e:
            raise CommandError(str(e)) from e
        if returncode != 0:
            raise ExitError(returncode, stdout, stderr)
        return stdout, stderr

    return wait


def _exists(state: State, *args: str) -> Optional[WaitFunc]:
    args_list = list(args)
    readonly = executable = False
    while args_list and args_list[0] in ("-readonly", "-exec"):
        flag = args_list.pop(0)
        if flag == "-readonly":
            readonly = True
        else:
            executable = True
    if not args_list:
        raise UsageError()

    for name in args_list:
        path = state.path(name)
        if not os.path.lexists(path):
            raise CommandError(f"{name} does not exist")
        if readonly and os.access(path, os.W_OK):
            raise CommandError(f"{name} exists but is writable")
        if executable and not os.access(path, os.X_OK):
            raise CommandError(f"{name} exists but is not executable")
    return None


def _match(args: Tuple[str, ...], content: Callable[[List[str]], Tuple[str, str]]) -> None:
    """
    Shared implementation of grep, stdout and stderr.

    Supports -q (quiet) and -count=N. ``content`` receives the positional
    arguments left after the pattern and returns (text, display name).
    """
    args_list = list(args)
    count: Optional[int] = None
    while args_list and args_list[0].startswith("-") and len(args_list) > 1:
        flag = args_list.pop(0)
        if flag == "-q":
            continue
        if flag.startswith("-count="):
            try:
                count = int(flag[len("-count="):])
            except ValueError:
                raise UsageError(f"invalid count {flag!r}")
            if count < 1:
                raise UsageError("-count must be at least 1")
            continue
        raise UsageError(f"unknown flag {flag}")
    if not args_list:
        raise UsageError()

    try:
        pattern = re.compile(args_list[0], re.MULTILINE)
    except re.error as e:
        raise UsageError(f"invalid pattern: {e}")
    text, name = content(args_list[1:])

    matches = pattern.findall(text)
    if count is not None:
        if len(matches) != count:
            raise CommandError(f"found {len(matches)} matches for `{args_list[0]}` in {name}, want {count}")
    elif not matches:
        raise CommandError(f"no match for `{args_list[0]}` found in {name}")


def _grep(state: State, *args: str) -> Optional[WaitFunc]:
    def _read(rest: List[str]) -> Tuple[str, str]:
        if len(rest) != 1:
            raise UsageError()
        with open(state.path(rest[0]), encoding="utf-8", errors="replace") as f:
            return f.read(), rest[0]

    _match(args, _read)
    return None


def _stdout(state: State, *args: str) -> Optional[WaitFunc]:
    def _last(rest: List[str]) -> Tuple[str, str]:
        if rest:
            raise UsageError()
        return state.last_stdout, "stdout"

    _match(args, _last)
    return None


def _stderr(state: State, *args: str) -> Optional[WaitFunc]:
    def _last(rest: List[str]) -> Tuple[str, str]:
        if rest:
            raise UsageError()
        return state.last_stderr, "stderr"

    _match(args, _last)
    return None


def _help(state: State, *args: str) -> Optional[WaitFunc]:
    verbose = "-v" in args
    names = [a for a in args if a != "-v"]
    if state.engine is None:
        raise CommandError("help: no engine attached to state")

    buf = StringIO()
    state.engine.list_cmds(buf, verbose, *names)
    if not names:
        buf.write("\nconditions:\n\n")
        state.engine.list_conds(buf, state)
    return output(buf.getvalue())


def _mkdir(state: State, *args: str) -> Optional[WaitFunc]:
    if not args:
        raise UsageError()
    for name in args:
        os.makedirs(state.path(name), exist_ok=True)
    return None


def _mv(state: State, *args: str) -> Optional[WaitFunc]:
    if len(args) != 2:
        raise UsageError()
    os.replace(state.path(args[0]), state.path(args[1]))
    return None


def _pwd(state: State, *args: str) -> Optional[WaitFunc]:
    if args:
        raise UsageError()
    return output(state.getwd() + "\n")


def _rm(state: State, *args: str) -> Optional[WaitFunc]:
    if not args:
        raise UsageError()
    for name in args:
        path = state.path(name)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
    return None


def parse_duration(text: str) -> float:
    """Parse durations such as 100ms, 1.5s, 2m or a bare number of seconds."""
    match = DURATION_PATTERN.match(text.strip())
    if not match:
        raise UsageError(f"invalid duration {text!r}")
    return float(match.group(1)) * DURATION_UNITS[match.group(2)]


def _sleep(state: State, *args: str) -> Optional[WaitFunc]:
    if len(args) != 1:
        raise UsageError()
    seconds = parse_duration(args[0])

    async def wait(s: State) -> Tuple[str, str]:
        await asyncio.sleep(seconds)
        return "", ""

    return wait


def _stop(state: State, *args: str) -> Optional[WaitFunc]:
    raise Stop(" ".join(args))


def _wait(state: State, *args: str) -> Optional[WaitFunc]:
    if args:
        raise UsageError()

    async def wait(s: State) -> Tuple[str, str]:
        return await s.join_background()

    return wait


def default_commands() -> Dict[str, Command]:
    """Return a fresh table of the built-in commands."""
    return {
        "cat": Command(CmdUsage("concatenate files and print to the script's stdout buffer", "files..."), _cat),
        "cd": Command(CmdUsage("change the working directory", "dir"), _cd),
        "cp": Command(
            CmdUsage(
                "copy files to a target file or directory",
                "src... dst",
                ["src can include 'stdout' or 'stderr' to copy the last command's output."],
            ),
            _cp,
        ),
        "echo": Command(CmdUsage("display a line of text", "string..."), _echo),
        "env": Command(
            CmdUsage(
                "set or log the values of environment variables",
                "[key[=value]...]",
                ["With no arguments, print the script environment to the log."],
            ),
            _env,
        ),
        "exec": Command(
            CmdUsage(
                "run an executable program with arguments",
                "program [args...]",
                ["Note that 'exec' does not terminate the script (unlike Unix shells)."],
                is_async=True,
            ),
            _exec,
        ),
        "exists": Command(CmdUsage("check that files exist", "[-readonly] [-exec] file..."), _exists),
        "grep": Command(CmdUsage("find lines in a file that match a pattern", "[-count=N] [-q] 'pattern' file"), _grep),
        "help": Command(CmdUsage("log help text for commands and conditions", "[-v] name..."), _help),
        "mkdir": Command(CmdUsage("create directories, if they do not already exist", "path..."), _mkdir),
        "mv": Command(CmdUsage("rename a file or directory to a new path", "old new"), _mv),
        "pwd": Command(CmdUsage("print the current working directory"), _pwd),
        "rm": Command(CmdUsage("remove a file or directory", "path...", ["Directories are removed recursively."]), _rm),
        "sleep": Command(CmdUsage("sleep for a specified duration", "duration", is_async=True), _sleep),
        "stderr": Command(
            CmdUsage("find lines in the stderr buffer that match a pattern", "[-count=N] [-q] 'pattern'"),
            _stderr,
        ),
        "stdout": Command(
            CmdUsage("find lines in the stdout buffer that match a pattern", "[-count=N] [-q] 'pattern'"),
            _stdout,
        ),
        "stop": Command(
            CmdUsage("stop execution of the script", "[msg]", ["The script exits successfully."]),
            _stop,
        ),
        "wait": Command(CmdUsage("wait for completion of background commands"), _wait),
    }
