# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Script runner for gscript.

Builds a fresh engine and execution state for every script, runs the
script to completion and gathers its three output channels. The
interactive loop instead keeps one engine and state alive for the whole
session.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import IO, Iterable, Optional

import typer

from gscript.config import GScriptConfig
from gscript.engine import Context, Engine, ScriptError, SourceError, State
from gscript.extensions import register
from gscript.output import present_streams

logger = logging.getLogger(__name__)

# A line consisting only of this word ends an interactive session.
SENTINEL = "stop"


@dataclass
class RunResult:
    """Captured channels of one script run.

    ``error`` is None when the script ran to completion. Output produced
    before a failure is still present.
    """

    stdout: str = ""
    stderr: str = ""
    log: str = ""
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None


class LoopState(Enum):
    """States of the interactive loop."""

    AWAITING_LINE = "awaiting-line"
    EXECUTING_LINE = "executing-line"
    STOPPED = "stopped"


def new_engine(config: Optional[GScriptConfig] = None) -> Engine:
    """Build an engine with the gscript extensions registered."""
    config = config or GScriptConfig()
    return register(Engine(), naming=config.condition_names)


def new_state(workdir: str = ".", environ: Optional[Iterable[str]] = None) -> State:
    """
    Build a fresh execution state.

    Args:
        workdir: Working directory for the state.
        environ: KEY=VALUE entries; defaults to a snapshot of os.environ
            taken now.

    Raises:
        ContextError: If the working directory or environment is unusable.
    """
    if environ is None:
        environ = [f"{key}={value}" for key, value in os.environ.items()]
    return State(Context.background().child(), os.path.expanduser(workdir), list(environ))


def run_script(name: str, source: IO, config: Optional[GScriptConfig] = None) -> RunResult:
    """
    Run one script against a fresh engine and state.

    Args:
        name: Display name used in diagnostics.
        source: Readable stream of script text.
        config: Settings; defaults apply when None.

    Returns:
        RunResult with stdout, stderr, log and the terminal error (if any).
    """
    config = config or GScriptConfig()
    engine = new_engine(config)
    log = StringIO()

    try:
        state = new_state(config.workdir)
    except ScriptError as e:
        logger.error("Cannot create execution state for %s: %s", name, e)
        return RunResult(error=e)

    logger.info("Running script: %s", name)
    error: Optional[Exception] = None
    try:
        asyncio.run(engine.execute(state, name, source, log))
    except ScriptError as e:
        logger.debug("Script %s failed: %s", name, e)
        error = e
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Reading script %s failed: %s", name, e)
        error = SourceError(f"read {name}: {e}")

    return RunResult(
        stdout=state.stdout(),
        stderr=state.stderr(),
        log=log.getvalue(),
        error=error,
    )


def run_file(path: str, config: Optional[GScriptConfig] = None) -> RunResult:
    """Run a script file. Open failures are returned as a SourceError.

    The file is read as bytes; invalid UTF-8 is replaced rather than
    rejected.
    """
    try:
        f = open(path, "rb")
    except OSError as e:
        return RunResult(error=SourceError(f"open {path}: {e.strerror or e}"))
    with f:
        return run_script(path, f, config)


async def _read_line(stream: IO) -> str:
    loop = asyncio.get_running_loop()
    line = await loop.run_in_executor(None, stream.readline)
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    return line


async def _interactive(stream: IO, config: GScriptConfig) -> str:
    engine = new_engine(config)
    state = new_state(config.workdir)
    log = StringIO()
    prompt = stream.isatty() if hasattr(stream, "isatty") else False

    loop_state = LoopState.AWAITING_LINE
    while loop_state != LoopState.STOPPED:
        if prompt:
            typer.echo("> ", nl=False, err=True)
        line = await _read_line(stream)
        if not line or line.strip() == SENTINEL:
            loop_state = LoopState.STOPPED
            continue

        loop_state = LoopState.EXECUTING_LINE
        stdout_mark, stderr_mark = len(state.stdout()), len(state.stderr())
        try:
            await engine.execute(state, "stdin", StringIO(line), log)
        except ScriptError as e:
            typer.echo(f"Error: {e}", err=True)
        else:
            present_streams(state.stdout()[stdout_mark:], state.stderr()[stderr_mark:])
        loop_state = LoopState.AWAITING_LINE

    logger.debug("Interactive session stopped")
    return log.getvalue()


def run_interactive(stream: IO, config: Optional[GScriptConfig] = None) -> str:
    """
    Execute ``stream`` one line at a time against one persistent state.

    Stops at end of input or at a line reading ``stop``. Per-line errors are
    printed and the session continues.

    Returns:
        The execution log accumulated across all lines.

    Raises:
        ContextError: If the execution state cannot be created.
    """
    return asyncio.run(_interactive(stream, config or GScriptConfig()))
