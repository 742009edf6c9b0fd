# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Script engine.

Owns the command and condition tables and executes scripts against a
State, writing an execution trace to a log stream:

    > echo hello
    [stdout]
    hello
"""

import logging
from typing import IO, Dict, Iterable, Optional, Union

from gscript.engine.commands import Command, Stop, default_commands
from gscript.engine.conditions import Condition, default_conditions
from gscript.engine.errors import (
    CommandError,
    ConditionError,
    ExecutionError,
    ParseError,
    ScriptError,
    UsageError,
)
from gscript.engine.parser import ParsedLine, parse_line
from gscript.engine.state import BackgroundCmd, Expect, State, check_expectation

logger = logging.getLogger(__name__)


def _log_output(log: IO[str], stdout: str, stderr: str) -> None:
    for label, text in (("stdout", stdout), ("stderr", stderr)):
        if text:
            log.write(f"[{label}]\n{text}")
            if not text.endswith("\n"):
                log.write("\n")


def _lines(script: Iterable[Union[str, bytes]]) -> Iterable[str]:
    for raw in script:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        yield raw.rstrip("\r\n")


class Engine:
    """Command and condition tables plus the script executor."""

    def __init__(
        self,
        cmds: Optional[Dict[str, Command]] = None,
        conds: Optional[Dict[str, Condition]] = None,
    ):
        self.cmds = default_commands() if cmds is None else cmds
        self.conds = default_conditions() if conds is None else conds

    async def execute(self, state: State, file: str, script: IO, log: IO[str]) -> None:
        """
        Run every line of ``script`` against ``state``.

        Commands run in source order. Background commands are joined when
        the script ends.

        Raises:
            ExecutionError: When a line fails; output recorded so far stays
                on the State and in the log.
        """
        state.engine = self
        lineno = 0
        try:
            for line in _lines(script):
                lineno += 1
                stripped = line.strip()
                if state.context.cancelled:
                    raise ExecutionError(file, lineno, stripped, ScriptError("context canceled"))
                if stripped.startswith("#"):
                    log.write(stripped + "\n")
                    continue

                try:
                    parsed = parse_line(line, state.expand_env)
                except ParseError as e:
                    log.write(f"[{e}]\n")
                    raise ExecutionError(file, lineno, stripped, e) from e
                if parsed is None:
                    continue

                log.write(f"> {parsed.raw}\n")
                try:
                    if not self._conds_hold(state, parsed):
                        log.write("[condition not met]\n")
                        continue
                    await self._run(state, parsed, log)
                except Stop as e:
                    log.write(f"[stop: {e}]\n" if str(e) else "[stop]\n")
                    logger.debug("%s:%d: script stopped", file, lineno)
                    break
                except ScriptError as e:
                    log.write(f"[{e}]\n")
                    raise ExecutionError(file, lineno, parsed.raw, e) from e
        except ExecutionError:
            await self._abandon_background(state, log)
            raise

        if state.background:
            try:
                stdout, stderr = await state.join_background()
            except CommandError as e:
                state.record_output(e.stdout, e.stderr)
                _log_output(log, e.stdout, e.stderr)
                log.write(f"[{e}]\n")
                raise ExecutionError(file, lineno, "wait", e) from e
            state.record_output(stdout, stderr)
            _log_output(log, stdout, stderr)

    def _conds_hold(self, state: State, parsed: ParsedLine) -> bool:
        for ref in parsed.conds:
            cond = self.conds.get(ref.name)
            if cond is None:
                raise ConditionError(f"unknown condition {ref.name!r}")
            if cond.usage.prefix and not ref.has_suffix:
                raise ConditionError(f"condition {ref} requires a suffix")
            if not cond.usage.prefix and ref.has_suffix:
                raise ConditionError(f"condition {ref.name!r} does not accept a suffix")
            try:
                ok = cond.eval(state, ref.suffix)
            except ScriptError:
                raise
            except Exception as e:
                raise ConditionError(f"{ref}: {e}") from e
            if ok == ref.negate:
                return False
        return True

    async def _run(self, state: State, parsed: ParsedLine, log: IO[str]) -> None:
        cmd = self.cmds.get(parsed.name)
        if cmd is None:
            raise ScriptError(f"unknown command {parsed.name!r}")
        if parsed.background and not cmd.usage.is_async:
            raise UsageError(f"{parsed.name} does not support background execution")

        err: Optional[CommandError] = None
        stdout = stderr = ""
        wait = None
        try:
            wait = cmd.run(state, *parsed.args)
            if wait is not None and parsed.background:
                state.background.append(BackgroundCmd(parsed.raw, wait, parsed.want))
                return
            if wait is not None:
                stdout, stderr = await wait(state)
        except CommandError as e:
            err, stdout, stderr = e, e.stdout, e.stderr
        except OSError as e:
            err = CommandError(str(e))

        if wait is not None or err is not None:
            state.record_output(stdout, stderr)
            _log_output(log, stdout, stderr)

        if err is not None and parsed.want != Expect.SUCCESS:
            log.write(f"[{err}]\n")
        message = check_expectation(parsed.want, err)
        if message is None:
            return
        if err is not None:
            raise err
        raise CommandError(message)

    async def _abandon_background(self, state: State, log: IO[str]) -> None:
        """Join background commands left behind by a failed script."""
        if not state.background:
            return
        try:
            await state.join_background()
        except CommandError as e:
            logger.debug("background command failed after script error: %s", e)
            log.write(f"[background: {e}]\n")

    def list_cmds(self, out: IO[str], verbose: bool, *names: str) -> None:
        """Write usage for the named commands (all commands if none named)."""
        for name in names or sorted(self.cmds):
            cmd = self.cmds.get(name)
            if cmd is None:
                raise UsageError(f"unknown command {name!r}")
            usage = cmd.usage
            out.write(f"{name} {usage.args}".rstrip() + "\n")
            out.write(f"\t{usage.summary}\n")
            if verbose:
                for detail in usage.detail:
                    out.write(f"\t{detail}\n")
                if usage.is_async:
                    out.write("\tThis command runs asynchronously and may be used with '&'.\n")
                out.write("\n")

    def list_conds(self, out: IO[str], state: Optional[State], *names: str) -> None:
        """Write usage for the named conditions (all conditions if none named)."""
        for name in names or sorted(self.conds):
            cond = self.conds.get(name)
            if cond is None:
                raise UsageError(f"unknown condition {name!r}")
            if cond.usage.prefix:
                out.write(f"[{name}:*]\n\t{cond.usage.summary}\n")
            elif state is not None:
                value = cond.eval(state, "")
                out.write(f"[{name}]\n\t{cond.usage.summary} ({str(value).lower()})\n")
            else:
                out.write(f"[{name}]\n\t{cond.usage.summary}\n")
