# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for the script engine."""

import os
import sys
from io import BytesIO, StringIO

import pytest

from gscript.engine import (
    CmdUsage,
    Command,
    CommandError,
    ConditionError,
    Context,
    Engine,
    ExecutionError,
    ExitError,
    State,
    UsageError,
    output,
    prefix_condition,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX programs")


@pytest.fixture
def state(tmp_path):
    environ = [f"PATH={os.environ.get('PATH', '')}", "GREETING=hello"]
    return State(Context.background().child(), str(tmp_path), environ)


async def _execute(engine, state, script, name="test"):
    log = StringIO()
    await engine.execute(state, name, StringIO(script), log)
    return log.getvalue()


class TestExecute:
    """Tests for Engine.execute."""

    @pytest.mark.asyncio
    async def test_echo_records_stdout_and_log(self, state):
        log = await _execute(Engine(), state, "echo hello world\n")

        assert state.stdout() == "hello world\n"
        assert state.last_stdout == "hello world\n"
        assert "> echo hello world" in log
        assert "[stdout]\nhello world\n" in log

    @pytest.mark.asyncio
    async def test_output_accumulates_across_commands(self, state):
        await _execute(Engine(), state, "echo one\necho two\n")

        assert state.stdout() == "one\ntwo\n"
        assert state.last_stdout == "two\n"

    @pytest.mark.asyncio
    async def test_comments_are_logged(self, state):
        log = await _execute(Engine(), state, "# setup\n\necho x\n")
        assert log.startswith("# setup\n")

    @pytest.mark.asyncio
    async def test_env_expansion(self, state):
        await _execute(Engine(), state, "echo $GREETING ${GREETING}!\n")
        assert state.stdout() == "hello hello!\n"

    @pytest.mark.asyncio
    async def test_reads_byte_streams(self, state):
        log = StringIO()
        await Engine().execute(state, "bytes", BytesIO(b"echo bytes\n"), log)
        assert state.stdout() == "bytes\n"

    @pytest.mark.asyncio
    async def test_unknown_command_is_terminal(self, state):
        with pytest.raises(ExecutionError, match=r"test:2: nosuch: unknown command"):
            await _execute(Engine(), state, "echo before\nnosuch\necho after\n")
        assert state.stdout() == "before\n"

    @pytest.mark.asyncio
    async def test_parse_error_is_terminal(self, state):
        with pytest.raises(ExecutionError, match="unterminated quoted argument"):
            await _execute(Engine(), state, "echo 'oops\n")

    @pytest.mark.asyncio
    async def test_usage_error_is_terminal_even_when_failure_allowed(self, state):
        with pytest.raises(ExecutionError) as exc_info:
            await _execute(Engine(), state, "? cd\n")
        assert isinstance(exc_info.value.cause, UsageError)

    @pytest.mark.asyncio
    async def test_expected_failure(self, state):
        log = await _execute(Engine(), state, "! exists missing.txt\n")
        assert "missing.txt does not exist" in log

    @pytest.mark.asyncio
    async def test_unexpected_success(self, state):
        with pytest.raises(ExecutionError, match="unexpected command success"):
            await _execute(Engine(), state, "! echo fine\n")

    @pytest.mark.asyncio
    async def test_optional_failure_continues(self, state):
        await _execute(Engine(), state, "? exists missing.txt\necho next\n")
        assert state.stdout() == "next\n"

    @pytest.mark.asyncio
    async def test_stop_ends_script_successfully(self, state):
        log = await _execute(Engine(), state, "echo a\nstop done here\necho b\n")
        assert state.stdout() == "a\n"
        assert "[stop: done here]" in log

    @pytest.mark.asyncio
    async def test_cancelled_context(self, tmp_path):
        root = Context.background()
        ctx = root.child()
        state = State(ctx, str(tmp_path), [])
        ctx.cancel()

        with pytest.raises(ExecutionError, match="context canceled"):
            await _execute(Engine(), state, "echo never\n")
        assert state.stdout() == ""

    @pytest.mark.asyncio
    async def test_background_requires_async_command(self, state):
        with pytest.raises(ExecutionError, match="does not support background"):
            await _execute(Engine(), state, "echo hi &\n")


class TestConditions:
    """Tests for [guard] evaluation."""

    @pytest.mark.asyncio
    async def test_unmet_condition_skips_command(self, state):
        engine = Engine()
        engine.conds["yes"] = prefix_condition("suffix is yes", lambda s, suffix: suffix == "yes")

        log = await _execute(engine, state, "[yes:no] echo skipped\n[yes:yes] echo ran\n[!yes:no] echo negated\n")

        assert state.stdout() == "ran\nnegated\n"
        assert "[condition not met]" in log

    @pytest.mark.asyncio
    async def test_unknown_condition(self, state):
        with pytest.raises(ExecutionError) as exc_info:
            await _execute(Engine(), state, "[nosuch] echo hi\n")
        assert isinstance(exc_info.value.cause, ConditionError)

    @pytest.mark.asyncio
    async def test_prefix_condition_requires_suffix(self, state):
        with pytest.raises(ExecutionError, match="requires a suffix"):
            await _execute(Engine(), state, "[exec] echo hi\n")

    @pytest.mark.asyncio
    async def test_plain_condition_rejects_suffix(self, state):
        with pytest.raises(ExecutionError, match="does not accept a suffix"):
            await _execute(Engine(), state, "[root:x] echo hi\n")

    @pytest.mark.asyncio
    async def test_predicate_error_is_terminal(self, state):
        def _broken(s, suffix):
            raise PermissionError("permission denied")

        engine = Engine()
        engine.conds["broken"] = prefix_condition("always fails", _broken)

        with pytest.raises(ExecutionError, match="permission denied"):
            await _execute(engine, state, "[broken:x] echo hi\n")


@posix_only
class TestExec:
    """Tests for the exec command and background handles."""

    @pytest.mark.asyncio
    async def test_exec_captures_output(self, state):
        await _execute(Engine(), state, "exec echo from-process\n")
        assert state.stdout() == "from-process\n"

    @pytest.mark.asyncio
    async def test_exec_runs_in_state_directory(self, state, tmp_path):
        (tmp_path / "sub").mkdir()
        await _execute(Engine(), state, "cd sub\nexec pwd\n")
        assert state.stdout().strip() == os.path.realpath(str(tmp_path / "sub"))

    @pytest.mark.asyncio
    async def test_exec_nonzero_exit(self, state):
        with pytest.raises(ExecutionError) as exc_info:
            await _execute(Engine(), state, "exec false\n")
        assert isinstance(exc_info.value.cause, ExitError)
        assert exc_info.value.cause.returncode == 1

    @pytest.mark.asyncio
    async def test_exec_missing_program(self, state):
        with pytest.raises(ExecutionError, match="executable file not found"):
            await _execute(Engine(), state, "exec definitely-not-a-real-program-xyz\n")

    @pytest.mark.asyncio
    async def test_background_joined_at_script_end(self, state):
        log = await _execute(Engine(), state, "exec echo later &\necho first\n")

        assert state.stdout() == "first\nlater\n"
        assert state.background == []
        assert log.index("> echo first") < log.index("[stdout]\nlater")

    @pytest.mark.asyncio
    async def test_wait_joins_background(self, state):
        await _execute(Engine(), state, "exec echo bg &\nwait\nstdout bg\n")
        assert state.stdout() == "bg\n"

    @pytest.mark.asyncio
    async def test_background_failure_reported_at_join(self, state):
        with pytest.raises(ExecutionError, match="exit status 1"):
            await _execute(Engine(), state, "exec false &\nwait\n")

    @pytest.mark.asyncio
    async def test_background_expected_failure(self, state):
        await _execute(Engine(), state, "! exec false &\nwait\n")


class TestCustomCommands:
    """Tests for registering commands into an engine's table."""

    @pytest.mark.asyncio
    async def test_registered_command_runs(self, state):
        engine = Engine()
        engine.cmds["shout"] = Command(
            CmdUsage("print arguments in upper case", "words..."),
            lambda s, *args: output(" ".join(args).upper() + "\n"),
        )
        await _execute(engine, state, "shout hi there\n")
        assert state.stdout() == "HI THERE\n"

    @pytest.mark.asyncio
    async def test_command_error_output_is_kept(self, state):
        def _fail(s, *args):
            raise CommandError("boom", stdout="partial\n", stderr="why\n")

        engine = Engine()
        engine.cmds["fail"] = Command(CmdUsage("always fails"), _fail)

        with pytest.raises(ExecutionError, match="boom"):
            await _execute(engine, state, "fail\n")
        assert state.stdout() == "partial\n"
        assert state.stderr() == "why\n"


class TestListing:
    """Tests for list_cmds and list_conds."""

    def test_list_cmds_verbose(self):
        out = StringIO()
        Engine().list_cmds(out, True, "exec")
        text = out.getvalue()
        assert text.startswith("exec program [args...]\n")
        assert "does not terminate the script" in text
        assert "asynchronously" in text

    def test_list_cmds_unknown(self):
        with pytest.raises(UsageError):
            Engine().list_cmds(StringIO(), False, "nosuch")

    def test_list_conds_shows_values(self, state):
        out = StringIO()
        Engine().list_conds(out, state)
        text = out.getvalue()
        assert "[exec:*]" in text
        assert "[root]" in text
