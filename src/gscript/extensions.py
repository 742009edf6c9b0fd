# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Extensions registered into every engine gscript builds.

- execx: exec, with whitespace inside arguments expanded into separate
  arguments
- file / file-exists: a path exists
- env / env-set: an environment variable is set and non-blank
"""

import logging
import os
from typing import List, Optional, Sequence

from gscript.engine import (
    CmdUsage,
    Command,
    Condition,
    Engine,
    State,
    UsageError,
    WaitFunc,
    prefix_condition,
)

logger = logging.getLogger(__name__)

# Condition names for each naming scheme: (file exists, env set)
CONDITION_NAMES = {
    "short": ("file", "env"),
    "descriptive": ("file-exists", "env-set"),
}


def expand_args(args: Sequence[str]) -> List[str]:
    """
    Split every argument on spaces and tabs and flatten the pieces.

    Args:
        args: Raw command arguments.

    Returns:
        The non-empty pieces, in order.

    Raises:
        UsageError: If ``args`` is empty.

    Example:
        >>> expand_args(["a b", "c"])
        ['a', 'b', 'c']
    """
    if not args:
        raise UsageError()

    expanded = []
    for arg in args:
        for piece in arg.replace("\t", " ").split(" "):
            piece = piece.strip()
            if piece:
                expanded.append(piece)
    return expanded


def exec_expand(name: str, exec_cmd: Command) -> Command:
    """Wrap ``exec_cmd`` so its arguments are expanded before it runs."""

    def _run(state: State, *args: str) -> Optional[WaitFunc]:
        expanded = expand_args(args)
        logger.debug("%s: expanded %r -> %r", name, list(args), expanded)
        return exec_cmd.run(state, *expanded)

    return Command(
        CmdUsage(
            summary="run an executable program with arguments",
            args="program [args...]",
            detail=[
                f"Note that '{name}' does not terminate the script (unlike Unix shells).",
                "Unlike 'exec', arguments with spaces will be expanded into separate arguments.",
            ],
            is_async=True,
        ),
        _run,
    )


def file_exists() -> Condition:
    """Condition that holds when its suffix names an existing path.

    Relative paths resolve against the script's working directory. An
    empty suffix names no path and is false. Only "not found" counts as
    false; other errors (permission denied, a file used as a directory)
    fail the script.
    """

    def _check(state: State, suffix: str) -> bool:
        if not suffix:
            return False
        try:
            os.stat(state.path(suffix))
        except FileNotFoundError:
            return False
        return True

    return prefix_condition("<suffix> is a file that exists", _check)


def env_is_set() -> Condition:
    """Condition that holds when its suffix names a non-blank variable."""

    def _check(state: State, suffix: str) -> bool:
        value, _ = state.lookup_env(suffix)
        return value.strip() != ""

    return prefix_condition("<suffix> is an environment variable that is set and non-blank", _check)


def register(engine: Engine, naming: str = "short") -> Engine:
    """
    Install execx and the file/env conditions into ``engine``.

    Args:
        engine: Engine whose tables are updated in place.
        naming: "short" (file, env) or "descriptive" (file-exists, env-set).

    Returns:
        The same engine, for chaining.
    """
    if naming not in CONDITION_NAMES:
        raise ValueError(f"unknown condition naming scheme: {naming}")
    file_name, env_name = CONDITION_NAMES[naming]

    engine.cmds["execx"] = exec_expand("execx", engine.cmds["exec"])
    engine.conds[file_name] = file_exists()
    engine.conds[env_name] = env_is_set()
    return engine
