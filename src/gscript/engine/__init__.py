# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Line-oriented script engine: command and condition tables, state, executor."""

from gscript.engine.commands import CmdUsage, Command, default_commands, output
from gscript.engine.conditions import (
    CondUsage,
    Condition,
    bool_condition,
    default_conditions,
    prefix_condition,
)
from gscript.engine.engine import Engine
from gscript.engine.errors import (
    CommandError,
    ConditionError,
    ContextError,
    ExecutionError,
    ExitError,
    ParseError,
    ScriptError,
    SourceError,
    UsageError,
)
from gscript.engine.state import Context, State, WaitFunc

__all__ = [
    "CmdUsage",
    "Command",
    "default_commands",
    "output",
    "CondUsage",
    "Condition",
    "bool_condition",
    "default_conditions",
    "prefix_condition",
    "Engine",
    "CommandError",
    "ConditionError",
    "ContextError",
    "ExecutionError",
    "ExitError",
    "ParseError",
    "ScriptError",
    "SourceError",
    "UsageError",
    "Context",
    "State",
    "WaitFunc",
]
