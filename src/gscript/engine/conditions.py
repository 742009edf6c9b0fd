# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Built-in script conditions (the [guard] words in front of a command)."""

import os
import shutil
import sys
from dataclasses import dataclass
from typing import Callable, Dict

from gscript.engine.errors import ConditionError
from gscript.engine.state import State

Predicate = Callable[[State, str], bool]


@dataclass
class CondUsage:
    """Usage descriptor for a condition.

    Prefix conditions take a suffix after a colon, as in [exec:git].
    """

    summary: str
    prefix: bool = False


class Condition:
    """A named boolean check usable to gate command execution."""

    def __init__(self, usage: CondUsage, predicate: Predicate):
        self.usage = usage
        self.predicate = predicate

    def eval(self, state: State, suffix: str) -> bool:
        return bool(self.predicate(state, suffix))


def prefix_condition(summary: str, predicate: Predicate) -> Condition:
    """Build a condition that requires a suffix argument."""
    return Condition(CondUsage(summary, prefix=True), predicate)


def bool_condition(summary: str, value: bool) -> Condition:
    """Build a condition with a fixed value."""
    return Condition(CondUsage(summary), lambda _state, _suffix: value)


def _has_program(state: State, suffix: str) -> bool:
    if not suffix:
        raise ConditionError("exec condition requires a program name")
    search_path, _ = state.lookup_env("PATH")
    return shutil.which(suffix, path=search_path) is not None


def _is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def default_conditions() -> Dict[str, Condition]:
    """Return a fresh table of the built-in conditions."""
    return {
        "exec": prefix_condition("<suffix> names an executable in the script's PATH", _has_program),
        "os": prefix_condition(
            "sys.platform starts with <suffix>",
            lambda _state, suffix: sys.platform.startswith(suffix),
        ),
        "root": bool_condition("the process is running as root", _is_root()),
    }
