# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Error kinds raised by the script engine."""

from typing import Optional


class ScriptError(Exception):
    """Base class for all script engine errors."""

    pass


class UsageError(ScriptError):
    """Raised when a command is called with wrong or missing arguments."""

    def __init__(self, message: str = "usage error"):
        super().__init__(message)


class ParseError(ScriptError):
    """Raised when a script line cannot be tokenized."""

    pass


class ContextError(ScriptError):
    """Raised when an execution state cannot be constructed."""

    pass


class SourceError(ScriptError):
    """Raised when a script source cannot be opened or read."""

    pass


class ConditionError(ScriptError):
    """Raised when a guard cannot be evaluated."""

    pass


class CommandError(ScriptError):
    """Raised when a command fails.

    Carries whatever output the command produced before failing so the
    engine can still record it.
    """

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class ExitError(CommandError):
    """Raised when an executed program exits with a non-zero status."""

    def __init__(self, returncode: int, stdout: str = "", stderr: str = ""):
        super().__init__(f"exit status {returncode}", stdout, stderr)
        self.returncode = returncode


class ExecutionError(ScriptError):
    """Terminal error for a script, located at the failing line."""

    def __init__(self, name: str, lineno: int, line: str, cause: Exception):
        self.name = name
        self.lineno = lineno
        self.line = line
        self.cause: Optional[Exception] = cause
        super().__init__(f"{name}:{lineno}: {line}: {cause}")
