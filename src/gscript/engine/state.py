# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Execution state for scripts.

A State holds everything a script mutates while it runs: the working
directory, the environment, the accumulated output buffers and any
commands still running in the background.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Tuple

from gscript.engine.errors import CommandError, ContextError

if TYPE_CHECKING:
    from gscript.engine.engine import Engine


# A wait handle: awaiting it yields the command's (stdout, stderr).
WaitFunc = Callable[["State"], Awaitable[Tuple[str, str]]]

ENV_PATTERN = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z0-9_]+)")


class Context:
    """Cancellation scope.

    Scopes form a tree rooted at ``Context.background()``; cancelling a
    scope cancels every scope derived from it.
    """

    def __init__(self, parent: Optional["Context"] = None):
        self.parent = parent
        self._cancelled = False

    @classmethod
    def background(cls) -> "Context":
        """Return a new root scope. Nothing ever cancels it."""
        return cls()

    def child(self) -> "Context":
        return Context(parent=self)

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self.parent is not None and self.parent.cancelled


class Expect(Enum):
    """What a command line expects of its command's outcome."""

    SUCCESS = "success"
    FAILURE = "failure"  # '!' prefix
    ANY = "any"  # '?' prefix


def check_expectation(want: Expect, err: Optional[Exception]) -> Optional[str]:
    """Return a failure message when the outcome does not match ``want``."""
    if want == Expect.SUCCESS and err is not None:
        return str(err)
    if want == Expect.FAILURE and err is None:
        return "unexpected command success"
    return None


@dataclass
class BackgroundCmd:
    """A command started with a trailing '&'."""

    line: str
    wait: WaitFunc
    want: Expect


class State:
    """Mutable state a script runs against."""

    def __init__(self, context: Context, workdir: str, environ: List[str]):
        try:
            pwd = os.path.abspath(workdir)
        except OSError as e:
            raise ContextError(f"cannot determine working directory: {e}") from e
        if not os.path.isdir(pwd):
            raise ContextError(f"working directory {pwd} is not a directory")

        self.context = context
        self.pwd = pwd
        self._env: Dict[str, str] = {}
        for entry in environ:
            key, sep, value = entry.partition("=")
            if not sep or not key:
                raise ContextError(f"malformed environment entry: {entry!r}")
            self._env[key] = value
        self._env["PWD"] = pwd

        self._stdout = StringIO()
        self._stderr = StringIO()
        self.last_stdout = ""
        self.last_stderr = ""
        self.background: List[BackgroundCmd] = []
        self.engine: Optional["Engine"] = None

    def getwd(self) -> str:
        return self.pwd

    def chdir(self, path: str) -> None:
        """Change the working directory, relative to the current one."""
        target = self.path(path)
        if not os.path.isdir(target):
            raise CommandError(f"{path}: not a directory")
        self.pwd = target
        self._env["PWD"] = target

    def path(self, path: str) -> str:
        """Resolve ``path`` against the working directory."""
        return os.path.normpath(os.path.join(self.pwd, os.path.expanduser(path)))

    def lookup_env(self, key: str) -> Tuple[str, bool]:
        if key in self._env:
            return self._env[key], True
        return "", False

    def setenv(self, key: str, value: str) -> None:
        if not key or "=" in key:
            raise CommandError(f"invalid environment variable name: {key!r}")
        self._env[key] = value

    def environ(self) -> List[str]:
        """Return the environment as a list of KEY=VALUE strings."""
        return [f"{k}={v}" for k, v in self._env.items()]

    def environ_dict(self) -> Dict[str, str]:
        return dict(self._env)

    def expand_env(self, s: str) -> str:
        """
        Expand $NAME and ${NAME} from the environment.

        ${/} and ${:} expand to the path and path-list separators.
        """

        def _replace(match: "re.Match[str]") -> str:
            name = match.group(1) if match.group(1) is not None else match.group(2)
            if name == "/":
                return os.sep
            if name == ":":
                return os.pathsep
            return self._env.get(name, "")

        return ENV_PATTERN.sub(_replace, s)

    def stdout(self) -> str:
        """Return all standard output accumulated so far."""
        return self._stdout.getvalue()

    def stderr(self) -> str:
        """Return all standard error accumulated so far."""
        return self._stderr.getvalue()

    def record_output(self, stdout: str, stderr: str) -> None:
        self.last_stdout = stdout
        self.last_stderr = stderr
        self._stdout.write(stdout)
        self._stderr.write(stderr)

    async def join_background(self) -> Tuple[str, str]:
        """
        Wait for every background command, in the order they were started.

        Returns:
            Combined (stdout, stderr) of the joined commands.

        Raises:
            CommandError: If any command's outcome did not match its prefix.
        """
        pending, self.background = self.background, []
        stdout_parts, stderr_parts, failures = [], [], []
        for bg in pending:
            err: Optional[Exception] = None
            try:
                stdout, stderr = await bg.wait(self)
            except CommandError as e:
                stdout, stderr, err = e.stdout, e.stderr, e
            stdout_parts.append(stdout)
            stderr_parts.append(stderr)
            message = check_expectation(bg.want, err)
            if message:
                failures.append(f"{bg.line}: {message}")

        stdout, stderr = "".join(stdout_parts), "".join(stderr_parts)
        if failures:
            raise CommandError("; ".join(failures), stdout, stderr)
        return stdout, stderr
