# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Output presentation.

Decides which of a run's three channels (stdout, stderr, log) reach the
terminal. The log wins: when it is shown, stdout and stderr are not.
"""

from dataclasses import dataclass

import typer


@dataclass(frozen=True)
class OutputOptions:
    """Which channels the user asked to see."""

    show_log: bool = False
    show_stdout: bool = False
    show_stderr: bool = False


def _echo_block(text: str, err: bool = False) -> None:
    typer.echo(text, nl=not text.endswith("\n"), err=err)


def present_streams(stdout: str, stderr: str) -> None:
    """Print stdout and stderr, labeling each when both are non-empty."""
    labeled = bool(stdout) and bool(stderr)
    if stdout:
        if labeled:
            typer.echo("[stdout]")
        _echo_block(stdout)
    if stderr:
        if labeled:
            typer.echo("[stderr]", err=True)
        _echo_block(stderr, err=True)


def present(options: OutputOptions, stdout: str, stderr: str, log: str) -> None:
    """Print the channels selected by ``options``."""
    if options.show_log:
        if log:
            _echo_block(log)
        return

    present_streams(
        stdout if options.show_stdout else "",
        stderr if options.show_stderr else "",
    )
