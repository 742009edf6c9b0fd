# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for gscript.

Run modes:
- gscript -c 'script text'      run an inline script
- gscript a.gs b.gs             run script files in order, stop at first failure
- gscript < script.gs           run stdin as one script
- gscript -i                    run stdin line by line (interactive)
"""

import logging
import sys
from io import StringIO
from typing import List, Optional

import typer

from gscript.config import ConfigError, GScriptConfig, load_config
from gscript.engine import ScriptError
from gscript.output import OutputOptions, present
from gscript.runner import RunResult, run_file, run_interactive, run_script

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="gscript",
    help="Run line-oriented scripts and show their stdout, stderr or execution log.",
    add_completion=False,
    context_settings={"help_option_names": ["-help", "--help", "-h"]},
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report(result: RunResult, options: OutputOptions, exit_code: int) -> None:
    """Present a run's channels; exit with ``exit_code`` if it failed."""
    present(options, result.stdout, result.stderr, result.log)
    if result.error is not None:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(exit_code)


@app.command()
def run(
    scripts: Optional[List[str]] = typer.Argument(None, help="Script files to run, in order"),
    cmd: Optional[str] = typer.Option(None, "-c", help="Single command to run"),
    interactive: bool = typer.Option(
        False, "-i", help="Run stdin line by line (only without scripts and -c)"
    ),
    show_log: bool = typer.Option(False, "-log", "--log", help="Show output log"),
    show_stdout: bool = typer.Option(False, "-stdout", "--stdout", help="Print stdout of the script"),
    show_stderr: bool = typer.Option(False, "-stderr", "--stderr", help="Print stderr of the script"),
    config_path: Optional[str] = typer.Option(None, "-config", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
):
    """Run gscript scripts from -c, files, or stdin."""
    _setup_logging(verbose)

    try:
        config = load_config(config_path)
    except (ConfigError, FileNotFoundError) as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(2)

    options = OutputOptions(
        show_log=show_log or config.log,
        show_stdout=show_stdout or config.stdout,
        show_stderr=show_stderr or config.stderr,
    )
    scripts = scripts or []

    if cmd:
        _report(run_script("command", StringIO(cmd), config), options, exit_code=1)

    for i, path in enumerate(scripts, 1):
        _report(run_file(path, config), options, exit_code=i)

    if cmd or scripts:
        return

    if interactive:
        _run_interactive(config, options)
    else:
        _report(run_script("stdin", _stdin_bytes(), config), options, exit_code=1)


def _stdin_bytes():
    return getattr(sys.stdin, "buffer", sys.stdin)


def _run_interactive(config: GScriptConfig, options: OutputOptions) -> None:
    try:
        log = run_interactive(_stdin_bytes(), config)
    except ScriptError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if options.show_log and log:
        typer.echo(log, nl=not log.endswith("\n"))


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
