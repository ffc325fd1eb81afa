from __future__ import annotations

import os
from pathlib import Path

import typer

from shipper import __version__
from shipper.cli.commands.build_cmd import build
from shipper.cli.commands.publish_cmd import publish
from shipper.cli.commands.run_cmd import run
from shipper.cli.commands.version_cmd import version as version_cmd
from shipper.cli.commands.workflow_cmd import workflow
from shipper.cli.context import CONFIG_ENV
from shipper.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command("version")(version_cmd)
app.command()(build)
app.command()(publish)
app.command()(run)
app.command()(workflow)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to shipper.toml (default: ./shipper.toml)",
    ),
) -> None:
    del version
    if config is not None:
        try:
            path = config.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --config: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        os.environ[CONFIG_ENV] = str(path)


def main() -> None:
    app()
