from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipper.core.config import CONFIG_FILENAME, Config, load_config_or_default
from shipper.core.errors import ErrorCode
from shipper.core.result import Err
from shipper.output.console import ConsoleProtocol, RichConsole
from shipper.pipeline.version import read_package_name

CONFIG_ENV = "SHIPPER_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    tool: str
    console: ConsoleProtocol


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve() / CONFIG_FILENAME


def build_context(*, stderr: bool = False) -> CLIContext:
    path = config_path()
    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    config = config_result.value

    tool = config.tool
    if tool is None:
        name = read_package_name(config.project_root)
        if isinstance(name, Err):
            typer.echo(f"error: {name.error.message}", err=True)
            typer.echo(f"hint: set `tool` in {CONFIG_FILENAME}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        tool = name.value

    return CLIContext(config=config, tool=tool, console=RichConsole(stderr=stderr))
