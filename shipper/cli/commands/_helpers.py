from __future__ import annotations

import os
from pathlib import Path
from typing import NoReturn

import typer

from shipper.core.errors import ErrorCode
from shipper.core.result import Err
from shipper.output.console import ConsoleProtocol
from shipper.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.publish import GitHubCredential
from shipper.pipeline.semver import SemVer, parse_version
from shipper.pipeline.version import resolve_version


def exit_with(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


def exit_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> NoReturn:
    print_pipeline_error(error, console)
    raise typer.Exit(code=pipeline_error_exit_code(error))


def credential_from_env(token_env: str) -> GitHubCredential:
    """Read the release token at the CLI edge and wrap it as a capability."""
    token = os.environ.get(token_env, "").strip()
    if not token:
        exit_with(
            f"{token_env} is not set (needed to create the release)",
            code=ErrorCode.ENV_ERROR,
        )
    return GitHubCredential(token=token)


def version_or_resolve(
    version: str | None, *, project_root: Path, console: ConsoleProtocol
) -> SemVer:
    """Use an explicitly passed version, or fall back to the Cargo manifest."""
    if version is not None:
        parsed = parse_version(version.removeprefix("v"))
        if parsed is None:
            exit_with(
                f"invalid --version (expected MAJOR.MINOR.PATCH): {version}",
                code=ErrorCode.USER_ERROR,
            )
        return parsed

    resolved = resolve_version(project_root)
    if isinstance(resolved, Err):
        exit_pipeline_error(resolved.error, console)
    return resolved.value
