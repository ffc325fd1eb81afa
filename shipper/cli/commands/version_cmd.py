from __future__ import annotations

import typer

from shipper.cli.commands._helpers import exit_pipeline_error
from shipper.cli.context import build_context
from shipper.core.result import Err
from shipper.pipeline.version import resolve_version


def version(
    tag: str | None = typer.Option(
        None,
        "--tag",
        help="Triggering tag (e.g. v1.2.3); must match the Cargo.toml version",
    ),
) -> None:
    """Print the release version resolved from Cargo.toml."""
    # Diagnostics on stderr; stdout carries only the version for CI capture.
    ctx = build_context(stderr=True)
    result = resolve_version(ctx.config.project_root, tag=tag)
    if isinstance(result, Err):
        exit_pipeline_error(result.error, ctx.console)
    typer.echo(str(result.value))
