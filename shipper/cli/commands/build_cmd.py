from __future__ import annotations

import typer

from shipper.cli.commands._helpers import exit_pipeline_error, version_or_resolve
from shipper.cli.context import build_context
from shipper.core.result import Err
from shipper.pipeline.orchestrator import ReleasePipeline


def build(
    target: str = typer.Option(..., "--target", help="Target triple from the build matrix"),
    version: str | None = typer.Option(
        None,
        "--version",
        help="Release version computed once upstream (default: read Cargo.toml)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running"),
) -> None:
    """Build, strip, package and store one matrix entry (CI job)."""
    ctx = build_context()
    pipeline = ReleasePipeline(config=ctx.config, tool=ctx.tool, console=ctx.console)

    found = pipeline.find_target(target)
    if isinstance(found, Err):
        exit_pipeline_error(found.error, ctx.console)

    resolved = version_or_resolve(
        version, project_root=ctx.config.project_root, console=ctx.console
    )
    ctx.console.header(f"Build {ctx.tool} {resolved.to_tag()} for {target}")

    result = pipeline.build_one(found.value, resolved, dry_run=dry_run)
    if isinstance(result, Err):
        exit_pipeline_error(result.error, ctx.console)
