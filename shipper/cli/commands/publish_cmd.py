from __future__ import annotations

import typer

from shipper.cli.commands._helpers import (
    credential_from_env,
    exit_pipeline_error,
    version_or_resolve,
)
from shipper.cli.context import build_context
from shipper.core.result import Err
from shipper.output.console import Style
from shipper.pipeline.orchestrator import ReleasePipeline
from shipper.pipeline.publish import ReleasePublisher


def publish(
    version: str | None = typer.Option(
        None,
        "--version",
        help="Release version computed once upstream (default: read Cargo.toml)",
    ),
    token_env: str | None = typer.Option(
        None,
        "--token-env",
        help="Environment variable holding the GitHub token (default from config)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running"),
) -> None:
    """Publish one release with the lock snapshot and every stored archive."""
    ctx = build_context()
    resolved = version_or_resolve(
        version, project_root=ctx.config.project_root, console=ctx.console
    )
    credential = credential_from_env(token_env or ctx.config.token_env)

    pipeline = ReleasePipeline(config=ctx.config, tool=ctx.tool, console=ctx.console)
    publisher = ReleasePublisher(
        project_root=ctx.config.project_root,
        tool=ctx.tool,
        store=pipeline.store,
        credential=credential,
        console=ctx.console,
        repo=ctx.config.repo,
        toolchain=ctx.config.toolchain,
        policy=ctx.config.retry,
    )

    ctx.console.header(f"Publish {resolved.to_tag()}")
    result = publisher.publish(resolved, pipeline.matrix, dry_run=dry_run)
    if isinstance(result, Err):
        exit_pipeline_error(result.error, ctx.console)

    for path in result.value.files:
        ctx.console.print(f"  {path.name}", Style.DIM)
