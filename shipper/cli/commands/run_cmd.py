from __future__ import annotations

import typer

from shipper.cli.commands._helpers import credential_from_env, exit_pipeline_error
from shipper.cli.context import build_context
from shipper.core.result import Err
from shipper.output.errors import print_report, report_exit_code
from shipper.pipeline.orchestrator import ReleasePipeline, RunOptions
from shipper.pipeline.publish import ReleasePublisher


def run(
    tag: str | None = typer.Option(
        None, "--tag", help="Release tag to validate against Cargo.toml (e.g. v1.2.3)"
    ),
    publish: bool = typer.Option(True, "--publish/--no-publish", help="Publish after building"),
    fail_fast: bool | None = typer.Option(
        None,
        "--fail-fast/--no-fail-fast",
        help="Cancel pending targets after the first failure (default from config)",
    ),
    jobs: int | None = typer.Option(None, "--jobs", "-j", min=1, help="Parallel build jobs"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running"),
) -> None:
    """Run the whole pipeline locally: build every target, then publish."""
    ctx = build_context()
    cfg = ctx.config
    pipeline = ReleasePipeline(config=cfg, tool=ctx.tool, console=ctx.console)

    # A dry run only previews the release, so it needs no credential.
    publisher: ReleasePublisher | None = None
    if publish and not dry_run:
        publisher = ReleasePublisher(
            project_root=cfg.project_root,
            tool=ctx.tool,
            store=pipeline.store,
            credential=credential_from_env(cfg.token_env),
            console=ctx.console,
            repo=cfg.repo,
            toolchain=cfg.toolchain,
            policy=cfg.retry,
        )

    options = RunOptions(
        dry_run=dry_run,
        publish=publish,
        fail_fast=cfg.fail_fast if fail_fast is None else fail_fast,
        max_workers=jobs or cfg.max_workers,
    )
    result = pipeline.run(tag=tag, publisher=publisher, options=options)
    if isinstance(result, Err):
        exit_pipeline_error(result.error, ctx.console)

    print_report(result.value, ctx.console)
    code = report_exit_code(result.value)
    if code != 0:
        raise typer.Exit(code=code)
