from __future__ import annotations

from pathlib import Path

import typer

from shipper.cli.context import build_context
from shipper.pipeline.workflow import default_workflow_path, render_workflow
from shipper.platform.files import atomic_write_text


def workflow(
    out: Path | None = typer.Option(
        None, "--out", help="Output path (default: .github/workflows/release.yml)"
    ),
    stdout: bool = typer.Option(False, "--stdout", help="Print instead of writing a file"),
) -> None:
    """Render the GitHub Actions release workflow."""
    ctx = build_context()
    text = render_workflow(ctx.config, tool=ctx.tool)
    if stdout:
        typer.echo(text, nl=False)
        return

    path = out or default_workflow_path(ctx.config.project_root)
    atomic_write_text(path, text)
    ctx.console.success(str(path))
