"""Dependency lock snapshot.

The release ships the ``Cargo.lock`` regenerated at publish time so users
can reproduce the dependency set the binaries were built against.
"""

from __future__ import annotations

from pathlib import Path

from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, Style
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.timeouts import CARGO_METADATA_TIMEOUT_SECONDS
from shipper.platform.process import run as run_process

LOCK_FILE = "Cargo.lock"


def regenerate_lock(
    *,
    project_root: Path,
    toolchain: str,
    console: ConsoleProtocol,
) -> Result[Path, PipelineError]:
    cmd = ["cargo", f"+{toolchain}", "update"]
    console.print(" ".join(cmd), Style.DIM)
    result = run_process(cmd, cwd=project_root, timeout=CARGO_METADATA_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PipelineError(
                kind="lock_failed",
                message=f"{result.error}",
                hint=result.error.stderr.strip() or None,
            )
        )

    lock = project_root / LOCK_FILE
    if not lock.is_file():
        return Err(
            PipelineError(
                kind="lock_failed",
                message=f"{LOCK_FILE} not found after cargo update",
                hint=str(lock),
            )
        )
    return Ok(lock)
