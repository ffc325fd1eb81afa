"""Build executor: one stripped release binary per matrix entry.

Compilation and stripping are attempted once. A compiler failure is a
defect in the source, not a transient condition.
"""

from __future__ import annotations

from pathlib import Path

from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, Style
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import BuildTarget
from shipper.pipeline.timeouts import COMPILE_TIMEOUT_SECONDS, STRIP_TIMEOUT_SECONDS
from shipper.platform.process import run_silent


def binary_path(project_root: Path, tool: str, target: BuildTarget) -> Path:
    """Where cargo leaves the release binary for target."""
    if target.host:
        return project_root / "target" / "release" / tool
    return project_root / "target" / target.triple / "release" / tool


def cargo_build_command(target: BuildTarget, *, toolchain: str) -> list[str]:
    cmd = ["cargo", f"+{toolchain}", "build", "--release"]
    if not target.host:
        cmd += ["--target", target.triple]
    return cmd


class BuildExecutor:
    """Compiles and strips the tool for a single target."""

    def __init__(
        self,
        *,
        project_root: Path,
        tool: str,
        toolchain: str,
        console: ConsoleProtocol,
    ) -> None:
        self._project_root = project_root
        self._tool = tool
        self._toolchain = toolchain
        self._console = console

    def build(self, target: BuildTarget, *, dry_run: bool = False) -> Result[Path, PipelineError]:
        """Build and strip the binary for target.

        Returns:
            Ok(path) to the stripped binary, Err(PipelineError) on failure.
        """
        build_cmd = cargo_build_command(target, toolchain=self._toolchain)
        self._console.print(" ".join(build_cmd), Style.DIM)
        if not dry_run:
            result = run_silent(build_cmd, cwd=self._project_root, timeout=COMPILE_TIMEOUT_SECONDS)
            if isinstance(result, Err):
                return Err(
                    PipelineError(
                        kind="compile_failed",
                        message=f"cargo build failed (exit {result.error.returncode})",
                        hint=result.error.stderr or None,
                        target=target.triple,
                    )
                )

        binary = binary_path(self._project_root, self._tool, target)
        if not dry_run and not binary.is_file():
            return Err(
                PipelineError(
                    kind="output_missing",
                    message=f"build output not found: {binary}",
                    hint="Check that `tool` matches the binary name in Cargo.toml",
                    target=target.triple,
                )
            )

        strip_cmd = ["strip", str(binary)]
        self._console.print(" ".join(strip_cmd), Style.DIM)
        if not dry_run:
            result = run_silent(strip_cmd, cwd=self._project_root, timeout=STRIP_TIMEOUT_SECONDS)
            if isinstance(result, Err):
                return Err(
                    PipelineError(
                        kind="strip_failed",
                        message=f"strip failed (exit {result.error.returncode})",
                        hint=result.error.stderr or None,
                        target=target.triple,
                    )
                )

        return Ok(binary)
