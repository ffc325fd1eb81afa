"""Per-target toolchain setup.

Installs the Rust toolchain through rustup, adds the cross-compilation
target for non-host builds, and pulls in musl-tools for musl targets. Every
command is network-bound and goes through the bounded retry. The host target
is built natively, so setup also checks that this machine really is that host.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from shipper.core.config import RetryConfig
from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, Style
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import BuildTarget
from shipper.pipeline.retry import RetryExhausted, exhausted_error, retry_process
from shipper.pipeline.timeouts import TOOLCHAIN_TIMEOUT_SECONDS
from shipper.platform.process import run as run_process


def _sudo_prefix() -> list[str]:
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() == 0:
        return []
    return ["sudo"] if shutil.which("sudo") else []


def toolchain_commands(target: BuildTarget, *, toolchain: str) -> list[list[str]]:
    """Commands that prepare a runner to build target, in order."""
    cmds: list[list[str]] = []
    if target.needs_musl_tools:
        cmds.append([*_sudo_prefix(), "apt-get", "install", "-y", "musl-tools"])
    cmds.append(["rustup", "toolchain", "install", toolchain, "--profile", "minimal"])
    if not target.host:
        cmds.append(["rustup", "target", "add", "--toolchain", toolchain, target.triple])
    return cmds


def parse_rustc_host(output: str) -> str | None:
    """Host triple from ``rustc -vV`` output, or None if it has no host line."""
    for line in output.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "host":
            return value.strip() or None
    return None


def check_host(
    target: BuildTarget, *, project_root: Path, toolchain: str
) -> Result[None, PipelineError]:
    """Fail unless this machine's native triple is the host target's triple.

    The host target is built without ``--target``, so its binary is whatever
    the local rustc produces natively.
    """
    cmd = ["rustc", f"+{toolchain}", "-vV"]
    result = run_process(cmd, cwd=project_root, timeout=TOOLCHAIN_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PipelineError(
                kind="toolchain_failed",
                message=f"{result.error}",
                hint=result.error.stderr.strip() or None,
                target=target.triple,
            )
        )

    native = parse_rustc_host(result.value)
    if native == target.triple:
        return Ok(None)
    return Err(
        PipelineError(
            kind="toolchain_failed",
            message=f"host target {target.triple} cannot be built on {native or 'unknown host'}",
            hint=(
                f"Run `shipper build --target {target.triple}` on a {target.triple} machine,"
                " or set host_target to this machine's triple"
            ),
            target=target.triple,
        )
    )


def prepare_toolchain(
    target: BuildTarget,
    *,
    project_root: Path,
    toolchain: str,
    policy: RetryConfig,
    console: ConsoleProtocol,
    dry_run: bool = False,
) -> Result[None, PipelineError]:
    for cmd in toolchain_commands(target, toolchain=toolchain):
        console.print(" ".join(cmd), Style.DIM)
        if dry_run:
            continue

        result = retry_process(
            lambda cmd=cmd: run_process(cmd, cwd=project_root, timeout=TOOLCHAIN_TIMEOUT_SECONDS),
            policy=policy,
            console=console,
        )
        if isinstance(result, Ok):
            continue

        error = result.error
        if isinstance(error, RetryExhausted):
            return Err(exhausted_error(error, what=" ".join(cmd[:3]), target=target.triple))
        return Err(
            PipelineError(
                kind="toolchain_failed",
                message=f"{error}",
                hint=error.stderr.strip() or None,
                target=target.triple,
            )
        )

    if target.host and not dry_run:
        return check_host(target, project_root=project_root, toolchain=toolchain)
    return Ok(None)
