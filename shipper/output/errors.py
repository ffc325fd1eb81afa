"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipper.core.errors import ErrorCode
from shipper.output.console import Style
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import PipelineReport

if TYPE_CHECKING:
    from shipper.output.console import ConsoleProtocol

__all__ = [
    "pipeline_error_exit_code",
    "print_pipeline_error",
    "print_report",
    "report_exit_code",
]


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    prefix = f"{error.target}: " if error.target else ""
    console.error(f"{prefix}{error.message}")
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def pipeline_error_exit_code(error: PipelineError) -> int:
    match error.kind:
        case "invalid_version" | "version_mismatch" | "release_exists" | "unknown_target":
            return int(ErrorCode.USER_ERROR)
        case "gh_missing" | "auth_failed" | "toolchain_failed":
            return int(ErrorCode.ENV_ERROR)
        case "compile_failed" | "strip_failed" | "output_missing" | "package_failed":
            return int(ErrorCode.BUILD_ERROR)
        case "retries_exhausted" | "publish_failed":
            return int(ErrorCode.NETWORK_ERROR)
        case "store_failed" | "missing_artifact" | "lock_failed":
            return int(ErrorCode.IO_ERROR)
        case "cancelled":
            return int(ErrorCode.BUILD_ERROR)
    return int(ErrorCode.USER_ERROR)


def report_exit_code(report: PipelineReport) -> int:
    """First failed job decides; then the publish error; else success."""
    for outcome in report.outcomes:
        if outcome.status == "failed" and outcome.error is not None:
            return pipeline_error_exit_code(outcome.error)
    if report.publish_error is not None:
        return pipeline_error_exit_code(report.publish_error)
    return int(ErrorCode.OK)


def print_report(report: PipelineReport, console: ConsoleProtocol) -> None:
    """Print one line per target, then the release outcome."""
    console.header(f"Summary {report.version.to_tag()}")
    for outcome in report.outcomes:
        label = outcome.target.triple + (" (host)" if outcome.target.host else "")
        match outcome.status:
            case "succeeded":
                name = outcome.artifact.name if outcome.artifact else "(dry-run)"
                console.success(f"{label}: {name}")
            case "failed":
                msg = outcome.error.message if outcome.error else "failed"
                console.error(f"{label}: {msg}")
            case "cancelled":
                console.print(f"{label}: cancelled", Style.DIM)

    if report.release is not None:
        console.success(f"release {report.release.name}: {len(report.release.files)} files")
        for path in report.release.files:
            console.print(f"  {path.name}", Style.DIM)
    elif report.publish_error is not None:
        print_pipeline_error(report.publish_error, console)
