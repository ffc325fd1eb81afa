"""Error payload shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PipelineErrorKind = Literal[
    "invalid_version",
    "version_mismatch",
    "toolchain_failed",
    "compile_failed",
    "strip_failed",
    "output_missing",
    "package_failed",
    "store_failed",
    "missing_artifact",
    "lock_failed",
    "gh_missing",
    "auth_failed",
    "release_exists",
    "publish_failed",
    "retries_exhausted",
    "cancelled",
    "unknown_target",
]


@dataclass(frozen=True, slots=True)
class PipelineError:
    """A failure local to one job.

    ``target`` is set when the failure belongs to a single matrix entry so the
    run summary can name it.
    """

    kind: PipelineErrorKind
    message: str
    hint: str | None = None
    target: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
