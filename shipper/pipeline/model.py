from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from shipper.pipeline.errors import PipelineError
from shipper.pipeline.semver import SemVer

JobStatus = Literal["succeeded", "failed", "cancelled"]

MUSL_MARKER = "-musl"


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One entry of the build matrix.

    The host target is compiled without ``--target`` on a runner whose native
    platform is that triple; its binary lands in ``target/release``.
    """

    triple: str
    host: bool = False

    @property
    def needs_musl_tools(self) -> bool:
        return MUSL_MARKER in self.triple

    def __str__(self) -> str:
        return self.triple


def build_matrix(targets: tuple[str, ...], host_target: str) -> tuple[BuildTarget, ...]:
    """Enumerate the matrix: cross targets first, then the host build."""
    return (
        *(BuildTarget(triple=t) for t in targets),
        BuildTarget(triple=host_target, host=True),
    )


def artifact_name(tool: str, version: SemVer, target: str) -> str:
    return f"{tool}-v{version}-{target}.tar.gz"


@dataclass(frozen=True, slots=True)
class Artifact:
    name: str
    path: Path
    target: str
    version: SemVer
    size: int
    sha256: str


@dataclass(frozen=True, slots=True)
class StoreEntry:
    key: str
    path: Path


@dataclass(frozen=True, slots=True)
class ReleaseManifest:
    """What one pipeline run published. Created once, never mutated."""

    name: str
    lock_file: Path
    archives: tuple[Path, ...]

    @property
    def files(self) -> tuple[Path, ...]:
        return (self.lock_file, *self.archives)


@dataclass(frozen=True, slots=True)
class JobOutcome:
    target: BuildTarget
    status: JobStatus
    artifact: Artifact | None = None
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True, slots=True)
class PipelineReport:
    version: SemVer
    outcomes: tuple[JobOutcome, ...]
    release: ReleaseManifest | None = None
    publish_error: PipelineError | None = None

    @property
    def all_succeeded(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    @property
    def failed_targets(self) -> tuple[str, ...]:
        return tuple(o.target.triple for o in self.outcomes if o.status == "failed")

    @property
    def ok(self) -> bool:
        return self.all_succeeded and self.publish_error is None
