"""Release pipeline: version, build matrix, packaging, artifact store, publish."""

from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import (
    Artifact,
    BuildTarget,
    JobOutcome,
    PipelineReport,
    ReleaseManifest,
    artifact_name,
    build_matrix,
)
from shipper.pipeline.orchestrator import ReleasePipeline, RunOptions
from shipper.pipeline.publish import GitHubCredential, ReleasePublisher
from shipper.pipeline.semver import SemVer
from shipper.pipeline.store import ArtifactStore

__all__ = [
    "Artifact",
    "ArtifactStore",
    "BuildTarget",
    "GitHubCredential",
    "JobOutcome",
    "PipelineError",
    "PipelineReport",
    "ReleaseManifest",
    "ReleasePipeline",
    "ReleasePublisher",
    "RunOptions",
    "SemVer",
    "artifact_name",
    "build_matrix",
]
