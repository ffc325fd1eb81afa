"""Release version resolution.

The version comes from the project's own metadata (``Cargo.toml``), never
from the triggering tag. When a tag is supplied it is checked against the
metadata and a mismatch fails the run before anything is built.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from shipper.core.result import Err, Ok, Result
from shipper.core.structured import as_str_dict, get_str, get_table
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.semver import SemVer, parse_stable_tag, parse_version

CARGO_MANIFEST = "Cargo.toml"


def _read_package_table(project_root: Path) -> Result[dict[str, object], PipelineError]:
    path = project_root / CARGO_MANIFEST
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"failed to read {CARGO_MANIFEST}: {e}",
                hint=str(path),
            )
        )

    try:
        obj: object = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"invalid TOML in {CARGO_MANIFEST}: {e}",
                hint=str(path),
            )
        )

    data = as_str_dict(obj)
    package = get_table(data, "package") if data is not None else None
    if package is None:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"missing [package] table in {CARGO_MANIFEST}",
                hint=str(path),
            )
        )
    return Ok(package)


def read_manifest_version(project_root: Path) -> Result[SemVer, PipelineError]:
    package = _read_package_table(project_root)
    if isinstance(package, Err):
        return package

    raw = get_str(package.value, "version")
    if raw is None:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"missing package.version in {CARGO_MANIFEST}",
                hint="workspace-inherited versions (version.workspace = true) are not supported",
            )
        )

    version = parse_version(raw)
    if version is None:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"package.version is not MAJOR.MINOR.PATCH: {raw}",
            )
        )
    return Ok(version)


def read_package_name(project_root: Path) -> Result[str, PipelineError]:
    package = _read_package_table(project_root)
    if isinstance(package, Err):
        return package

    name = get_str(package.value, "name")
    if name is None:
        return Err(
            PipelineError(
                kind="invalid_version",
                message=f"missing package.name in {CARGO_MANIFEST}",
            )
        )
    return Ok(name)


def check_tag(version: SemVer, tag: str) -> Result[SemVer, PipelineError]:
    """Require that the triggering tag names the resolved version."""
    tagged = parse_stable_tag(tag)
    if tagged is None:
        return Err(
            PipelineError(
                kind="version_mismatch",
                message=f"invalid release tag: {tag}",
                hint="Expected vMAJOR.MINOR.PATCH",
            )
        )
    if tagged != version:
        return Err(
            PipelineError(
                kind="version_mismatch",
                message=f"tag {tag} does not match {CARGO_MANIFEST} version {version}",
                hint=f"Bump {CARGO_MANIFEST} to {tagged} or push tag {version.to_tag()}",
            )
        )
    return Ok(version)


def resolve_version(project_root: Path, *, tag: str | None = None) -> Result[SemVer, PipelineError]:
    """Resolve the release version from project metadata.

    Args:
        project_root: Directory holding ``Cargo.toml``.
        tag: Triggering tag, if any. Only validated, never used as the source.
    """
    version = read_manifest_version(project_root)
    if isinstance(version, Err) or tag is None:
        return version
    return check_tag(version.value, tag)
