"""Artifact packaging.

Design goals:

- Deterministic file names: ``<tool>-v<version>-<target>.tar.gz``
- Exactly one member, the stripped binary, at the archive root
- Byte-for-byte reproducible output (no timestamps, owners or host paths)
"""

from __future__ import annotations

import gzip
import hashlib
import os
import tarfile
import tempfile
from pathlib import Path

from shipper.core.result import Err, Ok, Result
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import Artifact, artifact_name
from shipper.pipeline.semver import SemVer

BINARY_MODE = 0o755


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _write_tar_gz(archive: Path, *, binary: Path, member: str) -> None:
    info = tarfile.TarInfo(name=member)
    info.size = binary.stat().st_size
    info.mtime = 0
    info.mode = BINARY_MODE
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.type = tarfile.REGTYPE

    fd, tmp_name = tempfile.mkstemp(prefix=f".{archive.name}.", suffix=".tmp", dir=archive.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as raw:
            # filename="" and mtime=0 keep the gzip header free of host state
            with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz:
                with tarfile.open(fileobj=gz, mode="w", format=tarfile.USTAR_FORMAT) as tar:
                    with binary.open("rb") as src:
                        tar.addfile(info, src)
        os.replace(tmp_path, archive)
    finally:
        tmp_path.unlink(missing_ok=True)


def package_binary(
    *,
    binary: Path,
    tool: str,
    version: SemVer,
    target: str,
    out_dir: Path,
) -> Result[Artifact, PipelineError]:
    """Compress one stripped binary into its release archive.

    Returns:
        Ok(Artifact) describing the archive, Err(PipelineError) with kind
        ``package_failed`` on missing input or I/O failure.
    """
    if not binary.is_file():
        return Err(
            PipelineError(
                kind="package_failed",
                message=f"binary not found: {binary}",
                target=target,
            )
        )

    name = artifact_name(tool, version, target)
    archive = out_dir / name
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        _write_tar_gz(archive, binary=binary, member=tool)
        size = archive.stat().st_size
        digest = _sha256_file(archive)
    except (OSError, tarfile.TarError) as e:
        return Err(
            PipelineError(
                kind="package_failed",
                message=f"failed to write {name}: {e}",
                hint=str(archive),
                target=target,
            )
        )

    return Ok(
        Artifact(
            name=name,
            path=archive,
            target=target,
            version=version,
            size=size,
            sha256=digest,
        )
    )
