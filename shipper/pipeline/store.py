"""Shared artifact store.

A directory where each build job deposits its archive once and the release
publisher reads them back after the join barrier. Keys are always the
archive's own file name, so two producers can never collapse into one entry.

Entries are write-once within a run. A new local run first discards the
keys it is about to produce, so re-running a tag reaches the publisher.
"""

from __future__ import annotations

import threading
from pathlib import Path

from shipper.core.result import Err, Ok, Result
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import StoreEntry
from shipper.platform.files import atomic_copy


class ArtifactStore:
    """Write-once, directory-backed artifact store. Safe to share between threads."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / key

    def deposit(self, path: Path) -> Result[StoreEntry, PipelineError]:
        """Copy path into the store under its own file name.

        Fails if the key was already deposited; entries are never replaced.
        """
        key = path.name
        dest = self._path(key)
        with self._lock:
            if dest.exists():
                return Err(
                    PipelineError(
                        kind="store_failed",
                        message=f"artifact already deposited: {key}",
                        hint="Each target must produce a uniquely named archive",
                    )
                )
            try:
                self._root.mkdir(parents=True, exist_ok=True)
                atomic_copy(path, dest)
            except OSError as e:
                return Err(
                    PipelineError(
                        kind="store_failed",
                        message=f"failed to deposit {key}: {e}",
                        hint=str(self._root),
                    )
                )
        return Ok(StoreEntry(key=key, path=dest))

    def discard(self, keys: list[str]) -> Result[None, PipelineError]:
        """Remove keys left over from an earlier run so they can be deposited again."""
        with self._lock:
            for key in keys:
                try:
                    self._path(key).unlink(missing_ok=True)
                except OSError as e:
                    return Err(
                        PipelineError(
                            kind="store_failed",
                            message=f"failed to discard stale artifact {key}: {e}",
                            hint=str(self._root),
                        )
                    )
        return Ok(None)

    def fetch(self, key: str) -> Result[Path, PipelineError]:
        path = self._path(key)
        if not path.is_file():
            return Err(
                PipelineError(
                    kind="missing_artifact",
                    message=f"artifact not found in store: {key}",
                    hint=str(self._root),
                )
            )
        return Ok(path)

    def fetch_all(self, keys: list[str]) -> Result[tuple[Path, ...], PipelineError]:
        """Fetch every key, reporting all missing ones at once."""
        found: list[Path] = []
        missing: list[str] = []
        for key in keys:
            result = self.fetch(key)
            if isinstance(result, Err):
                missing.append(key)
            else:
                found.append(result.value)

        if missing:
            return Err(
                PipelineError(
                    kind="missing_artifact",
                    message=f"{len(missing)} artifact(s) missing from store: {', '.join(missing)}",
                    hint=str(self._root),
                )
            )
        return Ok(tuple(found))

    def keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            p.name for p in self._root.iterdir() if p.is_file() and not p.name.startswith(".")
        )
