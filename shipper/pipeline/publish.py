"""Release publisher.

Creates one GitHub release ``v<version>`` carrying the lock snapshot and
every per-target archive. All lookups (store, lock, existing release) happen
before the create call, so a failure never leaves a half-populated release
behind. ``gh release create`` uploads assets to a draft and only publishes
it once every upload finished. A retried create first looks for the release
an earlier attempt may have made before it timed out locally, and completes
that release instead of creating a second one.
"""

from __future__ import annotations

import json
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from shipper.core.config import RetryConfig
from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, Style
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.lockfile import LOCK_FILE, regenerate_lock
from shipper.pipeline.model import BuildTarget, ReleaseManifest, artifact_name
from shipper.pipeline.retry import RetryExhausted, exhausted_error, retry_process
from shipper.pipeline.semver import SemVer
from shipper.pipeline.store import ArtifactStore
from shipper.pipeline.version import CARGO_MANIFEST, read_manifest_version
from shipper.pipeline.timeouts import GH_TIMEOUT_SECONDS, GH_UPLOAD_TIMEOUT_SECONDS
from shipper.platform.process import ProcessError
from shipper.platform.process import run as run_process

_AUTH_MARKERS = (
    "http 401",
    "http 403",
    "bad credentials",
    "authentication",
    "gh auth login",
    "resource not accessible by integration",
)
_EXISTS_MARKERS = ("already exists", "already_exists")
_NOT_FOUND_MARKERS = ("release not found", "http 404", "not found")


@dataclass(frozen=True, slots=True)
class GitHubCredential:
    """Token allowed to create releases. Only the publisher's gh calls see it."""

    token: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.token.strip():
            raise ValueError("empty GitHub token")

    def apply(self, base: dict[str, str]) -> dict[str, str]:
        env = dict(base)
        env["GH_TOKEN"] = self.token
        # GH_TOKEN takes precedence, but a stale GITHUB_TOKEN is confusing in logs
        env.pop("GITHUB_TOKEN", None)
        return env


def gh_available() -> bool:
    return shutil.which("gh") is not None


def _matches(error: ProcessError, markers: tuple[str, ...]) -> bool:
    text = error.output.lower()
    return any(marker in text for marker in markers)


def classify_gh_error(error: ProcessError, *, tag: str) -> PipelineError:
    if _matches(error, _AUTH_MARKERS):
        return PipelineError(
            kind="auth_failed",
            message="GitHub rejected the credential",
            hint=error.stderr.strip() or None,
        )
    if _matches(error, _EXISTS_MARKERS):
        return PipelineError(
            kind="release_exists",
            message=f"release {tag} already exists",
            hint="Delete the existing release or push a new tag",
        )
    return PipelineError(
        kind="publish_failed",
        message=f"{error}",
        hint=error.stderr.strip() or None,
    )


class ReleasePublisher:
    """Publishes the artifacts of one pipeline run.

    The credential is passed in explicitly; nothing here reads it from the
    ambient environment.
    """

    def __init__(
        self,
        *,
        project_root: Path,
        tool: str,
        store: ArtifactStore,
        credential: GitHubCredential,
        console: ConsoleProtocol,
        repo: str | None = None,
        toolchain: str = "stable",
        policy: RetryConfig | None = None,
    ) -> None:
        self._project_root = project_root
        self._tool = tool
        self._store = store
        self._credential = credential
        self._console = console
        self._repo = repo
        self._toolchain = toolchain
        self._policy = policy or RetryConfig()

    def _repo_args(self) -> list[str]:
        return ["--repo", self._repo] if self._repo else []

    def _gh(self, cmd: list[str], *, timeout: float) -> Result[str, ProcessError]:
        env = self._credential.apply(dict(os.environ))
        return run_process(cmd, cwd=self._project_root, env=env, timeout=timeout)

    def _retrying(
        self, call: Callable[[], Result[str, ProcessError]], *, what: str
    ) -> Result[str, PipelineError | ProcessError]:
        result = retry_process(call, policy=self._policy, console=self._console)
        if isinstance(result, Ok):
            return result
        if isinstance(result.error, RetryExhausted):
            return Err(exhausted_error(result.error, what=what))
        return Err(result.error)

    def _gh_retrying(
        self, cmd: list[str], *, timeout: float
    ) -> Result[str, PipelineError | ProcessError]:
        return self._retrying(lambda: self._gh(cmd, timeout=timeout), what=" ".join(cmd[:3]))

    def release_exists(self, tag: str) -> Result[bool, PipelineError]:
        cmd = ["gh", "release", "view", tag, *self._repo_args(), "--json", "tagName"]
        result = self._gh_retrying(cmd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(True)

        error = result.error
        if isinstance(error, PipelineError):
            return Err(error)
        if _matches(error, _AUTH_MARKERS):
            return Err(classify_gh_error(error, tag=tag))
        if _matches(error, _NOT_FOUND_MARKERS):
            return Ok(False)
        return Err(classify_gh_error(error, tag=tag))

    def _finish_existing(
        self, tag: str, manifest: ReleaseManifest
    ) -> Result[str, ProcessError] | None:
        """Complete a release left by an interrupted create.

        Returns None when no such release is visible, so the caller creates it.
        """
        view_cmd = ["gh", "release", "view", tag, *self._repo_args(), "--json", "isDraft,assets"]
        seen = self._gh(view_cmd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(seen, Err):
            return None
        try:
            data = json.loads(seen.value or "{}")
        except json.JSONDecodeError:
            return None

        uploaded = {asset.get("name") for asset in data.get("assets", [])}
        missing = [str(p) for p in manifest.files if p.name not in uploaded]
        self._console.info(f"release {tag} exists from the previous attempt")
        if missing:
            upload_cmd = ["gh", "release", "upload", tag, *self._repo_args(), "--clobber", *missing]
            uploaded_r = self._gh(upload_cmd, timeout=GH_UPLOAD_TIMEOUT_SECONDS)
            if isinstance(uploaded_r, Err):
                return uploaded_r
        if data.get("isDraft"):
            edit_cmd = ["gh", "release", "edit", tag, *self._repo_args(), "--draft=false"]
            return self._gh(edit_cmd, timeout=GH_TIMEOUT_SECONDS)
        return Ok("")

    def expected_archives(self, version: SemVer, targets: tuple[BuildTarget, ...]) -> list[str]:
        return [artifact_name(self._tool, version, t.triple) for t in targets]

    def publish(
        self,
        version: SemVer,
        targets: tuple[BuildTarget, ...],
        *,
        dry_run: bool = False,
    ) -> Result[ReleaseManifest, PipelineError]:
        """Create release v<version> with the lock snapshot and one archive per target."""
        tag = version.to_tag()

        if not dry_run and not gh_available():
            return Err(
                PipelineError(
                    kind="gh_missing",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )

        # Same metadata the build jobs saw, or the archive names will not line up
        current = read_manifest_version(self._project_root)
        if isinstance(current, Err):
            return current
        if current.value != version:
            return Err(
                PipelineError(
                    kind="version_mismatch",
                    message=f"{CARGO_MANIFEST} is at {current.value}, release is {version}",
                    hint="Publish from the same commit the archives were built from",
                )
            )

        names = self.expected_archives(version, targets)
        if dry_run:
            archives = tuple(self._store.root / name for name in names)
            lock = self._project_root / LOCK_FILE
        else:
            fetched = self._store.fetch_all(names)
            if isinstance(fetched, Err):
                return fetched
            archives = fetched.value

            lock_r = regenerate_lock(
                project_root=self._project_root,
                toolchain=self._toolchain,
                console=self._console,
            )
            if isinstance(lock_r, Err):
                return lock_r
            lock = lock_r.value

        manifest = ReleaseManifest(name=tag, lock_file=lock, archives=archives)

        create_cmd = [
            "gh",
            "release",
            "create",
            tag,
            *self._repo_args(),
            "--title",
            tag,
            "--verify-tag",
            *(str(p) for p in manifest.files),
        ]
        self._console.print(
            " ".join(create_cmd[:4]) + f" ... ({len(manifest.files)} files)", Style.DIM
        )
        if dry_run:
            return Ok(manifest)

        exists = self.release_exists(tag)
        if isinstance(exists, Err):
            return exists
        if exists.value:
            return Err(
                PipelineError(
                    kind="release_exists",
                    message=f"release {tag} already exists",
                    hint="Releases are immutable; push a new tag to publish again",
                )
            )

        attempts = 0

        def _create() -> Result[str, ProcessError]:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                # The previous attempt may have timed out after GitHub accepted it.
                finished = self._finish_existing(tag, manifest)
                if finished is not None:
                    return finished
            return self._gh(create_cmd, timeout=GH_UPLOAD_TIMEOUT_SECONDS)

        created = self._retrying(_create, what="gh release create")
        if isinstance(created, Err):
            error = created.error
            if isinstance(error, PipelineError):
                return Err(error)
            return Err(classify_gh_error(error, tag=tag))

        self._console.success(f"published {tag} ({len(manifest.files)} files)")
        return Ok(manifest)
