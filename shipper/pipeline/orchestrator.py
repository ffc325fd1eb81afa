"""Release orchestration.

Flow for one run:

1. resolve the version once and hand it to every job
2. fan out one job per matrix entry (host build included) on a thread pool
3. join: wait until every job reached a terminal state
4. publish if and only if every job succeeded

Jobs share nothing but the artifact store. Toolchain setup touches
machine-wide state (rustup, apt), so it runs one job at a time.
"""

from __future__ import annotations

import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from shipper.core.config import Config
from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, JobConsole, Style
from shipper.pipeline.build import BuildExecutor
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import (
    Artifact,
    BuildTarget,
    JobOutcome,
    PipelineReport,
    artifact_name,
    build_matrix,
)
from shipper.pipeline.package import package_binary
from shipper.pipeline.publish import ReleasePublisher
from shipper.pipeline.semver import SemVer
from shipper.pipeline.store import ArtifactStore
from shipper.pipeline.toolchain import prepare_toolchain
from shipper.pipeline.version import resolve_version


@dataclass(frozen=True, slots=True)
class RunOptions:
    dry_run: bool = False
    publish: bool = True
    fail_fast: bool = True
    max_workers: int = 4


class ReleasePipeline:
    """Runs the build matrix and gates the publisher behind a join barrier."""

    def __init__(
        self,
        *,
        config: Config,
        tool: str,
        console: ConsoleProtocol,
        store: ArtifactStore | None = None,
    ) -> None:
        self._config = config
        self._tool = tool
        self._console = console
        self._store = store or ArtifactStore(config.store_dir)
        self._log_lock = threading.Lock()
        self._setup_lock = threading.Lock()

    @property
    def matrix(self) -> tuple[BuildTarget, ...]:
        return build_matrix(self._config.targets, self._config.host_target)

    @property
    def store(self) -> ArtifactStore:
        return self._store

    def archive_names(self, version: SemVer) -> list[str]:
        return [artifact_name(self._tool, version, t.triple) for t in self.matrix]

    def find_target(self, triple: str) -> Result[BuildTarget, PipelineError]:
        for target in self.matrix:
            if target.triple == triple:
                return Ok(target)
        known = ", ".join(t.triple for t in self.matrix)
        return Err(
            PipelineError(
                kind="unknown_target",
                message=f"target not in build matrix: {triple}",
                hint=f"Known targets: {known}",
                target=triple,
            )
        )

    def build_one(
        self,
        target: BuildTarget,
        version: SemVer,
        *,
        console: ConsoleProtocol | None = None,
        dry_run: bool = False,
        cancelled: threading.Event | None = None,
    ) -> Result[Artifact | None, PipelineError]:
        """Prepare, build, package and deposit a single target.

        Returns Ok(None) in dry-run mode, where nothing is packaged.
        """
        out = console or self._console
        cfg = self._config

        def _check_cancelled() -> Result[None, PipelineError]:
            if cancelled is not None and cancelled.is_set():
                return Err(
                    PipelineError(
                        kind="cancelled",
                        message="cancelled after another target failed",
                        target=target.triple,
                    )
                )
            return Ok(None)

        stop = _check_cancelled()
        if isinstance(stop, Err):
            return stop

        with self._setup_lock:
            prepared = prepare_toolchain(
                target,
                project_root=cfg.project_root,
                toolchain=cfg.toolchain,
                policy=cfg.retry,
                console=out,
                dry_run=dry_run,
            )
        if isinstance(prepared, Err):
            return prepared

        stop = _check_cancelled()
        if isinstance(stop, Err):
            return stop

        executor = BuildExecutor(
            project_root=cfg.project_root,
            tool=self._tool,
            toolchain=cfg.toolchain,
            console=out,
        )
        built = executor.build(target, dry_run=dry_run)
        if isinstance(built, Err):
            return built

        name = artifact_name(self._tool, version, target.triple)
        if dry_run:
            out.print(f"would package {name} -> {self._store.root}", Style.DIM)
            return Ok(None)

        with tempfile.TemporaryDirectory(prefix="shipper-") as staging:
            packaged = package_binary(
                binary=built.value,
                tool=self._tool,
                version=version,
                target=target.triple,
                out_dir=Path(staging),
            )
            if isinstance(packaged, Err):
                return packaged

            deposited = self._store.deposit(packaged.value.path)
            if isinstance(deposited, Err):
                return Err(
                    PipelineError(
                        kind=deposited.error.kind,
                        message=deposited.error.message,
                        hint=deposited.error.hint,
                        target=target.triple,
                    )
                )

        artifact = Artifact(
            name=packaged.value.name,
            path=deposited.value.path,
            target=target.triple,
            version=version,
            size=packaged.value.size,
            sha256=packaged.value.sha256,
        )
        out.success(f"{artifact.name} ({artifact.size} bytes, sha256 {artifact.sha256[:12]})")
        return Ok(artifact)

    def _run_job(
        self,
        target: BuildTarget,
        version: SemVer,
        *,
        dry_run: bool,
        fail_fast: bool,
        cancelled: threading.Event,
    ) -> JobOutcome:
        console = JobConsole(self._console, target.triple, self._log_lock)
        result = self.build_one(
            target, version, console=console, dry_run=dry_run, cancelled=cancelled
        )
        if isinstance(result, Ok):
            return JobOutcome(target=target, status="succeeded", artifact=result.value)

        error = result.error
        if error.kind == "cancelled":
            console.print("skipped (cancelled)", Style.DIM)
            return JobOutcome(target=target, status="cancelled", error=error)

        console.error(error.pretty())
        if fail_fast:
            cancelled.set()
        return JobOutcome(target=target, status="failed", error=error)

    def build_all(self, version: SemVer, *, options: RunOptions) -> tuple[JobOutcome, ...]:
        """Fan out every matrix entry and block until all are terminal."""
        matrix = self.matrix
        cancelled = threading.Event()
        workers = max(1, min(options.max_workers, len(matrix)))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shipper-job") as pool:
            futures = [
                pool.submit(
                    self._run_job,
                    target,
                    version,
                    dry_run=options.dry_run,
                    fail_fast=options.fail_fast,
                    cancelled=cancelled,
                )
                for target in matrix
            ]
            # Join barrier: result() blocks until each job is terminal.
            return tuple(f.result() for f in futures)

    def run(
        self,
        *,
        tag: str | None = None,
        publisher: ReleasePublisher | None = None,
        options: RunOptions | None = None,
    ) -> Result[PipelineReport, PipelineError]:
        """Run the whole pipeline.

        Returns:
            Err only if the version cannot be resolved or stale archives of
            this version cannot be cleared (nothing was built).
            Otherwise Ok(PipelineReport), whose ``ok`` tells whether the
            release was published.
        """
        opts = options or RunOptions(
            fail_fast=self._config.fail_fast, max_workers=self._config.max_workers
        )

        resolved = resolve_version(self._config.project_root, tag=tag)
        if isinstance(resolved, Err):
            return resolved
        version = resolved.value
        self._console.header(f"{self._tool} {version.to_tag()}")
        self._console.print(f"matrix: {', '.join(t.triple for t in self.matrix)}", Style.DIM)

        if not opts.dry_run:
            # Entries are write-once per run; a re-run of the same tag starts clean.
            cleared = self._store.discard(self.archive_names(version))
            if isinstance(cleared, Err):
                return cleared

        outcomes = self.build_all(version, options=opts)
        report = PipelineReport(version=version, outcomes=outcomes)

        if not report.all_succeeded:
            self._console.error(
                f"release {version.to_tag()} not published: "
                f"failed targets: {', '.join(report.failed_targets) or '(none)'}"
            )
            return Ok(report)

        if not opts.publish:
            self._console.info("publish skipped")
            return Ok(report)

        if publisher is None:
            if opts.dry_run:
                self._console.info(f"would publish {version.to_tag()}")
                for name in [*self.archive_names(version), "Cargo.lock"]:
                    self._console.print(f"  {name}", Style.DIM)
                return Ok(report)
            return Ok(
                PipelineReport(
                    version=version,
                    outcomes=outcomes,
                    publish_error=PipelineError(
                        kind="auth_failed",
                        message="no credential provided for publishing",
                        hint=f"Set {self._config.token_env} or pass --no-publish",
                    ),
                )
            )

        self._console.header(f"Publish {version.to_tag()}")
        published = publisher.publish(version, self.matrix, dry_run=opts.dry_run)
        if isinstance(published, Err):
            return Ok(
                PipelineReport(version=version, outcomes=outcomes, publish_error=published.error)
            )
        return Ok(PipelineReport(version=version, outcomes=outcomes, release=published.value))
