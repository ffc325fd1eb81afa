from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from shipper.core.config import Config
from shipper.core.result import Err, Ok, Result
from shipper.output.console import MockConsole
from shipper.pipeline import orchestrator as orchestrator_mod
from shipper.pipeline.errors import PipelineError
from shipper.pipeline.model import BuildTarget, ReleaseManifest
from shipper.pipeline.orchestrator import ReleasePipeline, RunOptions
from shipper.pipeline.semver import SemVer

TARGETS = ("x86_64-unknown-linux-gnu", "x86_64-unknown-linux-musl")
HOST = "x86_64-apple-darwin"


class FakeExecutor:
    """Writes a fake binary per target; fails for triples listed in ``failing``."""

    failing: set[str] = set()
    built: list[str] = []
    lock = threading.Lock()

    def __init__(self, *, project_root: Path, tool: str, toolchain: str, console: object) -> None:
        del toolchain, console
        self._root = project_root
        self._tool = tool

    def build(self, target: BuildTarget, *, dry_run: bool = False) -> Result[Path, PipelineError]:
        with self.lock:
            self.built.append(target.triple)
        if target.triple in self.failing:
            return Err(
                PipelineError(kind="compile_failed", message="boom", target=target.triple)
            )
        out = self._root / "target" / target.triple / self._tool
        if not dry_run:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(target.triple.encode())
        return Ok(out)


class FakePublisher:
    """Accepts each tag once, like GitHub."""

    def __init__(self) -> None:
        self.calls: list[tuple[SemVer, tuple[BuildTarget, ...], bool]] = []
        self.released: set[str] = set()

    def publish(
        self, version: SemVer, targets: tuple[BuildTarget, ...], *, dry_run: bool = False
    ) -> Result[ReleaseManifest, PipelineError]:
        self.calls.append((version, targets, dry_run))
        tag = version.to_tag()
        if tag in self.released:
            return Err(
                PipelineError(kind="release_exists", message=f"release {tag} already exists")
            )
        if not dry_run:
            self.released.add(tag)
        return Ok(
            ReleaseManifest(name=version.to_tag(), lock_file=Path("Cargo.lock"), archives=())
        )


@pytest.fixture(autouse=True)
def fake_build(monkeypatch: pytest.MonkeyPatch) -> type[FakeExecutor]:
    FakeExecutor.failing = set()
    FakeExecutor.built = []
    monkeypatch.setattr(orchestrator_mod, "BuildExecutor", FakeExecutor)
    monkeypatch.setattr(orchestrator_mod, "prepare_toolchain", lambda target, **_: Ok(None))
    return FakeExecutor


def _pipeline(tmp_path: Path, console: MockConsole | None = None) -> ReleasePipeline:
    (tmp_path / "Cargo.toml").write_text(
        '[package]\nname = "tool"\nversion = "1.2.3"\n', encoding="utf-8"
    )
    config = Config(
        tool="tool",
        project_root=tmp_path,
        store_dir=tmp_path / "dist",
        targets=TARGETS,
        host_target=HOST,
    )
    return ReleasePipeline(config=config, tool="tool", console=console or MockConsole())


def test_matrix_includes_host_last(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    assert [t.triple for t in pipeline.matrix] == [*TARGETS, HOST]
    assert [t.host for t in pipeline.matrix] == [False, False, True]


def test_find_target(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    found = pipeline.find_target(HOST)
    assert isinstance(found, Ok) and found.value.host

    missing = pipeline.find_target("aarch64-unknown-linux-gnu")
    assert isinstance(missing, Err)
    assert missing.error.kind == "unknown_target"


def test_all_succeed_then_publish_once(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    publisher = FakePublisher()

    result = pipeline.run(tag="v1.2.3", publisher=publisher)  # type: ignore[arg-type]

    assert isinstance(result, Ok)
    report = result.value
    assert report.ok
    assert report.release is not None and report.release.name == "v1.2.3"
    assert len(publisher.calls) == 1
    version, targets, _ = publisher.calls[0]
    assert version == SemVer(1, 2, 3)
    assert targets == pipeline.matrix

    names = sorted(o.artifact.name for o in report.outcomes if o.artifact)
    assert len(set(names)) == 3
    assert pipeline.store.keys() == names
    assert all(o.artifact.version == SemVer(1, 2, 3) for o in report.outcomes if o.artifact)


def test_version_mismatch_builds_nothing(tmp_path: Path, fake_build: type[FakeExecutor]) -> None:
    pipeline = _pipeline(tmp_path)
    publisher = FakePublisher()

    result = pipeline.run(tag="v1.2.4", publisher=publisher)  # type: ignore[arg-type]

    assert isinstance(result, Err)
    assert result.error.kind == "version_mismatch"
    assert fake_build.built == []
    assert publisher.calls == []


def test_failed_target_blocks_publish(tmp_path: Path, fake_build: type[FakeExecutor]) -> None:
    fake_build.failing = {"x86_64-unknown-linux-musl"}
    console = MockConsole()
    pipeline = _pipeline(tmp_path, console)
    publisher = FakePublisher()

    result = pipeline.run(
        publisher=publisher,  # type: ignore[arg-type]
        options=RunOptions(fail_fast=False),
    )

    assert isinstance(result, Ok)
    report = result.value
    assert not report.ok
    assert report.failed_targets == ("x86_64-unknown-linux-musl",)
    assert publisher.calls == []
    statuses = {o.target.triple: o.status for o in report.outcomes}
    assert statuses == {
        "x86_64-unknown-linux-gnu": "succeeded",
        "x86_64-unknown-linux-musl": "failed",
        HOST: "succeeded",
    }
    assert console.find("failed targets: x86_64-unknown-linux-musl")


def test_fail_fast_cancels_pending_jobs(tmp_path: Path, fake_build: type[FakeExecutor]) -> None:
    fake_build.failing = {"x86_64-unknown-linux-gnu"}
    pipeline = _pipeline(tmp_path)

    result = pipeline.run(options=RunOptions(fail_fast=True, max_workers=1, publish=False))

    assert isinstance(result, Ok)
    statuses = [o.status for o in result.value.outcomes]
    assert statuses == ["failed", "cancelled", "cancelled"]
    assert fake_build.built == ["x86_64-unknown-linux-gnu"]
    assert result.value.failed_targets == ("x86_64-unknown-linux-gnu",)


def test_publish_disabled(tmp_path: Path) -> None:
    console = MockConsole()
    pipeline = _pipeline(tmp_path, console)

    result = pipeline.run(options=RunOptions(publish=False))

    assert isinstance(result, Ok)
    assert result.value.ok
    assert result.value.release is None
    assert console.find("publish skipped")


def test_publish_without_credential(tmp_path: Path) -> None:
    result = _pipeline(tmp_path).run(options=RunOptions())

    assert isinstance(result, Ok)
    assert result.value.publish_error is not None
    assert result.value.publish_error.kind == "auth_failed"
    assert not result.value.ok


def test_dry_run_stores_nothing(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    publisher = FakePublisher()

    result = pipeline.run(
        publisher=publisher,  # type: ignore[arg-type]
        options=RunOptions(dry_run=True),
    )

    assert isinstance(result, Ok)
    assert all(o.artifact is None for o in result.value.outcomes)
    assert pipeline.store.keys() == []
    assert publisher.calls[0][2] is True


def test_job_logs_are_tagged(tmp_path: Path) -> None:
    console = MockConsole()
    _pipeline(tmp_path, console).run(options=RunOptions(publish=False))

    assert console.find("OK [x86_64-unknown-linux-musl] tool-v1.2.3-x86_64-unknown-linux-musl")


def test_rerun_of_same_tag_reaches_release_exists(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    publisher = FakePublisher()
    first = pipeline.run(tag="v1.2.3", publisher=publisher)  # type: ignore[arg-type]
    assert isinstance(first, Ok) and first.value.ok

    second = pipeline.run(tag="v1.2.3", publisher=publisher)  # type: ignore[arg-type]

    assert isinstance(second, Ok)
    report = second.value
    assert report.all_succeeded
    assert report.publish_error is not None
    assert report.publish_error.kind == "release_exists"
    assert len(publisher.calls) == 2


def test_rerun_keeps_other_versions_in_store(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    other = tmp_path / "dist" / "tool-v1.0.0-x86_64-unknown-linux-gnu.tar.gz"
    other.parent.mkdir(parents=True)
    other.write_bytes(b"old")

    result = pipeline.run(options=RunOptions(publish=False))

    assert isinstance(result, Ok) and result.value.ok
    assert other.name in pipeline.store.keys()


def test_failed_host_blocks_publish(tmp_path: Path, fake_build: type[FakeExecutor]) -> None:
    fake_build.failing = {HOST}
    pipeline = _pipeline(tmp_path)
    publisher = FakePublisher()

    result = pipeline.run(
        publisher=publisher,  # type: ignore[arg-type]
        options=RunOptions(fail_fast=False),
    )

    assert isinstance(result, Ok)
    report = result.value
    assert report.failed_targets == (HOST,)
    assert not report.ok
    assert report.release is None
    assert publisher.calls == []


def test_toolchain_setup_runs_one_job_at_a_time(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow_prepare(target: BuildTarget, **_: object) -> Result[None, PipelineError]:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.05)
        with lock:
            active -= 1
        return Ok(None)

    monkeypatch.setattr(orchestrator_mod, "prepare_toolchain", slow_prepare)

    result = _pipeline(tmp_path).run(options=RunOptions(publish=False, max_workers=3))

    assert isinstance(result, Ok) and result.value.ok
    assert peak == 1


def test_dry_run_without_publisher_previews_release(tmp_path: Path) -> None:
    console = MockConsole()

    result = _pipeline(tmp_path, console).run(options=RunOptions(dry_run=True))

    assert isinstance(result, Ok)
    assert result.value.ok
    assert result.value.publish_error is None
    assert console.find("would publish v1.2.3")
    assert console.find("tool-v1.2.3-x86_64-apple-darwin.tar.gz")
