from __future__ import annotations

from pathlib import Path

import pytest

from shipper.core.result import Err, Ok
from shipper.output.console import MockConsole
from shipper.pipeline import build as build_mod
from shipper.pipeline.build import BuildExecutor, binary_path, cargo_build_command
from shipper.pipeline.model import BuildTarget
from shipper.platform.process import ProcessError

MUSL = BuildTarget("x86_64-unknown-linux-musl")
HOST = BuildTarget("x86_64-apple-darwin", host=True)


def _executor(root: Path) -> BuildExecutor:
    return BuildExecutor(project_root=root, tool="demo", toolchain="stable", console=MockConsole())


def test_binary_path(tmp_path: Path) -> None:
    assert binary_path(tmp_path, "demo", MUSL) == (
        tmp_path / "target" / "x86_64-unknown-linux-musl" / "release" / "demo"
    )
    assert binary_path(tmp_path, "demo", HOST) == tmp_path / "target" / "release" / "demo"


def test_cargo_build_command() -> None:
    assert cargo_build_command(MUSL, toolchain="stable") == [
        "cargo",
        "+stable",
        "build",
        "--release",
        "--target",
        "x86_64-unknown-linux-musl",
    ]
    assert "--target" not in cargo_build_command(HOST, toolchain="stable")


def test_build_and_strip(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run_silent(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del timeout
        calls.append(cmd)
        if cmd[0] == "cargo":
            out = binary_path(cwd, "demo", MUSL)
            out.parent.mkdir(parents=True)
            out.write_bytes(b"ELF")
        return Ok(None)

    monkeypatch.setattr(build_mod, "run_silent", fake_run_silent)

    result = _executor(tmp_path).build(MUSL)

    assert result == Ok(binary_path(tmp_path, "demo", MUSL))
    assert [c[0] for c in calls] == ["cargo", "strip"]


def test_compile_failure_is_not_retried(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run_silent(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return Err(ProcessError(tuple(cmd), 101, "", ""))

    monkeypatch.setattr(build_mod, "run_silent", fake_run_silent)

    result = _executor(tmp_path).build(MUSL)

    assert isinstance(result, Err)
    assert result.error.kind == "compile_failed"
    assert result.error.target == MUSL.triple
    assert len(calls) == 1


def test_missing_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(build_mod, "run_silent", lambda cmd, **_: Ok(None))

    result = _executor(tmp_path).build(HOST)

    assert isinstance(result, Err)
    assert result.error.kind == "output_missing"


def test_strip_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    out = binary_path(tmp_path, "demo", HOST)
    out.parent.mkdir(parents=True)
    out.write_bytes(b"ELF")

    def fake_run_silent(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        if cmd[0] == "strip":
            return Err(ProcessError(tuple(cmd), 1, "", ""))
        return Ok(None)

    monkeypatch.setattr(build_mod, "run_silent", fake_run_silent)

    result = _executor(tmp_path).build(HOST)

    assert isinstance(result, Err)
    assert result.error.kind == "strip_failed"


def test_dry_run(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fail_run(*args: object, **kwargs: object):
        raise AssertionError("must not run in dry-run")

    monkeypatch.setattr(build_mod, "run_silent", fail_run)
    executor = _executor(tmp_path)

    assert isinstance(executor.build(MUSL, dry_run=True), Ok)
