from __future__ import annotations

import threading
from pathlib import Path

from shipper.core.result import Err, Ok
from shipper.pipeline.store import ArtifactStore


def _file(tmp_path: Path, name: str, content: bytes = b"data") -> Path:
    src = tmp_path / "src" / name
    src.parent.mkdir(parents=True, exist_ok=True)
    src.write_bytes(content)
    return src


def test_deposit_keys_by_file_name(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    result = store.deposit(_file(tmp_path, "t-v1.0.0-a.tar.gz"))

    assert isinstance(result, Ok)
    assert result.value.key == "t-v1.0.0-a.tar.gz"
    assert result.value.path.read_bytes() == b"data"
    assert store.keys() == ["t-v1.0.0-a.tar.gz"]


def test_deposit_is_write_once(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    src = _file(tmp_path, "t-v1.0.0-a.tar.gz")
    assert isinstance(store.deposit(src), Ok)

    src.write_bytes(b"other")
    second = store.deposit(src)

    assert isinstance(second, Err)
    assert second.error.kind == "store_failed"
    assert (tmp_path / "dist" / "t-v1.0.0-a.tar.gz").read_bytes() == b"data"


def test_concurrent_deposits_keep_every_entry(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    names = [f"t-v1.0.0-target{i}.tar.gz" for i in range(8)]
    sources = [_file(tmp_path, n, n.encode()) for n in names]

    threads = [threading.Thread(target=store.deposit, args=(s,)) for s in sources]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.keys() == sorted(names)
    for name in names:
        assert (tmp_path / "dist" / name).read_bytes() == name.encode()


def test_fetch_missing(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    result = store.fetch("nope.tar.gz")
    assert isinstance(result, Err)
    assert result.error.kind == "missing_artifact"


def test_fetch_all_reports_every_missing_key(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    store.deposit(_file(tmp_path, "a.tar.gz"))

    result = store.fetch_all(["a.tar.gz", "b.tar.gz", "c.tar.gz"])

    assert isinstance(result, Err)
    assert "b.tar.gz" in result.error.message
    assert "c.tar.gz" in result.error.message
    assert result.error.message.startswith("2 artifact(s)")


def test_fetch_all_preserves_order(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    store.deposit(_file(tmp_path, "b.tar.gz"))
    store.deposit(_file(tmp_path, "a.tar.gz"))

    result = store.fetch_all(["b.tar.gz", "a.tar.gz"])

    assert isinstance(result, Ok)
    assert [p.name for p in result.value] == ["b.tar.gz", "a.tar.gz"]


def test_keys_on_missing_root(tmp_path: Path) -> None:
    assert ArtifactStore(tmp_path / "absent").keys() == []


def test_discard_allows_a_fresh_deposit(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "dist")
    src = _file(tmp_path, "t-v1.0.0-a.tar.gz")
    assert isinstance(store.deposit(_file(tmp_path, "t-v0.9.0-a.tar.gz")), Ok)
    assert isinstance(store.deposit(src), Ok)

    assert store.discard(["t-v1.0.0-a.tar.gz", "t-v1.0.0-b.tar.gz"]) == Ok(None)
    src.write_bytes(b"rebuilt")
    again = store.deposit(src)

    assert isinstance(again, Ok)
    assert again.value.path.read_bytes() == b"rebuilt"
    assert store.keys() == ["t-v0.9.0-a.tar.gz", "t-v1.0.0-a.tar.gz"]


def test_discard_on_missing_root(tmp_path: Path) -> None:
    assert ArtifactStore(tmp_path / "nope").discard(["t-v1.0.0-a.tar.gz"]) == Ok(None)
