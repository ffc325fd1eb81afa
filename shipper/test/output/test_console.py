from __future__ import annotations

import threading

from shipper.output.console import JobConsole, MockConsole, RichConsole, Style


def test_mock_console_records() -> None:
    console = MockConsole()
    console.print("plain")
    console.success("done")
    console.error("broke")
    console.warning("careful")
    console.info("note")
    console.header("Title")

    assert console.messages == [
        "plain",
        "OK done",
        "error: broke",
        "warning: careful",
        "info: note",
        "Title",
    ]
    assert console.has_error()
    assert len(console.find("care")) == 1


def test_job_console_prefixes_label() -> None:
    inner = MockConsole()
    console = JobConsole(inner, "x86_64-unknown-linux-musl", threading.Lock())

    console.print("cargo build", Style.DIM)
    console.error("failed")

    assert inner.messages == [
        "[x86_64-unknown-linux-musl] cargo build",
        "error: [x86_64-unknown-linux-musl] failed",
    ]
    assert inner.outputs[0].style == Style.DIM


def test_job_console_serializes_parallel_writes() -> None:
    inner = MockConsole()
    lock = threading.Lock()

    def work(label: str) -> None:
        console = JobConsole(inner, label, lock)
        for i in range(50):
            console.print(f"line {i}")

    threads = [threading.Thread(target=work, args=(f"t{n}",)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(inner.messages) == 200
    assert all(m.startswith("[t") for m in inner.messages)


def test_rich_console_does_not_interpret_markup(capsys) -> None:  # type: ignore[no-untyped-def]
    console = RichConsole()
    console.print("[x86_64-apple-darwin] building")
    console.error("[bold]not bold[/bold]")

    out = capsys.readouterr().out
    assert "[x86_64-apple-darwin] building" in out
    assert "[bold]not bold[/bold]" in out


def test_rich_console_stderr(capsys) -> None:  # type: ignore[no-untyped-def]
    RichConsole(stderr=True).info("to stderr")
    captured = capsys.readouterr()
    assert "to stderr" in captured.err
    assert "to stderr" not in captured.out
