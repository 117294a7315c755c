"""CLI parser behaviour tests."""

from __future__ import annotations

import pytest

from docsync import cli
from docsync.cli import _build_parser
from docsync.report import ADVANCED, FAILED, PartOutcome, SyncReport
from docsync.synchronizer import PartStatus


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "sync"])
    assert args.verbose is True
    assert args.command == "sync"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["sync", "repo", "-v"])
    assert args.verbose is True
    assert args.path == "repo"


def test_cli_collects_sync_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["sync", "--category", "screens", "--category", "todo", "--budget", "800", "--revision", "abc", "--dry-run"]
    )
    assert args.categories == ["screens", "todo"]
    assert args.budget == 800
    assert args.revision == "abc"
    assert args.dry_run is True


def test_cli_rejects_unknown_category() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["sync", "--category", "widgets"])


def test_cli_status_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["status", "repo"])
    assert args.command == "status"
    assert args.path == "repo"
    assert args.verbose is False


class _StubSynchronizer:
    report = SyncReport(root="repo", revision="r1")
    rows: list = []
    calls: list = []

    def synchronize(self, path, **kwargs):  # type: ignore[no-untyped-def]
        self.calls.append((path, kwargs))
        return self.report

    def status(self, path):  # type: ignore[no-untyped-def]
        return self.rows


@pytest.fixture
def stub(monkeypatch) -> type:
    _StubSynchronizer.report = SyncReport(root="repo", revision="r1")
    _StubSynchronizer.rows = []
    _StubSynchronizer.calls = []
    monkeypatch.setattr(cli, "Synchronizer", _StubSynchronizer)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    return _StubSynchronizer


def test_main_sync_prints_summary(stub, capsys) -> None:
    stub.report.record(PartOutcome("screens", "screens", ADVANCED, revision="r1"))

    cli.main(["sync", "repo", "--budget", "500"])

    out = capsys.readouterr().out
    assert "screens: advanced @ r1" in out
    assert stub.calls == [
        ("repo", {"categories": None, "size_budget": 500, "revision": None, "dry_run": False})
    ]


def test_main_sync_exits_non_zero_on_failed_part(stub, capsys) -> None:
    stub.report.record(PartOutcome("components", "components", FAILED, reason="write failed: disk full"))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "repo"])

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert "components: failed (write failed: disk full)" in captured.out
    assert "1 document part(s) did not advance" in captured.err


def test_main_dry_run_prints_diffs(stub, capsys) -> None:
    stub.report = SyncReport(root="repo", revision="r1", dry_run=True)
    stub.report.diffs["todo"] = "+# TODO\n"

    cli.main(["sync", "repo", "--dry-run"])

    out = capsys.readouterr().out
    assert "Document changes (dry-run):" in out
    assert "+# TODO" in out


def test_main_status_lists_parts(stub, capsys) -> None:
    stub.rows = [
        PartStatus(category="screens", part="screens", revision="r1", indexed_revision="r1", entities=2),
        PartStatus(category="todo", part="todo", revision="r2", indexed_revision=None, entities=0),
    ]

    cli.main(["status", "repo"])

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["screens", "screens", "r1"]
    assert lines[1].split() == ["todo", "todo", "r2", "(index:", "missing)"]


def test_main_status_without_documents(stub, capsys) -> None:
    cli.main(["status", "repo"])

    assert "No synchronized documents found" in capsys.readouterr().out


def test_cli_serve_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["serve", "--port", "9000"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 9000


def test_main_serve_starts_service(stub, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr("docsync.service.run_service", lambda host, port: calls.append((host, port)))

    cli.main(["serve", "--host", "0.0.0.0", "--port", "8080"])

    assert calls == [("0.0.0.0", 8080)]


def test_cli_accepts_log_file(tmp_path) -> None:  # type: ignore[no-untyped-def]
    parser = _build_parser()
    args = parser.parse_args(["--log-file", str(tmp_path / "run.log"), "status"])
    assert args.log_file == tmp_path / "run.log"
