"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from docsync.report import ADVANCED, PREVIEW, PartOutcome, SyncReport
from docsync.service import create_app
from docsync.synchronizer import PartStatus


class _StubSynchronizer:
    def __init__(self) -> None:
        self.sync_calls: list[dict[str, object]] = []
        self.status_calls: list[str] = []

    def synchronize(self, path: str, *, categories=None, size_budget=None, revision=None, dry_run=False):  # type: ignore[no-untyped-def]
        self.sync_calls.append(
            {
                "path": path,
                "categories": categories,
                "size_budget": size_budget,
                "revision": revision,
                "dry_run": dry_run,
            }
        )
        if categories and "bogus" in categories:
            raise ValueError("Unknown categories requested: bogus")
        report = SyncReport(root=path, revision=revision or "r1", dry_run=dry_run)
        status = PREVIEW if dry_run else ADVANCED
        report.record(PartOutcome("screens", "screens", status, revision=report.revision))
        if dry_run:
            report.diffs["screens"] = "+# Screens\n"
        return report

    def status(self, path: str) -> list[PartStatus]:
        self.status_calls.append(path)
        if path.endswith("missing"):
            raise FileNotFoundError(f"Repository path not found: {path}")
        return [PartStatus(category="screens", part="screens", revision="r1", indexed_revision="r1", entities=3)]


@pytest.fixture
def synchronizer() -> _StubSynchronizer:
    return _StubSynchronizer()


@pytest.fixture
def client(synchronizer: _StubSynchronizer) -> TestClient:
    app = create_app(lambda: synchronizer)
    return TestClient(app)


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sync_endpoint_runs_synchronizer(
    client: TestClient, synchronizer: _StubSynchronizer, tmp_path: Path
) -> None:
    response = client.post(
        "/sync",
        json={"path": str(tmp_path), "categories": ["screens"], "size_budget": 400, "revision": "abc"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["revision"] == "abc"
    assert payload["parts"] == [
        {"category": "screens", "part": "screens", "status": "advanced", "revision": "abc", "reason": None}
    ]
    assert synchronizer.sync_calls == [
        {
            "path": str(tmp_path),
            "categories": ["screens"],
            "size_budget": 400,
            "revision": "abc",
            "dry_run": False,
        }
    ]


def test_sync_endpoint_dry_run_returns_diffs(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/sync", json={"path": str(tmp_path), "dry_run": True})

    assert response.status_code == 200
    payload = response.json()
    assert payload["dry_run"] is True
    assert payload["parts"][0]["status"] == "preview"
    assert payload["diffs"] == {"screens": "+# Screens\n"}


def test_sync_endpoint_maps_value_error_to_400(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/sync", json={"path": str(tmp_path), "categories": ["bogus"]})

    assert response.status_code == 400
    assert "bogus" in response.json()["detail"]


def test_status_endpoint(client: TestClient, synchronizer: _StubSynchronizer) -> None:
    response = client.get("/status", params={"path": "repo"})

    assert response.status_code == 200
    assert response.json() == {
        "parts": [
            {
                "category": "screens",
                "part": "screens",
                "revision": "r1",
                "indexed_revision": "r1",
                "entities": 3,
            }
        ]
    }
    assert synchronizer.status_calls == ["repo"]


def test_status_endpoint_maps_missing_repo_to_404(client: TestClient) -> None:
    response = client.get("/status", params={"path": "/tmp/missing"})

    assert response.status_code == 404
