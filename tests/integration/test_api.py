"""Integration tests for the HTTP API."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from reelbatch.api.routes_batch import get_runner_factory, get_settings
from reelbatch.core.exceptions import RowSourceError
from reelbatch.main import app
from reelbatch.models.schemas import BatchResult, ItemResult


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.run_once.return_value = BatchResult.from_results(
        [ItemResult(row_index=2, file_name="a.mp4", success=True, video_url="http://testserver/output/a.mp4")]
    )
    return runner


@pytest.fixture
def client(settings, runner):
    captured = {}

    def factory(effective_settings, logger):
        captured["settings"] = effective_settings
        return runner

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_runner_factory] = lambda: factory
    test_client = TestClient(app)
    test_client.captured = captured
    yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_run_batch_applies_overrides(client):
    response = client.post("/batches/run", json={"spreadsheet_id": "SID", "drive_folder_id": "FOLDER"})

    assert response.status_code == 200
    body = response.json()
    assert body["successful"] == 1
    assert body["results"][0]["video_url"] == "http://testserver/output/a.mp4"
    effective = client.captured["settings"]
    assert effective.spreadsheet_id == "SID"
    assert effective.drive_folder_id == "FOLDER"
    assert effective.sheet_name is None


def test_run_batch_without_spreadsheet_is_bad_request(client, runner):
    runner.run_once.side_effect = ValueError("No spreadsheet id configured")

    response = client.post("/batches/run", json={})

    assert response.status_code == 400


def test_run_batch_row_source_failure(client, runner):
    runner.run_once.side_effect = RowSourceError("Sheet is not published")

    response = client.post("/batches/run", json={"spreadsheet_id": "SID"})

    assert response.status_code == 502
    assert "not published" in response.json()["detail"]


def test_cache_stats_empty(client):
    response = client.get("/cache/stats")

    assert response.status_code == 200
    assert response.json()["file_count"] == 0


def test_outputs_list_and_cleanup(client, settings):
    settings.output_path.mkdir(parents=True, exist_ok=True)
    (settings.output_path / "done.mp4").write_bytes(b"video")

    listed = client.get("/outputs", params={"include_info": False})
    assert [video["filename"] for video in listed.json()] == ["done.mp4"]

    cleaned = client.post("/outputs/cleanup", params={"older_than_hours": 24})
    assert cleaned.json() == {"deleted": 0}
    assert (settings.output_path / "done.mp4").exists()
