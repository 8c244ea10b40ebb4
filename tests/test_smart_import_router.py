"""
tests/test_smart_import_router.py

HTTP tests for the smart import router using FastAPI's TestClient with the
service and session registry overridden by in-memory instances.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers.smart_import import router
from app.config import SmartImportSettings
from app.repositories.record_store import InMemoryRecordStore
from app.services.smart_import_service import (
    ImportSessionRegistry,
    SmartImportService,
    get_import_session_registry,
    get_smart_import_service,
)

REACH_CSV = b"Data,Alcance\n01/03/2024,1200\n02/03/2024,\n"
BAD_DATE_CSV = b"Data,Alcance\n31/02/2024,10\n01/03/2024,5\n"
PARAMS = {"platform": "instagram", "client_id": "client-1"}


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def client(store: InMemoryRecordStore) -> TestClient:
    service = SmartImportService(
        record_store=store,
        settings=SmartImportSettings(max_workers=2, advisory_timeout_seconds=1.0),
    )
    registry = ImportSessionRegistry(max_sessions=10)

    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_smart_import_service] = lambda: service
    app.dependency_overrides[get_import_session_registry] = lambda: registry
    return TestClient(app)


def _upload(*files: tuple[str, bytes]) -> list[tuple[str, tuple[str, bytes, str]]]:
    return [("files", (name, content, "text/csv")) for name, content in files]


def _create_session(client: TestClient, *files: tuple[str, bytes]) -> dict:
    response = client.post("/imports/sessions", params=PARAMS, files=_upload(*files))
    assert response.status_code == 201, response.text
    return response.json()


def test_validate_reports_files_without_persisting(client: TestClient, store: InMemoryRecordStore) -> None:
    response = client.post(
        "/imports/validate",
        params=PARAMS,
        files=_upload(("reach.csv", REACH_CSV), ("bad.csv", BAD_DATE_CSV)),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["can_proceed"] is False
    reach, bad = payload["files"]
    assert reach["detected_type"] == "reach"
    assert reach["column_mapping"] == {"date": "data", "reach": "alcance"}
    assert reach["issue_counts"]["info"] == 1
    assert reach["preview"][0]["reach"] == 1200
    assert bad["issues"][0]["issue_id"] == "invalid_date:r0:date"
    assert bad["issues"][0]["fix"]["action"] == "drop_row"
    assert store.calls == 0


def test_unsupported_upload_type_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/imports/validate",
        params=PARAMS,
        files=[("files", ("report.pdf", b"%PDF-1.4", "application/pdf"))],
    )

    assert response.status_code == 400


def test_unknown_platform_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/imports/validate",
        params={"platform": "myspace", "client_id": "client-1"},
        files=_upload(("reach.csv", REACH_CSV)),
    )

    assert response.status_code == 422


def test_session_fix_then_proceed(client: TestClient, store: InMemoryRecordStore) -> None:
    session = _create_session(client, ("bad.csv", BAD_DATE_CSV))
    session_id = session["session_id"]
    assert session["stage"] == "awaiting_proceed"
    assert session["can_proceed"] is False

    blocked = client.post(f"/imports/sessions/{session_id}/proceed")
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["blocking_issues"][0]["issue_id"] == "invalid_date:r0:date"

    fixed = client.post(f"/imports/sessions/{session_id}/fixes/invalid_date:r0:date")
    assert fixed.status_code == 200
    assert fixed.json()["can_proceed"] is True

    done = client.post(f"/imports/sessions/{session_id}/proceed")
    assert done.status_code == 200
    outcome = done.json()
    assert outcome["status"] == "completed"
    assert outcome["records_imported"] == 1
    assert outcome["content_kinds"] == ["reach"]
    assert outcome["advisory"]["ai_analyzed"] is False
    assert store.calls == 1

    state = client.get(f"/imports/sessions/{session_id}")
    assert state.json()["stage"] == "done"
    assert client.delete(f"/imports/sessions/{session_id}").status_code == 409


def test_unknown_issue_and_session(client: TestClient) -> None:
    session_id = _create_session(client, ("reach.csv", REACH_CSV))["session_id"]

    missing_issue = client.post(f"/imports/sessions/{session_id}/fixes/invalid_date:r7:date")
    missing_session = client.get("/imports/sessions/does-not-exist")

    assert missing_issue.status_code == 404
    assert missing_session.status_code == 404


def test_issue_without_fix_is_unprocessable(client: TestClient) -> None:
    session_id = _create_session(client, ("reach.csv", REACH_CSV))["session_id"]

    response = client.post(f"/imports/sessions/{session_id}/fixes/missing_value:r1:reach")

    assert response.status_code == 422


def test_correction_overrides_content_kind(client: TestClient) -> None:
    session = _create_session(client, ("mystery.csv", b"Dia,Valor\n01/03/2024,44\n"))
    assert session["files"][0]["detected_type"] == "unknown"

    response = client.post(
        f"/imports/sessions/{session['session_id']}/corrections",
        json={"file_name": "mystery.csv", "action": "override_content_kind", "content_kind": "reach"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["files"][0]["detected_type"] == "reach"
    assert payload["can_proceed"] is True


def test_invalid_correction_is_unprocessable(client: TestClient) -> None:
    session_id = _create_session(client, ("reach.csv", REACH_CSV))["session_id"]

    response = client.post(
        f"/imports/sessions/{session_id}/corrections",
        json={"file_name": "other.csv", "action": "remove_file"},
    )

    assert response.status_code == 422


def test_cancel_removes_session(client: TestClient) -> None:
    session_id = _create_session(client, ("reach.csv", REACH_CSV))["session_id"]

    assert client.delete(f"/imports/sessions/{session_id}").status_code == 204
    assert client.get(f"/imports/sessions/{session_id}").status_code == 404


def test_history_without_database_is_empty(client: TestClient) -> None:
    response = client.get("/imports/history")

    assert response.status_code == 200
    assert response.json() == []
