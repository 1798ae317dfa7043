"""API tests for the pipeline router (app/routes/pipeline.py)."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from uiflow.capture.ledger import ErrorLedgerStore, record_failure


def _client() -> AsyncClient:
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test", timeout=30.0)


# ---------------------------------------------------------------------------
# Health / workspace
# ---------------------------------------------------------------------------


class TestHealthAndWorkspace:
    @pytest.mark.asyncio
    async def test_health(self):
        async with _client() as client:
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_get_workspace(self, project: Path):
        async with _client() as client:
            resp = await client.get("/api/v1/pipeline/workspace", params={"project_path": str(project)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["current_process"] == "init"
        assert data["progress"]["init"] == "in_progress"

    @pytest.mark.asyncio
    async def test_bad_project_path(self, tmp_path: Path):
        async with _client() as client:
            resp = await client.get(
                "/api/v1/pipeline/workspace", params={"project_path": str(tmp_path / "missing")}
            )
        assert resp.status_code == 400
        assert "Project directory not found" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# Gates / transitions
# ---------------------------------------------------------------------------


class TestGatesAndTransitions:
    @pytest.mark.asyncio
    async def test_exit_gate(self, project: Path):
        async with _client() as client:
            resp = await client.post("/api/v1/pipeline/gates/init", json={"project_path": str(project)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["phase_id"] == "init"
        assert data["passed"] is True

    @pytest.mark.asyncio
    async def test_unknown_phase(self, project: Path):
        async with _client() as client:
            resp = await client.post("/api/v1/pipeline/gates/bogus", json={"project_path": str(project)})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_transition_conflict(self, project: Path):
        payload = {"project_path": str(project), "from_phase": "init", "to_phase": "finalize"}
        async with _client() as client:
            resp = await client.post("/api/v1/pipeline/transitions", json=payload)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_transition_advances(self, project: Path):
        payload = {"project_path": str(project), "from_phase": "init", "to_phase": "generate"}
        async with _client() as client:
            resp = await client.post("/api/v1/pipeline/transitions", json=payload)
            workspace = await client.get("/api/v1/pipeline/workspace", params={"project_path": str(project)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["advanced"] is True
        assert data["summary"]["text"].startswith("## Completed: init")
        assert workspace.json()["current_process"] == "generate"

    @pytest.mark.asyncio
    async def test_missing_field_rejected(self, project: Path):
        async with _client() as client:
            resp = await client.post(
                "/api/v1/pipeline/transitions", json={"project_path": str(project), "from_phase": "init"}
            )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Checks / ledger
# ---------------------------------------------------------------------------


class TestChecksAndLedger:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("check", ["index-data", "template-variables", "navigation", "iframe-src"])
    async def test_check_passes(self, project: Path, check: str):
        async with _client() as client:
            resp = await client.post(f"/api/v1/pipeline/checks/{check}", json={"project_path": str(project)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["check"] == check
        assert data["passed"] is True

    @pytest.mark.asyncio
    async def test_unknown_check(self, project: Path):
        async with _client() as client:
            resp = await client.post("/api/v1/pipeline/checks/nope", json={"project_path": str(project)})
        assert resp.status_code == 404
        assert "index-data" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_capture_ledger(self, project: Path):
        store = ErrorLedgerStore(project)
        ledger = store.load()
        record_failure(ledger, "SCR-AUTH-001-login", "ipad", "Timeout", "auth/SCR-AUTH-001-login.html", 3)
        store.save(ledger)

        async with _client() as client:
            resp = await client.get("/api/v1/pipeline/capture/ledger", params={"project_path": str(project)})

        assert resp.status_code == 200
        errors = resp.json()["errors"]
        assert len(errors) == 1
        assert errors[0]["retry_count"] == 3
