import pytest
from conftest import FakeClient
from fastapi.testclient import TestClient

from vlr_ingest.api import app, orchestrator_factory
from vlr_ingest.orchestrator import build_orchestrator

RESULTS = {
    "data": {
        "segments": [
            {"team1": "Sentinels", "team2": "Cloud9", "score1": "2", "score2": "1",
             "tournament_name": "VCT 2024: Americas Stage 1",
             "match_page": "/318931/sentinels-vs-cloud9"},
        ]
    }
}


class ExplodingOrchestrator:
    async def dispatch(self, request):
        raise RuntimeError("database is locked")


@pytest.fixture
def api(engine):
    async def no_sleep(seconds):
        return None

    orchestrator = build_orchestrator(engine, FakeClient({"/match": RESULTS}), sleep=no_sleep)
    app.dependency_overrides[orchestrator_factory] = lambda: (lambda: orchestrator)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_ingest_matches(api):
    r = api.post("/api/ingest", json={"mode": "matches"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "mode": "matches", "records": 1}


def test_unknown_mode_is_400(api):
    r = api.post("/api/ingest", json={"mode": "everything"})
    assert r.status_code == 400
    assert r.json() == {"error": "Unknown mode: everything"}


def test_match_detail_requires_id(api):
    r = api.post("/api/ingest", json={"mode": "match-detail"})
    assert r.status_code == 400
    assert "match_id" in r.json()["error"]


def test_fatal_error_is_500():
    app.dependency_overrides[orchestrator_factory] = lambda: ExplodingOrchestrator
    try:
        r = TestClient(app).post("/api/ingest", json={"mode": "full"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "database is locked"}


def test_ingest_log_lists_recent_runs(api):
    api.post("/api/ingest", json={"mode": "matches"})
    api.post("/api/ingest", json={"mode": "rankings", "region": "eu"})

    r = api.get("/api/ingest/log", params={"limit": 10})
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [e["endpoint"] for e in entries] == ["/rankings?region=eu", "/match?q=results"]
    assert [e["status"] for e in entries] == ["error", "success"]


def _unreachable_database():
    raise RuntimeError("unable to open database file")


def test_unavailable_database_is_structured_500():
    app.dependency_overrides[orchestrator_factory] = lambda: _unreachable_database
    try:
        client = TestClient(app)
        ingest = client.post("/api/ingest", json={"mode": "matches"})
        log = client.get("/api/ingest/log")
    finally:
        app.dependency_overrides.clear()
    assert ingest.status_code == 500
    assert ingest.json() == {"error": "unable to open database file"}
    assert log.status_code == 500
    assert log.json() == {"error": "unable to open database file"}
