import asyncio

from conftest import FakeClient

from vlr_ingest import ingest_worker
from vlr_ingest.orchestrator import build_orchestrator


def test_run_cycle_returns_summary(engine):
    payload = {"data": {"segments": [{"rank": "1", "team": "Fnatic"}]}}
    orch = build_orchestrator(engine, FakeClient({"/rankings": payload}))

    result = asyncio.run(ingest_worker.run_cycle(orch, "rankings"))
    assert result == {"mode": "rankings", "records": 1}


def test_run_cycle_swallows_bad_mode(engine):
    orch = build_orchestrator(engine, FakeClient())
    assert asyncio.run(ingest_worker.run_cycle(orch, "nope")) == {}


def test_match_detail_is_not_schedulable():
    assert "match-detail" not in ingest_worker.SCHEDULABLE_MODES
    assert "batch-detail" in ingest_worker.SCHEDULABLE_MODES
