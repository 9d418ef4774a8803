"""
api.py — HTTP trigger for ingestion runs.

    POST /api/ingest        {"mode": "stats", "region": "na", "timespan": "60"}
                            {"mode": "matches"}
                            {"mode": "events", "status": "completed"}
                            {"mode": "rankings", "region": "na"}
                            {"mode": "match-detail", "match_id": "318931", "slug": "..."}
                            {"mode": "batch-detail", "limit": 5}
                            {"mode": "full"}
    GET  /api/ingest/log    most recent ingestion_log rows

Run locally:
    uvicorn vlr_ingest.api:app --reload
"""

import logging
from typing import Callable

from dotenv import load_dotenv

load_dotenv()

from fastapi import Depends, FastAPI, Query  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from vlr_ingest.database import create_all_tables  # noqa: E402
from vlr_ingest.orchestrator import IngestRequest, Orchestrator, build_orchestrator  # noqa: E402
from vlr_ingest.run_log import RunLedger  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="VCT Stats Ingestion")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Orchestrator (built on first request, not at import) ---
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        create_all_tables()       # SQLite convenience; Alembic owns the PostgreSQL schema
        _orchestrator = build_orchestrator()
    return _orchestrator


def orchestrator_factory() -> Callable[[], Orchestrator]:
    """Hands out the builder, so handlers can turn a failed build into an error body."""
    return get_orchestrator


# ========== API Endpoints ==========

@app.post("/api/ingest")
async def ingest(
    request: IngestRequest,
    build: Callable[[], Orchestrator] = Depends(orchestrator_factory),
):
    """Runs one ingestion mode and returns its record-count summary."""
    try:
        orchestrator = build()
    except Exception as exc:
        logger.error("[api] orchestrator unavailable: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    try:
        result = await orchestrator.dispatch(request)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except Exception as exc:
        logger.error("[api] ingest %s failed: %s", request.mode, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return {"success": True, **result}


@app.get("/api/ingest/log")
async def ingest_log(
    limit: int = Query(20, ge=1, le=200),
    build: Callable[[], Orchestrator] = Depends(orchestrator_factory),
):
    """Most recent ledger rows, newest first."""
    try:
        entries = RunLedger(build().storage).recent(limit)
    except Exception as exc:
        logger.error("[api] ingest log failed: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return {"entries": entries}
