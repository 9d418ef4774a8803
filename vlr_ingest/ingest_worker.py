"""
ingest_worker.py — Scheduled ingestion runs without the HTTP layer.

Run as a standalone process:
    python -m vlr_ingest.ingest_worker          # from project root

Environment variables (all optional, sensible defaults):
    INGEST_MODE            — mode to run each cycle (default: full)
    POLL_INTERVAL_MINUTES  — minutes between cycles; 0 runs one cycle and exits
                             (default: 360)
    INGEST_BATCH_LIMIT     — match pages per cycle in batch-detail mode (default: 5)
"""

import asyncio
import logging
import os
import time

from dotenv import load_dotenv

load_dotenv()

from vlr_ingest.database import create_all_tables  # noqa: E402
from vlr_ingest.orchestrator import MODES, IngestRequest, Orchestrator, build_orchestrator  # noqa: E402

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

INGEST_MODE: str = os.getenv("INGEST_MODE", "full")
POLL_INTERVAL_MINUTES: int = int(os.getenv("POLL_INTERVAL_MINUTES", "360"))
INGEST_BATCH_LIMIT: int = int(os.getenv("INGEST_BATCH_LIMIT", "5"))

# match-detail needs a match id, so it cannot run on a schedule
SCHEDULABLE_MODES = tuple(m for m in MODES if m != "match-detail")

logger = logging.getLogger("ingest_worker")


# ---------------------------------------------------------------------------
# One cycle
# ---------------------------------------------------------------------------

async def run_cycle(orchestrator: Orchestrator, mode: str = INGEST_MODE) -> dict:
    """Runs one mode and logs the summary. Errors are logged, not raised."""
    request = IngestRequest(mode=mode, limit=INGEST_BATCH_LIMIT)
    try:
        result = await orchestrator.dispatch(request)
    except Exception as exc:
        logger.error("[worker] cycle (%s) failed: %s", mode, exc, exc_info=True)
        return {}
    logger.info("[worker] cycle (%s) done: %s", mode, result)
    return result


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

async def main() -> None:
    logger.info("=" * 60)
    logger.info("Ingest worker starting")
    logger.info("  INGEST_MODE           = %s", INGEST_MODE)
    logger.info("  POLL_INTERVAL_MINUTES = %d", POLL_INTERVAL_MINUTES)
    logger.info("  INGEST_BATCH_LIMIT    = %d", INGEST_BATCH_LIMIT)
    logger.info("=" * 60)

    if INGEST_MODE not in SCHEDULABLE_MODES:
        raise SystemExit(f"INGEST_MODE must be one of: {', '.join(SCHEDULABLE_MODES)}")

    # Ensure tables exist (safe to call multiple times)
    create_all_tables()
    orchestrator = build_orchestrator()
    logger.info(
        "[worker] DB tables ready. Matches stored: %d",
        orchestrator.storage.count("matches"),
    )

    while True:
        loop_start = time.monotonic()
        await run_cycle(orchestrator)

        if POLL_INTERVAL_MINUTES <= 0:
            break

        elapsed = time.monotonic() - loop_start
        sleep_sec = max(0.0, POLL_INTERVAL_MINUTES * 60 - elapsed)
        logger.info(
            "[worker] Sleeping %.0f s until next cycle (cycle took %.1f s)...",
            sleep_sec, elapsed,
        )
        await asyncio.sleep(sleep_sec)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(main())
