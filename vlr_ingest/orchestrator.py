"""
orchestrator.py — Sequences the feed and match-page pipelines into runs.

Modes (one request -> exactly one mode):
    stats          /stats for one region + timespan
    matches        /match?q=results
    events         /events?q=<status>
    rankings       /rankings?region=<r>
    match-detail   one vlr.gg match page
    batch-detail   up to `limit` stored matches that have no maps yet
    full           everything, in a fixed order (see run_full)

Everything runs strictly in sequence. Pacing between regions and pages is a
fixed sleep; backoff for a single failing request lives in VlrClient.

Environment variables (all optional):
    REGION_DELAY_SECONDS   — pause between regions in a full run (default: 0.5)
    DETAIL_DELAY_SECONDS   — pause between match pages in a full run (default: 1.5)
    BATCH_DELAY_SECONDS    — pause between match pages in batch-detail (default: 0.5)
    RECENT_DETAIL_LIMIT    — match pages scraped at the end of a full run (default: 10)
    FULL_RUN_TIMESPAN      — stats window used by a full run (default: 90)
"""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import Engine

from vlr_ingest import config
from vlr_ingest.feeds import FeedIngestor
from vlr_ingest.match_detail import MatchDetailIngestor
from vlr_ingest.normalizers import match_slug_from_url
from vlr_ingest.reconcile import EntityResolver
from vlr_ingest.run_log import RunLedger
from vlr_ingest.storage import Storage
from vlr_ingest.vlr_client import VlrClient

logger = logging.getLogger(__name__)

REGION_DELAY_SECONDS: float = float(os.getenv("REGION_DELAY_SECONDS", str(config.REGION_DELAY_SECONDS)))
DETAIL_DELAY_SECONDS: float = float(os.getenv("DETAIL_DELAY_SECONDS", str(config.DETAIL_DELAY_SECONDS)))
BATCH_DELAY_SECONDS: float = float(os.getenv("BATCH_DELAY_SECONDS", str(config.BATCH_DELAY_SECONDS)))
RECENT_DETAIL_LIMIT: int = int(os.getenv("RECENT_DETAIL_LIMIT", str(config.RECENT_DETAIL_LIMIT)))
FULL_RUN_TIMESPAN: str = os.getenv("FULL_RUN_TIMESPAN", "90")

MODES = ("stats", "matches", "events", "rankings", "match-detail", "batch-detail", "full")


# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------

class IngestRequest(BaseModel):
    # vlrId / vlrSlug are accepted for callers of the old HTTP function
    model_config = ConfigDict(populate_by_name=True)

    mode: str = "full"
    region: str = "na"
    timespan: str = "60"
    status: str = "completed"
    match_id: Optional[str] = Field(default=None, alias="vlrId")
    slug: Optional[str] = Field(default=None, alias="vlrSlug")
    limit: int = 5


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class Orchestrator:
    def __init__(
        self,
        feeds: FeedIngestor,
        details: MatchDetailIngestor,
        storage: Storage,
        *,
        region_delay: float = REGION_DELAY_SECONDS,
        detail_delay: float = DETAIL_DELAY_SECONDS,
        batch_delay: float = BATCH_DELAY_SECONDS,
        recent_limit: int = RECENT_DETAIL_LIMIT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.feeds = feeds
        self.details = details
        self.storage = storage
        self.region_delay = region_delay
        self.detail_delay = detail_delay
        self.batch_delay = batch_delay
        self.recent_limit = recent_limit
        self._sleep = sleep

    async def _stage(self, name: str, make: Callable[[], Awaitable[int]]) -> int:
        """Runs one stage; an exception is logged and the stage counts as 0."""
        try:
            count = await make()
        except Exception as exc:
            logger.error("[orchestrator] stage %s failed: %s", name, exc, exc_info=True)
            return 0
        logger.info("[orchestrator] stage %s: %d records", name, count)
        return count

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    async def _scrape_stored(self, rows: list[dict], delay: float) -> tuple[int, list[str]]:
        """Scrapes stored matches in order; returns (records, vlr ids processed)."""
        total = 0
        processed: list[str] = []
        for index, row in enumerate(rows):
            vlr_id = row["vlr_id"]
            slug = match_slug_from_url(row.get("vlr_url"), vlr_id)
            total += await self._stage(
                f"match-detail {vlr_id}",
                lambda: self.details.ingest(vlr_id, slug or None),
            )
            processed.append(vlr_id)
            if index < len(rows) - 1:
                await self._pause(delay)
        return total, processed

    # ------------------------------------------------------------------ #
    # Full run                                                            #
    # ------------------------------------------------------------------ #

    async def run_full(self) -> dict[str, int]:
        """
        events completed -> events upcoming -> match results
          -> per key region: stats (FULL_RUN_TIMESPAN), rankings, pause
          -> detail pages of the most recent matches, pausing between pages
        """
        results: dict[str, int] = {}

        results["events_completed"] = await self._stage(
            "events completed", lambda: self.feeds.ingest_events("completed"),
        )
        results["events_upcoming"] = await self._stage(
            "events upcoming", lambda: self.feeds.ingest_events("upcoming"),
        )
        results["matches"] = await self._stage("matches", self.feeds.ingest_matches)

        for index, region in enumerate(config.KEY_REGIONS):
            results[f"stats_{region}"] = await self._stage(
                f"stats {region}",
                lambda: self.feeds.ingest_stats(region, FULL_RUN_TIMESPAN),
            )
            results[f"rankings_{region}"] = await self._stage(
                f"rankings {region}", lambda: self.feeds.ingest_rankings(region),
            )
            if index < len(config.KEY_REGIONS) - 1:
                await self._pause(self.region_delay)

        try:
            recent = self.storage.select(
                "matches",
                columns=("vlr_id", "vlr_url"),
                not_null=("vlr_id",),
                order_by="match_date",
                descending=True,
                limit=self.recent_limit,
            )
        except Exception as exc:
            logger.error("[orchestrator] could not list recent matches: %s", exc)
            recent = []

        results["match_details"], _ = await self._scrape_stored(recent, self.detail_delay)

        logger.info("[orchestrator] full run done: %s", results)
        return results

    # ------------------------------------------------------------------ #
    # Catch-up over stored matches without maps                           #
    # ------------------------------------------------------------------ #

    async def run_batch_detail(self, limit: int = 5) -> dict[str, Any]:
        candidates = self.storage.select(
            "matches",
            columns=("id", "vlr_id", "vlr_url"),
            not_null=("vlr_id",),
            order_by="id",
            limit=config.BATCH_CANDIDATE_POOL,
        )
        scraped_ids = {
            row["match_id"] for row in self.storage.select("maps", columns=("match_id",))
        }
        unscraped = [row for row in candidates if row["id"] not in scraped_ids]

        batch = unscraped[:max(limit, 0)]
        records, processed = await self._scrape_stored(batch, self.batch_delay)

        logger.info(
            "[orchestrator] batch-detail: %d pages, %d records, %d remaining",
            len(processed), records, len(unscraped) - len(processed),
        )
        return {
            "records": records,
            "matches_scraped": processed,
            "remaining": len(unscraped) - len(processed),
        }

    # ------------------------------------------------------------------ #
    # Single-mode dispatch                                                #
    # ------------------------------------------------------------------ #

    async def dispatch(self, request: IngestRequest) -> dict[str, Any]:
        """Runs exactly one mode. Raises ValueError for a bad request."""
        mode = request.mode
        result: dict[str, Any] = {"mode": mode}

        if mode == "stats":
            result["records"] = await self.feeds.ingest_stats(request.region, request.timespan)
        elif mode == "matches":
            result["records"] = await self.feeds.ingest_matches()
        elif mode == "events":
            result["records"] = await self.feeds.ingest_events(request.status)
        elif mode == "rankings":
            result["records"] = await self.feeds.ingest_rankings(request.region)
        elif mode == "match-detail":
            if not request.match_id:
                raise ValueError("match_id required")
            result["records"] = await self.details.ingest(request.match_id, request.slug)
        elif mode == "batch-detail":
            result.update(await self.run_batch_detail(request.limit))
        elif mode == "full":
            result.update(await self.run_full())
        else:
            raise ValueError(f"Unknown mode: {mode}")

        return result


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_orchestrator(
    engine: Optional[Engine] = None,
    client: Optional[VlrClient] = None,
    **kwargs: Any,
) -> Orchestrator:
    """Builds the default object graph; extra kwargs go to Orchestrator()."""
    if engine is None:
        from vlr_ingest.database import engine as default_engine
        engine = default_engine

    storage = Storage(engine)
    resolver = EntityResolver(storage)
    ledger = RunLedger(storage)
    client = client or VlrClient()

    return Orchestrator(
        FeedIngestor(client, storage, resolver, ledger),
        MatchDetailIngestor(client, storage, resolver, ledger),
        storage,
        **kwargs,
    )
