"""
feeds.py — vlrggapi JSON feeds → reconciled rows.

Four adapters, one shape:
  1. fetch one JSON document (retries live in VlrClient)
  2. no `segments` container          -> zero-record error entry, return 0
     (rankings also treat an empty list as no data)
  3. per segment: reconcile entities, insert/upsert the measurement row;
     a failing segment is logged and skipped, never fatal
  4. one ledger entry for the whole invocation

Idempotence boundaries:
  stats / rankings  upsert on (entity, region[, timespan], snapshot_date)
  matches           skip segments whose vlr_id is already stored
  events            ensure_event() is lookup-or-create by name
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from vlr_ingest.normalizers import extract_match_id, parse_date_range, parse_int, parse_number
from vlr_ingest.reconcile import EntityResolver
from vlr_ingest.run_log import ERROR, PARTIAL, SOURCE_API, SUCCESS, RunLedger
from vlr_ingest.storage import Storage
from vlr_ingest.vlr_client import VlrClient

logger = logging.getLogger(__name__)

NO_DATA_ERROR = "No data returned"

# Feed field -> player_stats_aggregate column
_AGGREGATE_FIELDS: tuple[tuple[str, str], ...] = (
    ("rating", "rating"),
    ("average_combat_score", "average_combat_score"),
    ("kill_deaths", "kill_deaths"),
    ("kill_assists_survived_traded", "kast"),
    ("average_damage_per_round", "average_damage_per_round"),
    ("kills_per_round", "kills_per_round"),
    ("assists_per_round", "assists_per_round"),
    ("first_kills_per_round", "first_kills_per_round"),
    ("first_deaths_per_round", "first_deaths_per_round"),
    ("headshot_percentage", "headshot_percentage"),
    ("clutch_success_percentage", "clutch_success_percentage"),
)


def _segments(payload: Any, *, allow_bare_list: bool = False) -> Optional[list]:
    """Pulls `data.segments` out of a feed document; None if the shape is wrong."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("segments"), list):
        return data["segments"]
    if allow_bare_list and isinstance(data, list):
        return data
    return None


def _text(segment: dict, key: str) -> Optional[str]:
    value = segment.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class FeedIngestor:
    def __init__(
        self,
        client: VlrClient,
        storage: Storage,
        resolver: EntityResolver,
        ledger: RunLedger,
        *,
        today: Callable[[], date] = lambda: datetime.now(timezone.utc).date(),
    ) -> None:
        self._client = client
        self._storage = storage
        self._resolver = resolver
        self._ledger = ledger
        self._today = today

    # ------------------------------------------------------------------ #
    # Shared loop                                                         #
    # ------------------------------------------------------------------ #

    async def _run(
        self,
        endpoint: str,
        path: str,
        params: dict,
        handle: Callable[[dict], bool],
        *,
        allow_bare_list: bool = False,
        require_rows: bool = False,
    ) -> int:
        started_at = datetime.now(timezone.utc)
        count = 0
        failed = 0
        try:
            payload = await self._client.get_json(path, params)
            segments = _segments(payload, allow_bare_list=allow_bare_list)
            if segments is None or (require_rows and not segments):
                self._ledger.append(
                    SOURCE_API, endpoint, ERROR, 0, NO_DATA_ERROR, started_at=started_at,
                )
                return 0

            for seg in segments:
                if not isinstance(seg, dict):
                    failed += 1
                    continue
                try:
                    if handle(seg):
                        count += 1
                except Exception as exc:
                    failed += 1
                    logger.error("[feeds] %s segment error: %s", endpoint, exc)
        except Exception as exc:
            logger.error("[feeds] %s aborted: %s", endpoint, exc, exc_info=True)
            self._ledger.append(SOURCE_API, endpoint, ERROR, count, str(exc), started_at=started_at)
            return count

        status = PARTIAL if failed else SUCCESS
        metadata = {"segments": len(segments), "failed": failed} if failed else None
        self._ledger.append(
            SOURCE_API, endpoint, status, count, metadata=metadata, started_at=started_at,
        )
        logger.info(
            "[feeds] %s done: %d records | %d segments | %d failed",
            endpoint, count, len(segments), failed,
        )
        return count

    # ------------------------------------------------------------------ #
    # /stats: aggregate player stats                                      #
    # ------------------------------------------------------------------ #

    async def ingest_stats(self, region: str = "na", timespan: str = "60") -> int:
        snapshot = self._today()

        def handle(seg: dict) -> bool:
            team_id = self._resolver.ensure_team(_text(seg, "org"), region=region)
            player_id = self._resolver.ensure_player(_text(seg, "player"), team_id)
            if player_id is None:
                return False

            row: dict[str, Any] = {
                "player_id": player_id,
                "region": region,
                "timespan": timespan,
                "snapshot_date": snapshot,
            }
            for feed_key, column in _AGGREGATE_FIELDS:
                row[column] = parse_number(seg.get(feed_key))

            self._storage.upsert(
                "player_stats_aggregate", row,
                conflict_key=("player_id", "region", "timespan", "snapshot_date"),
            )
            return True

        return await self._run(
            f"/stats?region={region}&timespan={timespan}",
            "/stats", {"region": region, "timespan": timespan},
            handle,
        )

    # ------------------------------------------------------------------ #
    # /match?q=results: completed match results                           #
    # ------------------------------------------------------------------ #

    async def ingest_matches(self) -> int:
        def handle(seg: dict) -> bool:
            match_page = _text(seg, "match_page")
            vlr_id = extract_match_id(match_page)
            if not vlr_id:
                return False

            # Already ingested: counted, not re-inserted
            if self._storage.find_one("matches", {"vlr_id": vlr_id}) is not None:
                return True

            team1_id = self._resolver.ensure_team(_text(seg, "team1"))
            team2_id = self._resolver.ensure_team(_text(seg, "team2"))
            event_name = _text(seg, "tournament_name") or _text(seg, "round_info")
            event_id = self._resolver.ensure_event(event_name) if event_name else None

            self._storage.insert(
                "matches",
                {
                    "vlr_id": vlr_id,
                    "vlr_url": f"{self._client.web_url}{match_page}",
                    "team1_id": team1_id,
                    "team2_id": team2_id,
                    "team1_score": parse_int(seg.get("score1")),
                    "team2_score": parse_int(seg.get("score2")),
                    "event_id": event_id,
                    # The feed only gives relative times ("2h ago"); ingestion time is close enough
                    "match_date": datetime.now(timezone.utc),
                },
            )
            return True

        return await self._run("/match?q=results", "/match", {"q": "results"}, handle)

    # ------------------------------------------------------------------ #
    # /events?q=<status>                                                  #
    # ------------------------------------------------------------------ #

    async def ingest_events(self, status: str = "completed") -> int:
        def handle(seg: dict) -> bool:
            dates = parse_date_range(_text(seg, "dates"))
            event_id = self._resolver.ensure_event(
                _text(seg, "title"),
                region=_text(seg, "region"),
                year=dates.year,
                start_date=dates.start,
                end_date=dates.end,
            )
            return event_id is not None

        return await self._run(f"/events?q={status}", "/events", {"q": status}, handle)

    # ------------------------------------------------------------------ #
    # /rankings?region=<r>                                                #
    # ------------------------------------------------------------------ #

    async def ingest_rankings(self, region: str = "na") -> int:
        snapshot = self._today()

        def handle(seg: dict) -> bool:
            team_id = self._resolver.ensure_team(
                _text(seg, "team"), logo_url=_text(seg, "logo"), region=region,
            )
            if team_id is None:
                return False

            self._storage.upsert(
                "rankings",
                {
                    "team_id": team_id,
                    "region": region,
                    "rank": parse_int(seg.get("rank")) or 0,
                    "record": _text(seg, "record"),
                    "earnings": _text(seg, "earnings"),
                    "snapshot_date": snapshot,
                },
                conflict_key=("team_id", "region", "snapshot_date"),
            )
            return True

        return await self._run(
            f"/rankings?region={region}", "/rankings", {"region": region},
            handle, allow_bare_list=True, require_rows=True,
        )
