"""
match_detail.py — One vlr.gg match page → matches / maps / player_map_stats.

Flow per page:
  fetch HTML -> scrape_match_page() -> reconcile Match by vlr_id
    -> per map:    winner, ensure_map (identity: match + map_number)
    -> per player: team by side, ensure_player, ensure_agent,
                   skip if (map, player) already has a stat row,
                   else insert the box score
  -> exactly one ledger row for the page

Re-running a page is safe: nothing already stored is written twice, and rows
that already exist still count toward the returned record count.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from vlr_ingest.normalizers import round_stat
from vlr_ingest.reconcile import EntityResolver
from vlr_ingest.run_log import ERROR, PARTIAL, SOURCE_SCRAPE, SUCCESS, RunLedger
from vlr_ingest.scraper import ScrapedMap, ScrapedMatch, ScrapedPlayer, scrape_match_page
from vlr_ingest.storage import Storage, StorageError
from vlr_ingest.vlr_client import VlrClient

logger = logging.getLogger(__name__)

FETCH_ERROR = "Failed to fetch match page"
NO_MAPS_ERROR = "No map data extracted from page"

_INT_STATS = ("kills", "deaths", "assists", "first_kills", "first_deaths")
_FLOAT_STATS = ("acs", "adr", "kast", "rating", "headshot_percentage")


def map_winner(
    team1_rounds: Optional[int],
    team2_rounds: Optional[int],
    team1_id: Optional[int],
    team2_id: Optional[int],
) -> Optional[int]:
    """The team with strictly more rounds; None on a tie or a missing score."""
    if team1_rounds is None or team2_rounds is None:
        return None
    if team1_rounds > team2_rounds:
        return team1_id
    if team2_rounds > team1_rounds:
        return team2_id
    return None


def rounds_played(team1_rounds: Optional[int], team2_rounds: Optional[int]) -> Optional[int]:
    total = (team1_rounds or 0) + (team2_rounds or 0)
    return total or None


class MatchDetailIngestor:
    def __init__(
        self,
        client: VlrClient,
        storage: Storage,
        resolver: EntityResolver,
        ledger: RunLedger,
    ) -> None:
        self._client = client
        self._storage = storage
        self._resolver = resolver
        self._ledger = ledger

    # ------------------------------------------------------------------ #
    # Match row                                                           #
    # ------------------------------------------------------------------ #

    def _resolve_match(
        self, vlr_id: str, url: str, scraped: ScrapedMatch,
    ) -> tuple[int, Optional[int], Optional[int]]:
        """Returns (match_id, team1_id, team2_id). Raises StorageError if the insert fails."""
        existing = self._storage.fetch_one(
            "matches", {"vlr_id": vlr_id}, columns=("id", "team1_id", "team2_id"),
        )
        if existing is not None:
            # Teams stored by the results feed win; page names only fill a missing side
            team1_id = existing["team1_id"]
            if team1_id is None:
                team1_id = self._resolver.ensure_team(scraped.team1)
            team2_id = existing["team2_id"]
            if team2_id is None:
                team2_id = self._resolver.ensure_team(scraped.team2)
            return existing["id"], team1_id, team2_id

        team1_id = self._resolver.ensure_team(scraped.team1)
        team2_id = self._resolver.ensure_team(scraped.team2)
        match_id = self._storage.insert(
            "matches",
            {
                "vlr_id": vlr_id,
                "vlr_url": url,
                "team1_id": team1_id,
                "team2_id": team2_id,
                "match_date": datetime.now(timezone.utc),
            },
        )
        logger.info("[match_detail] created match %s (id=%s)", vlr_id, match_id)
        return match_id, team1_id, team2_id

    # ------------------------------------------------------------------ #
    # Player rows                                                         #
    # ------------------------------------------------------------------ #

    def _store_player(
        self,
        map_id: int,
        scraped_map: ScrapedMap,
        player: ScrapedPlayer,
        team_id: Optional[int],
    ) -> bool:
        player_id = self._resolver.ensure_player(player.ign, team_id)
        if player_id is None:
            return False
        agent_id = self._resolver.ensure_agent(player.agent) if player.agent else None

        if self._storage.find_one("player_map_stats", {"map_id": map_id, "player_id": player_id}) is not None:
            return True

        row = {
            "map_id": map_id,
            "player_id": player_id,
            "team_id": team_id,
            "agent_id": agent_id,
            "rounds_played": rounds_played(scraped_map.team1_rounds, scraped_map.team2_rounds),
        }
        for name in _INT_STATS:
            row[name] = round_stat(getattr(player, name))
        for name in _FLOAT_STATS:
            row[name] = getattr(player, name)

        self._storage.insert("player_map_stats", row)
        return True

    # ------------------------------------------------------------------ #
    # Entry point                                                         #
    # ------------------------------------------------------------------ #

    async def ingest(self, vlr_id: str, slug: Optional[str] = None) -> int:
        url = self._client.match_url(vlr_id, slug)
        started_at = datetime.now(timezone.utc)

        html = await self._client.get_html(url)
        if html is None:
            self._ledger.append(SOURCE_SCRAPE, url, ERROR, 0, FETCH_ERROR, started_at=started_at)
            return 0

        scraped = scrape_match_page(html)
        if not scraped.maps:
            self._ledger.append(SOURCE_SCRAPE, url, ERROR, 0, NO_MAPS_ERROR, started_at=started_at)
            return 0

        try:
            match_id, team1_id, team2_id = self._resolve_match(vlr_id, url, scraped)
        except StorageError as exc:
            logger.error("[match_detail] match %s insert failed: %s", vlr_id, exc)
            self._ledger.append(SOURCE_SCRAPE, url, ERROR, 0, str(exc), started_at=started_at)
            return 0

        count = 0
        failed = 0
        for scraped_map in scraped.maps:
            winner_id = map_winner(
                scraped_map.team1_rounds, scraped_map.team2_rounds, team1_id, team2_id,
            )
            try:
                map_id = self._resolver.ensure_map(
                    scraped_map.map_name,
                    match_id,
                    scraped_map.map_number,
                    team1_rounds=scraped_map.team1_rounds,
                    team2_rounds=scraped_map.team2_rounds,
                    winner_id=winner_id,
                    vlr_game_id=scraped_map.game_id,
                )
            except StorageError as exc:
                logger.error("[match_detail] %s map %d: %s", vlr_id, scraped_map.map_number, exc)
                map_id = None
            if map_id is None:
                failed += len(scraped_map.players)
                continue

            for player in scraped_map.players:
                team_id = team1_id if player.side == 1 else team2_id
                try:
                    if self._store_player(map_id, scraped_map, player, team_id):
                        count += 1
                except StorageError as exc:
                    failed += 1
                    logger.error(
                        "[match_detail] %s map %d player %r: %s",
                        vlr_id, scraped_map.map_number, player.ign, exc,
                    )

        metadata = {
            "maps": len(scraped.maps),
            "players": scraped.player_count,
            "unrecognized_maps": [m.raw_name for m in scraped.maps if not m.recognized],
        }
        if failed:
            metadata["failed"] = failed
        status = PARTIAL if failed else SUCCESS
        self._ledger.append(SOURCE_SCRAPE, url, status, count, metadata=metadata, started_at=started_at)
        return count
