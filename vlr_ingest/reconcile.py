"""
reconcile.py — Lookup-or-create for teams, players, events, agents and maps.

Every pipeline resolves names through here, so there is one canonical row per
case-insensitive name no matter which feed saw the entity first.

Contract shared by all ensure_* methods:
  - blank identifying text      -> None (caller skips the record)
  - existing row                -> its id
  - no row                      -> insert with computed defaults, return new id
  - storage failure on insert   -> logged, None
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from vlr_ingest.normalizers import infer_agent_role, infer_tier
from vlr_ingest.storage import Storage, StorageError

logger = logging.getLogger(__name__)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    cleaned = str(text).strip()
    return cleaned or None


class EntityResolver:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def _create(self, entity: str, attributes: dict, label: str) -> Optional[int]:
        try:
            new_id = self._storage.insert(entity, attributes)
        except StorageError as exc:
            logger.error("[reconcile] insert %s %r failed: %s", entity, label, exc)
            return None
        logger.debug("[reconcile] created %s %r (id=%s)", entity, label, new_id)
        return new_id

    # ------------------------------------------------------------------ #
    # Teams                                                               #
    # ------------------------------------------------------------------ #

    def ensure_team(
        self,
        name: Optional[str],
        *,
        abbreviation: Optional[str] = None,
        region: Optional[str] = None,
        logo_url: Optional[str] = None,
    ) -> Optional[int]:
        clean = _clean(name)
        if clean is None:
            return None

        existing = self._storage.find_one("teams", {"name": clean}, ci_fields=("name",))
        if existing is not None:
            return existing

        return self._create(
            "teams",
            {
                "name": clean,
                "abbreviation": abbreviation or clean[:4].upper(),
                "region": region,
                "logo_url": logo_url,
            },
            clean,
        )

    # ------------------------------------------------------------------ #
    # Players                                                             #
    # ------------------------------------------------------------------ #

    def ensure_player(self, ign: Optional[str], team_id: Optional[int] = None) -> Optional[int]:
        clean = _clean(ign)
        if clean is None:
            return None

        existing = self._storage.find_one("players", {"ign": clean}, ci_fields=("ign",))
        if existing is not None:
            if team_id is not None:
                # Last write wins on team assignment
                try:
                    self._storage.update(
                        "players", existing,
                        {"current_team_id": team_id, "updated_at": datetime.now(timezone.utc)},
                    )
                except StorageError as exc:
                    logger.error(
                        "[reconcile] team update for player %r failed: %s", clean, exc,
                    )
            return existing

        return self._create(
            "players",
            {"ign": clean, "name": clean, "current_team_id": team_id},
            clean,
        )

    # ------------------------------------------------------------------ #
    # Events                                                              #
    # ------------------------------------------------------------------ #

    def ensure_event(
        self,
        name: Optional[str],
        *,
        region: Optional[str] = None,
        year: Optional[int] = None,
        tier: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Optional[int]:
        clean = _clean(name)
        if clean is None:
            return None

        existing = self._storage.find_one("events", {"name": clean}, ci_fields=("name",))
        if existing is not None:
            return existing

        return self._create(
            "events",
            {
                "name": clean,
                "tier": tier or infer_tier(clean),
                "region": region,
                "year": year or datetime.now(timezone.utc).year,
                "start_date": start_date,
                "end_date": end_date,
            },
            clean,
        )

    # ------------------------------------------------------------------ #
    # Agents                                                              #
    # ------------------------------------------------------------------ #

    def ensure_agent(self, name: Optional[str], role: Optional[str] = None) -> Optional[int]:
        clean = _clean(name)
        if clean is None:
            return None

        existing = self._storage.find_one("agents", {"name": clean}, ci_fields=("name",))
        if existing is not None:
            return existing

        return self._create(
            "agents",
            {"name": clean, "role": role or infer_agent_role(clean)},
            clean,
        )

    # ------------------------------------------------------------------ #
    # Maps: identity is (match, map_number), map names repeat everywhere  #
    # ------------------------------------------------------------------ #

    def ensure_map(
        self,
        map_name: str,
        match_id: int,
        map_number: int,
        *,
        team1_rounds: Optional[int] = None,
        team2_rounds: Optional[int] = None,
        winner_id: Optional[int] = None,
        vlr_game_id: Optional[str] = None,
    ) -> Optional[int]:
        existing = self._storage.find_one(
            "maps", {"match_id": match_id, "map_number": map_number},
        )
        if existing is not None:
            return existing

        return self._create(
            "maps",
            {
                "match_id": match_id,
                "map_number": map_number,
                "vlr_game_id": vlr_game_id,
                "map_name": map_name,
                "team1_rounds": team1_rounds,
                "team2_rounds": team2_rounds,
                "winner_team_id": winner_id,
            },
            f"{match_id}#{map_number}",
        )
