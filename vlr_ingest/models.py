"""
models.py — All SQLAlchemy ORM models for the VCT stats pipeline.

Importing this module registers all models with Base (from database.py),
so Alembic can detect the full schema via Base.metadata.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from vlr_ingest.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Reconciled entities (one row per case-insensitive name)
# ---------------------------------------------------------------------------

class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False, unique=True)
    abbreviation = Column(String(16))
    region = Column(String(16))
    logo_url = Column(Text)
    vlr_id = Column(String(32), unique=True)
    vlr_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ign = Column(String(64), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    country = Column(String(64))
    # Last-write-wins: overwritten whenever a pipeline sees the player on a team
    current_team_id = Column(Integer, ForeignKey("teams.id"))
    role = Column(String(16))
    vlr_id = Column(String(32), unique=True)
    vlr_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False, index=True)
    tier = Column(String(16))          # champions | masters | challengers | regular
    region = Column(String(32))
    year = Column(Integer, nullable=False, index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    vlr_id = Column(String(32), unique=True)
    vlr_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(32), nullable=False, unique=True)
    role = Column(String(16), nullable=False)   # duelist | initiator | controller | sentinel


# ---------------------------------------------------------------------------
# Matches, maps and per-map box scores
# ---------------------------------------------------------------------------

class Match(Base):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Numeric id from the vlr.gg URL ("/318931/..."); the idempotence key
    vlr_id = Column(String(32), unique=True)
    vlr_url = Column(Text)
    event_id = Column(Integer, ForeignKey("events.id"), index=True)
    # Nullable: a page whose header could not be parsed still yields maps
    team1_id = Column(Integer, ForeignKey("teams.id"))
    team2_id = Column(Integer, ForeignKey("teams.id"))
    team1_score = Column(Integer)
    team2_score = Column(Integer)
    stage = Column(String(32))
    match_date = Column(DateTime(timezone=True), nullable=False, index=True)
    best_of = Column(Integer, default=3)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Map(Base):
    __tablename__ = "maps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    map_number = Column(Integer, nullable=False)    # 1-based order within the match
    vlr_game_id = Column(String(32))                # data-game-id on the match page
    map_name = Column(String(32), nullable=False, index=True)
    team1_rounds = Column(Integer)
    team2_rounds = Column(Integer)
    winner_team_id = Column(Integer, ForeignKey("teams.id"))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("match_id", "map_number", name="uq_maps_match_number"),
    )


class PlayerMapStat(Base):
    __tablename__ = "player_map_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    map_id = Column(Integer, ForeignKey("maps.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), index=True)

    kills = Column(Integer)
    deaths = Column(Integer)
    assists = Column(Integer)
    acs = Column(Float)            # average combat score
    adr = Column(Float)            # average damage per round
    kast = Column(Float)           # kill / assist / survive / trade %
    rating = Column(Float)
    first_kills = Column(Integer)
    first_deaths = Column(Integer)
    headshot_percentage = Column(Float)
    rounds_played = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("map_id", "player_id", name="uq_player_map_stats_map_player"),
    )


# ---------------------------------------------------------------------------
# Periodic snapshots (natural key includes snapshot_date)
# ---------------------------------------------------------------------------

class PlayerStatsAggregate(Base):
    __tablename__ = "player_stats_aggregate"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    region = Column(String(16), nullable=False)
    timespan = Column(String(8), nullable=False)    # '30', '60', '90', 'all'
    rating = Column(Float)
    average_combat_score = Column(Float)
    kill_deaths = Column(Float)
    kast = Column(Float)
    average_damage_per_round = Column(Float)
    kills_per_round = Column(Float)
    assists_per_round = Column(Float)
    first_kills_per_round = Column(Float)
    first_deaths_per_round = Column(Float)
    headshot_percentage = Column(Float)
    clutch_success_percentage = Column(Float)
    snapshot_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "region", "timespan", "snapshot_date",
            name="uq_player_stats_aggregate_snapshot",
        ),
    )


class Ranking(Base):
    __tablename__ = "rankings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    region = Column(String(16), nullable=False, index=True)
    rank = Column(Integer, nullable=False)
    record = Column(String(32))
    earnings = Column(String(32))
    snapshot_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("team_id", "region", "snapshot_date", name="uq_rankings_snapshot"),
    )


# ---------------------------------------------------------------------------
# Run ledger (append-only)
# ---------------------------------------------------------------------------

class IngestionLog(Base):
    __tablename__ = "ingestion_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(32), nullable=False, index=True)    # vlrggapi | vlr_scrape
    endpoint = Column(Text, nullable=False)
    status = Column(String(16), nullable=False)                # success | partial | error
    records_processed = Column(Integer, default=0)
    error_message = Column(Text)
    # Attribute name differs from the column: `metadata` is reserved on declarative models
    run_metadata = Column("metadata", JSON)
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True))
