"""Initial VCT stats schema.

Revision ID: 0001
Revises:
Create Date: 2026-02-05

Creates:
  teams, players, events, agents      — reconciled entities (one row per name)
  matches, maps, player_map_stats     — results feed + scraped match pages
  player_stats_aggregate, rankings    — dated snapshots, upserted per day
  ingestion_log                       — append-only run ledger
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("abbreviation", sa.String(16)),
        sa.Column("region", sa.String(16)),
        sa.Column("logo_url", sa.Text()),
        sa.Column("vlr_id", sa.String(32), unique=True),
        sa.Column("vlr_url", sa.Text()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ign", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("country", sa.String(64)),
        sa.Column("current_team_id", sa.Integer(), sa.ForeignKey("teams.id")),
        sa.Column("role", sa.String(16)),
        sa.Column("vlr_id", sa.String(32), unique=True),
        sa.Column("vlr_url", sa.Text()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_players_ign", "players", ["ign"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("tier", sa.String(16)),
        sa.Column("region", sa.String(32)),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("vlr_id", sa.String(32), unique=True),
        sa.Column("vlr_url", sa.Text()),
        _timestamp("created_at"),
    )
    op.create_index("ix_events_name", "events", ["name"])
    op.create_index("ix_events_year", "events", ["year"])

    op.create_table(
        "agents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(32), nullable=False, unique=True),
        sa.Column("role", sa.String(16), nullable=False),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("vlr_id", sa.String(32), unique=True),
        sa.Column("vlr_url", sa.Text()),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id")),
        sa.Column("team1_id", sa.Integer(), sa.ForeignKey("teams.id")),
        sa.Column("team2_id", sa.Integer(), sa.ForeignKey("teams.id")),
        sa.Column("team1_score", sa.Integer()),
        sa.Column("team2_score", sa.Integer()),
        sa.Column("stage", sa.String(32)),
        _timestamp("match_date", nullable=False),
        sa.Column("best_of", sa.Integer()),
        _timestamp("created_at"),
    )
    op.create_index("ix_matches_event_id", "matches", ["event_id"])
    op.create_index("ix_matches_match_date", "matches", ["match_date"])

    op.create_table(
        "maps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "match_id", sa.Integer(),
            sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("map_number", sa.Integer(), nullable=False),
        sa.Column("vlr_game_id", sa.String(32)),
        sa.Column("map_name", sa.String(32), nullable=False),
        sa.Column("team1_rounds", sa.Integer()),
        sa.Column("team2_rounds", sa.Integer()),
        sa.Column("winner_team_id", sa.Integer(), sa.ForeignKey("teams.id")),
        _timestamp("created_at"),
        sa.UniqueConstraint("match_id", "map_number", name="uq_maps_match_number"),
    )
    op.create_index("ix_maps_match_id", "maps", ["match_id"])
    op.create_index("ix_maps_map_name", "maps", ["map_name"])

    op.create_table(
        "player_map_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "map_id", sa.Integer(),
            sa.ForeignKey("maps.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id")),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id")),

        # Box score; integer counts are rounded on ingest
        sa.Column("kills", sa.Integer()),
        sa.Column("deaths", sa.Integer()),
        sa.Column("assists", sa.Integer()),
        sa.Column("acs", sa.Float()),
        sa.Column("adr", sa.Float()),
        sa.Column("kast", sa.Float()),
        sa.Column("rating", sa.Float()),
        sa.Column("first_kills", sa.Integer()),
        sa.Column("first_deaths", sa.Integer()),
        sa.Column("headshot_percentage", sa.Float()),
        sa.Column("rounds_played", sa.Integer()),
        _timestamp("created_at"),
        sa.UniqueConstraint("map_id", "player_id", name="uq_player_map_stats_map_player"),
    )
    op.create_index("ix_player_map_stats_map_id", "player_map_stats", ["map_id"])
    op.create_index("ix_player_map_stats_player_id", "player_map_stats", ["player_id"])
    op.create_index("ix_player_map_stats_team_id", "player_map_stats", ["team_id"])
    op.create_index("ix_player_map_stats_agent_id", "player_map_stats", ["agent_id"])

    op.create_table(
        "player_stats_aggregate",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("region", sa.String(16), nullable=False),
        sa.Column("timespan", sa.String(8), nullable=False),
        sa.Column("rating", sa.Float()),
        sa.Column("average_combat_score", sa.Float()),
        sa.Column("kill_deaths", sa.Float()),
        sa.Column("kast", sa.Float()),
        sa.Column("average_damage_per_round", sa.Float()),
        sa.Column("kills_per_round", sa.Float()),
        sa.Column("assists_per_round", sa.Float()),
        sa.Column("first_kills_per_round", sa.Float()),
        sa.Column("first_deaths_per_round", sa.Float()),
        sa.Column("headshot_percentage", sa.Float()),
        sa.Column("clutch_success_percentage", sa.Float()),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "player_id", "region", "timespan", "snapshot_date",
            name="uq_player_stats_aggregate_snapshot",
        ),
    )
    op.create_index(
        "ix_player_stats_aggregate_player_id", "player_stats_aggregate", ["player_id"],
    )

    op.create_table(
        "rankings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("region", sa.String(16), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("record", sa.String(32)),
        sa.Column("earnings", sa.String(32)),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("team_id", "region", "snapshot_date", name="uq_rankings_snapshot"),
    )
    op.create_index("ix_rankings_team_id", "rankings", ["team_id"])
    op.create_index("ix_rankings_region", "rankings", ["region"])

    op.create_table(
        "ingestion_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("records_processed", sa.Integer()),
        sa.Column("error_message", sa.Text()),
        sa.Column("metadata", sa.JSON()),
        _timestamp("started_at", nullable=False),
        _timestamp("completed_at"),
    )
    op.create_index("ix_ingestion_log_source", "ingestion_log", ["source"])


def downgrade() -> None:
    op.drop_index("ix_ingestion_log_source", table_name="ingestion_log")
    op.drop_table("ingestion_log")
    op.drop_index("ix_rankings_region", table_name="rankings")
    op.drop_index("ix_rankings_team_id", table_name="rankings")
    op.drop_table("rankings")
    op.drop_index("ix_player_stats_aggregate_player_id", table_name="player_stats_aggregate")
    op.drop_table("player_stats_aggregate")
    op.drop_index("ix_player_map_stats_agent_id", table_name="player_map_stats")
    op.drop_index("ix_player_map_stats_team_id", table_name="player_map_stats")
    op.drop_index("ix_player_map_stats_player_id", table_name="player_map_stats")
    op.drop_index("ix_player_map_stats_map_id", table_name="player_map_stats")
    op.drop_table("player_map_stats")
    op.drop_index("ix_maps_map_name", table_name="maps")
    op.drop_index("ix_maps_match_id", table_name="maps")
    op.drop_table("maps")
    op.drop_index("ix_matches_match_date", table_name="matches")
    op.drop_index("ix_matches_event_id", table_name="matches")
    op.drop_table("matches")
    op.drop_table("agents")
    op.drop_index("ix_events_year", table_name="events")
    op.drop_index("ix_events_name", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_players_ign", table_name="players")
    op.drop_table("players")
    op.drop_table("teams")
