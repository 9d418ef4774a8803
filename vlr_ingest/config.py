"""
config.py — Project-wide constants for the VCT stats ingestion pipeline.

Unlike runtime settings (which are read from environment variables in the
modules that use them), these constants are stable across environments and
don't need to be overridden.
"""

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

# Community JSON mirror of vlr.gg and the site itself (HTML match pages).
DEFAULT_VLR_API_URL: str = "https://vlrggapi.vercel.app"
DEFAULT_VLR_WEB_URL: str = "https://www.vlr.gg"

API_USER_AGENT: str = "VCT-Stats-Oracle/1.0 (vlr-ingest worker)"
BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120"
)

# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------

# Every region code the /stats and /rankings feeds accept.
REGIONS: tuple[str, ...] = (
    "na", "eu", "ap", "la", "la-s", "la-n", "oce", "kr", "mn", "gc", "br", "cn",
)

# Subset walked by a full run (stats + rankings per region).
KEY_REGIONS: tuple[str, ...] = ("na", "eu", "ap", "br", "kr", "cn")

# ---------------------------------------------------------------------------
# Game vocabulary
# ---------------------------------------------------------------------------

# Competitive map pool. The first entry doubles as the fallback for labels
# that match nothing (see normalizers.normalize_map_name).
VALID_MAPS: tuple[str, ...] = (
    "Bind", "Haven", "Split", "Ascent", "Icebox", "Breeze",
    "Fracture", "Pearl", "Lotus", "Sunset", "Abyss", "Drift",
)

# Agent rosters, keyed by role. Names are lowercase with punctuation removed
# ("KAY/O" -> "kayo").
AGENT_ROLES: dict[str, frozenset[str]] = {
    "duelist": frozenset({
        "jett", "raze", "reyna", "phoenix", "yoru", "neon", "iso", "waylay",
    }),
    "initiator": frozenset({
        "sova", "breach", "skye", "fade", "gekko", "kayo",
    }),
    "controller": frozenset({
        "brimstone", "viper", "omen", "astra", "harbor", "clove",
    }),
    "sentinel": frozenset({
        "sage", "cypher", "killjoy", "chamber", "deadlock", "vyse", "tejo",
    }),
}
DEFAULT_AGENT_ROLE: str = "duelist"

# Event tier keywords, checked in order; the first hit wins.
TIER_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("champions", ("champions",)),
    ("masters", ("masters",)),
    ("challengers", ("challengers", "ascension")),
)
DEFAULT_TIER: str = "regular"

# ---------------------------------------------------------------------------
# Politeness / pacing defaults (seconds). Overridable via env in orchestrator.py.
# ---------------------------------------------------------------------------

REGION_DELAY_SECONDS: float = 0.5      # between regions in a full run
DETAIL_DELAY_SECONDS: float = 1.5      # between match pages in a full run
BATCH_DELAY_SECONDS: float = 0.5       # between match pages in batch-detail

RECENT_DETAIL_LIMIT: int = 10          # match pages scraped at the end of a full run
BATCH_CANDIDATE_POOL: int = 100        # matches considered by batch-detail
