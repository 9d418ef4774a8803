"""
normalizers.py — Turn loosely formatted feed/page text into typed values.

Nothing in here raises on bad input: every parser degrades to None (or to a
documented default) so a single odd cell never aborts a feed or a page.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from vlr_ingest.config import (
    AGENT_ROLES,
    DEFAULT_AGENT_ROLE,
    DEFAULT_TIER,
    TIER_KEYWORDS,
    VALID_MAPS,
)

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"(\d{4})")
_RANGE_SPLIT_RE = re.compile(r"\s+[-–—]\s+")
_MATCH_PAGE_RE = re.compile(r"^/(\d+)/")
_DATE_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%b %d %Y", "%B %d %Y")

_MAP_LOOKUP: dict[str, str] = {m.lower(): m for m in VALID_MAPS}


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def parse_number(text: Any) -> Optional[float]:
    """'1,234' -> 1234.0, '12.5%' -> 12.5; '', '-', junk -> None."""
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text) if math.isfinite(text) else None
    cleaned = str(text).replace(",", "").replace("%", "").strip()
    if not cleaned or cleaned == "-":
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_int(text: Any) -> Optional[int]:
    value = parse_number(text)
    return int(value) if value is not None else None


def round_stat(value: Optional[float]) -> Optional[int]:
    """Half-up rounding to a whole number (2.5 -> 3); None passes through."""
    if value is None:
        return None
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    start: Optional[date]
    end: Optional[date]
    year: Optional[int]


def _parse_day(text: str) -> Optional[date]:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_range(text: Optional[str]) -> DateRange:
    """Parses 'Mar 25 - May 19, 2024' style ranges.

    The year is pulled out by pattern first, so 'Jun 2024' still yields
    year=2024 with start/end left as None. Partial failures never raise.
    """
    text = (text or "").strip()
    year_match = _YEAR_RE.search(text)
    year = int(year_match.group(1)) if year_match else None

    parts = _RANGE_SPLIT_RE.split(text)
    if len(parts) != 2 or year is None:
        return DateRange(None, None, year)

    start_part, end_part = parts[0].strip(), parts[1].strip()
    if not _YEAR_RE.search(start_part):
        start_part = f"{start_part}, {year}"
    if not _YEAR_RE.search(end_part):
        end_part = f"{end_part}, {year}"

    start = _parse_day(start_part)
    end = _parse_day(end_part)
    if start is None or end is None:
        return DateRange(None, None, year)
    return DateRange(start, end, year)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def infer_tier(event_name: Optional[str]) -> str:
    lower = (event_name or "").lower()
    for tier, keywords in TIER_KEYWORDS:
        if any(k in lower for k in keywords):
            return tier
    return DEFAULT_TIER


def _agent_key(agent_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", agent_name.lower())


def infer_agent_role(agent_name: Optional[str]) -> str:
    """Looks the agent up in the fixed rosters; unknown agents become duelists."""
    key = _agent_key(agent_name or "")
    for role, roster in AGENT_ROLES.items():
        if key in roster:
            return role
    logger.warning(
        "[normalizers] unknown agent %r, defaulting role to %s",
        agent_name, DEFAULT_AGENT_ROLE,
    )
    return DEFAULT_AGENT_ROLE


def is_known_map(label: Optional[str]) -> bool:
    return (label or "").strip().lower() in _MAP_LOOKUP


def normalize_map_name(label: Optional[str]) -> str:
    """Canonical map name; labels outside the map pool fall back to VALID_MAPS[0]."""
    canonical = _MAP_LOOKUP.get((label or "").strip().lower())
    if canonical is None:
        logger.warning(
            "[normalizers] unrecognized map label %r, stored as %s",
            label, VALID_MAPS[0],
        )
        return VALID_MAPS[0]
    return canonical


# ---------------------------------------------------------------------------
# vlr.gg identifiers
# ---------------------------------------------------------------------------

def extract_match_id(match_page: Optional[str]) -> Optional[str]:
    """'/318931/sentinels-vs-cloud9-...' -> '318931'."""
    m = _MATCH_PAGE_RE.match(match_page or "")
    return m.group(1) if m else None


def match_slug_from_url(vlr_url: Optional[str], vlr_id: str) -> str:
    """'https://www.vlr.gg/318931/some-slug' -> 'some-slug' ('' when absent)."""
    if not vlr_url:
        return ""
    path = re.sub(r"^https?://[^/]+", "", vlr_url).strip("/")
    prefix = f"{vlr_id}/"
    if path.startswith(prefix):
        return path[len(prefix):]
    return ""
