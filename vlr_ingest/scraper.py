"""
scraper.py — Extract per-map, per-player box scores from a vlr.gg match page.

The page has no machine-readable schema, so extraction is a chain of
independent marker scans, each one tolerant of the others failing:

  1. team names        .wf-title-med (first two), else ""
  2. map names         (a) .vm-stats-gamesnav-item[data-game-id] labels
                       (b) .map labels, positionally, for ids (a) missed
                       (c) "Map {game_id}"
  3. map blocks        .vm-stats-game[data-game-id], skipping "all"
  4. round scores      first two .score elements inside the block
  5. player rows       <tr> with .text-of name, .mod-agents img[title],
                       and 6-12 td.mod-stat cells
  6. stat fields       positional, via STAT_RULES (see assign_stats)
  7. team of a row     rows 1-5 -> team 1, rows 6+ -> team 2
  8. map canonical     normalize_map_name

scrape_match_page() never raises on malformed markup; missing pieces come
back as empty strings / None and the caller decides what counts as failure
(zero maps).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from vlr_ingest.normalizers import is_known_map, normalize_map_name, parse_int, parse_number

logger = logging.getLogger(__name__)

AGGREGATE_GAME_ID = "all"
PLAYERS_PER_TEAM = 5
MIN_STAT_CELLS = 6
MAX_STAT_CELLS = 12


# ---------------------------------------------------------------------------
# Positional stat table
# ---------------------------------------------------------------------------

class StatRule(NamedTuple):
    field: str
    primary: int              # index when the row has the leading rating cell
    fallback: Optional[int]   # index when it doesn't (None: field not present)


# Player rows carry no per-cell labels; meaning is purely positional.
# Pages without the rating column are one cell shorter and shifted left.
STAT_RULES: tuple[StatRule, ...] = (
    StatRule("rating", 0, None),
    StatRule("acs", 1, 0),
    StatRule("kills", 2, 1),
    StatRule("deaths", 3, 2),
    StatRule("assists", 4, 3),
    StatRule("kast", 5, 4),
    StatRule("adr", 6, 5),
    StatRule("headshot_percentage", 7, 6),
    StatRule("first_kills", 8, 7),
    StatRule("first_deaths", 9, 8),
)
FULL_ROW_WIDTH = len(STAT_RULES)


def assign_stats(cells: Sequence[Optional[float]]) -> dict[str, Optional[float]]:
    """Maps captured stat cells onto named fields.

    A row with FULL_ROW_WIDTH or more cells is read with the primary indices;
    a shorter row is assumed to lack the rating cell and is read with the
    fallback indices. Indices past the end of `cells` give None.
    """
    has_rating = len(cells) >= FULL_ROW_WIDTH
    stats: dict[str, Optional[float]] = {}
    for rule in STAT_RULES:
        index = rule.primary if has_rating else rule.fallback
        if index is None or index >= len(cells):
            stats[rule.field] = None
        else:
            stats[rule.field] = cells[index]
    return stats


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ScrapedPlayer:
    ign: str
    agent: str
    team: str
    side: int                       # 1 or 2, by row position
    rating: Optional[float] = None
    acs: Optional[float] = None
    kills: Optional[float] = None
    deaths: Optional[float] = None
    assists: Optional[float] = None
    kast: Optional[float] = None
    adr: Optional[float] = None
    headshot_percentage: Optional[float] = None
    first_kills: Optional[float] = None
    first_deaths: Optional[float] = None


@dataclass
class ScrapedMap:
    map_number: int                 # 1-based order of the block on the page
    game_id: str
    map_name: str                   # canonical (normalize_map_name)
    raw_name: str                   # label as found on the page
    recognized: bool
    team1_rounds: Optional[int] = None
    team2_rounds: Optional[int] = None
    players: list[ScrapedPlayer] = field(default_factory=list)


@dataclass
class ScrapedMatch:
    team1: str = ""
    team2: str = ""
    maps: list[ScrapedMap] = field(default_factory=list)

    @property
    def player_count(self) -> int:
        return sum(len(m.players) for m in self.maps)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_WS_RE = re.compile(r"\s+")
_LEADING_ORDINAL_RE = re.compile(r"^\d+\s+")
_TRAILING_PICK_RE = re.compile(r"\s*\bpick\b\s*$", re.IGNORECASE)


def _squash(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def _own_text(el: Tag) -> str:
    """Text directly inside `el`, ignoring nested tags; whole text if there is none."""
    own = _squash("".join(el.find_all(string=True, recursive=False)))
    return own or _squash(el.get_text(" "))


def _clean_label(text: str) -> str:
    """'1  Bind PICK' -> 'Bind'."""
    label = _squash(text)
    label = _LEADING_ORDINAL_RE.sub("", label)
    label = _TRAILING_PICK_RE.sub("", label)
    return label.strip()


# ---------------------------------------------------------------------------
# Extraction steps
# ---------------------------------------------------------------------------

def _team_names(soup: BeautifulSoup) -> tuple[str, str]:
    names = [_own_text(el) for el in soup.select(".wf-title-med")]
    if len(names) < 2:
        logger.debug("[scraper] team header not found (%d candidates)", len(names))
        return "", ""
    return names[0], names[1]


def _nav_map_names(soup: BeautifulSoup) -> dict[str, str]:
    names: dict[str, str] = {}
    for el in soup.select(".vm-stats-gamesnav-item[data-game-id]"):
        game_id = (el.get("data-game-id") or "").strip()
        if not game_id or game_id == AGGREGATE_GAME_ID:
            continue
        label = _clean_label(el.get_text(" "))
        if label:
            names[game_id] = label
    return names


def _section_map_labels(soup: BeautifulSoup) -> list[str]:
    labels: list[str] = []
    for el in soup.select(".map"):
        span = el.find("span")
        label = _clean_label((span or el).get_text(" "))
        if label:
            labels.append(label)
    return labels


def _map_blocks(soup: BeautifulSoup) -> list[tuple[str, Tag]]:
    blocks: list[tuple[str, Tag]] = []
    for el in soup.select(".vm-stats-game[data-game-id]"):
        game_id = (el.get("data-game-id") or "").strip()
        if game_id == AGGREGATE_GAME_ID:
            continue
        if not game_id.isdigit():
            logger.debug("[scraper] skipping block with game id %r", game_id)
            continue
        blocks.append((game_id, el))
    return blocks


def _round_scores(block: Tag) -> tuple[Optional[int], Optional[int]]:
    scores = [parse_int(el.get_text(strip=True)) for el in block.select(".score")]
    team1 = scores[0] if len(scores) > 0 else None
    team2 = scores[1] if len(scores) > 1 else None
    return team1, team2


def _cell_value(td: Tag) -> Optional[float]:
    both = td.select_one(".mod-both")
    return parse_number((both or td).get_text(strip=True))


def _player_rows(block: Tag) -> list[tuple[str, str, list[Optional[float]]]]:
    rows = []
    for tr in block.select("tr"):
        name_el = tr.select_one(".text-of")
        if name_el is None:
            continue
        ign = _own_text(name_el)
        if not ign:
            continue

        agent_img = tr.select_one(".mod-agents img[title]")
        agent = _squash(agent_img.get("title", "")) if agent_img is not None else ""

        stat_cells = tr.select("td.mod-stat")
        if len(stat_cells) < MIN_STAT_CELLS:
            logger.debug("[scraper] row %r has %d stat cells, skipped", ign, len(stat_cells))
            continue
        cells = [_cell_value(td) for td in stat_cells[:MAX_STAT_CELLS]]
        rows.append((ign, agent, cells))
    return rows


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def scrape_match_page(html: str) -> ScrapedMatch:
    soup = BeautifulSoup(html or "", "html.parser")

    team1, team2 = _team_names(soup)

    map_names = _nav_map_names(soup)
    blocks = _map_blocks(soup)
    labels = _section_map_labels(soup)
    for position, (game_id, _block) in enumerate(blocks):
        if game_id not in map_names and position < len(labels):
            map_names[game_id] = labels[position]

    result = ScrapedMatch(team1=team1, team2=team2)

    for position, (game_id, block) in enumerate(blocks, start=1):
        raw_name = map_names.get(game_id) or f"Map {game_id}"
        team1_rounds, team2_rounds = _round_scores(block)

        players: list[ScrapedPlayer] = []
        for index, (ign, agent, cells) in enumerate(_player_rows(block)):
            side = 1 if index < PLAYERS_PER_TEAM else 2
            players.append(
                ScrapedPlayer(
                    ign=ign,
                    agent=agent,
                    team=team1 if side == 1 else team2,
                    side=side,
                    **assign_stats(cells),
                )
            )

        result.maps.append(
            ScrapedMap(
                map_number=position,
                game_id=game_id,
                map_name=normalize_map_name(raw_name),
                raw_name=raw_name,
                recognized=is_known_map(raw_name),
                team1_rounds=team1_rounds,
                team2_rounds=team2_rounds,
                players=players,
            )
        )

    logger.debug(
        "[scraper] %r vs %r: %d maps, %d player rows",
        team1, team2, len(result.maps), result.player_count,
    )
    return result
