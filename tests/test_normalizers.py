from datetime import date

import pytest

from vlr_ingest.normalizers import (
    extract_match_id,
    infer_agent_role,
    infer_tier,
    is_known_map,
    match_slug_from_url,
    normalize_map_name,
    parse_date_range,
    parse_int,
    parse_number,
    round_stat,
)


@pytest.mark.parametrize("text, expected", [
    ("1,234", 1234.0),
    ("12.5%", 12.5),
    ("0", 0.0),
    ("-3.5", -3.5),
    (" 1.07 ", 1.07),
    (7, 7.0),
])
def test_parse_number_values(text, expected):
    assert parse_number(text) == expected


@pytest.mark.parametrize("text", ["", "-", "abc", None, "   ", "nan", "inf"])
def test_parse_number_absent(text):
    assert parse_number(text) is None


def test_parse_int_keeps_zero():
    assert parse_int("0") == 0
    assert parse_int("13") == 13
    assert parse_int("") is None


def test_round_stat_half_up():
    assert round_stat(2.5) == 3
    assert round_stat(2.4) == 2
    assert round_stat(0.0) == 0
    assert round_stat(None) is None


def test_parse_date_range_with_shared_year():
    dr = parse_date_range("Mar 25 - May 19, 2024")
    assert dr.start == date(2024, 3, 25)
    assert dr.end == date(2024, 5, 19)
    assert dr.year == 2024


def test_parse_date_range_year_only():
    dr = parse_date_range("Jun 2024")
    assert dr.year == 2024
    assert dr.start is None
    assert dr.end is None


def test_parse_date_range_garbage():
    dr = parse_date_range("TBD")
    assert (dr.start, dr.end, dr.year) == (None, None, None)
    assert parse_date_range(None).year is None


@pytest.mark.parametrize("name, tier", [
    ("Champions Tour 2024: Masters Madrid", "champions"),
    ("VCT 2024: Masters Shanghai", "masters"),
    ("Challengers League 2024 North America", "challengers"),
    ("VCT Ascension Pacific 2024", "challengers"),
    ("VCT 2024: Americas Stage 1", "regular"),
    ("", "regular"),
])
def test_infer_tier(name, tier):
    assert infer_tier(name) == tier


def test_infer_agent_role():
    assert infer_agent_role("Jett") == "duelist"
    assert infer_agent_role("KAY/O") == "initiator"
    assert infer_agent_role("Omen") == "controller"
    assert infer_agent_role("killjoy") == "sentinel"
    assert infer_agent_role("Tejo") == "sentinel"
    assert infer_agent_role("NotAnAgent") == "duelist"


def test_map_names():
    assert is_known_map("ascent")
    assert not is_known_map("Map 170201")
    assert normalize_map_name(" LOTUS ") == "Lotus"
    assert normalize_map_name("Map 170201") == "Bind"


def test_extract_match_id():
    assert extract_match_id("/318931/sentinels-vs-cloud9-vct-2024") == "318931"
    assert extract_match_id("https://www.vlr.gg/318931/x") is None
    assert extract_match_id("/event/1998/") is None
    assert extract_match_id(None) is None


def test_match_slug_from_url():
    url = "https://www.vlr.gg/318931/sentinels-vs-cloud9"
    assert match_slug_from_url(url, "318931") == "sentinels-vs-cloud9"
    assert match_slug_from_url("https://www.vlr.gg/318931", "318931") == ""
    assert match_slug_from_url(None, "318931") == ""
