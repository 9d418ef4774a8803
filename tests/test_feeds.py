import asyncio
from datetime import date

from conftest import FakeClient

from vlr_ingest.feeds import NO_DATA_ERROR, FeedIngestor

SNAPSHOT = date(2024, 6, 1)

STATS_NA = {
    "data": {
        "status": 200,
        "segments": [
            {
                "player": "TenZ",
                "org": "SEN",
                "rating": "1.15",
                "average_combat_score": "245.3",
                "kill_deaths": "1.21",
                "kill_assists_survived_traded": "74%",
                "average_damage_per_round": "155.2",
                "kills_per_round": "0.85",
                "assists_per_round": "0.21",
                "first_kills_per_round": "0.15",
                "first_deaths_per_round": "0.09",
                "headshot_percentage": "27%",
                "clutch_success_percentage": "18%",
            },
            {
                "player": "OXY",
                "org": "C9",
                "rating": "1.08",
                "average_combat_score": "238.0",
                "kill_deaths": "1.10",
                "kill_assists_survived_traded": "70%",
                "average_damage_per_round": "150.0",
                "kills_per_round": "0.80",
                "assists_per_round": "0.18",
                "first_kills_per_round": "0.14",
                "first_deaths_per_round": "0.11",
                "headshot_percentage": "29%",
                "clutch_success_percentage": "",
            },
        ],
    }
}

RESULTS = {
    "data": {
        "status": 200,
        "segments": [
            {
                "team1": "Sentinels",
                "team2": "Cloud9",
                "score1": "2",
                "score2": "0",
                "round_info": "Regular Season–Week 1",
                "tournament_name": "Champions Tour 2024: Americas Stage 1",
                "match_page": "/318931/sentinels-vs-cloud9-champions-tour-2024",
            },
            {
                "team1": "LOUD",
                "team2": "100 Thieves",
                "score1": "1",
                "score2": "2",
                "round_info": "Upper Final",
                "tournament_name": "",
                "match_page": "/318932/loud-vs-100-thieves",
            },
            {
                "team1": "Nobody",
                "team2": "Else",
                "match_page": "not-a-match-link",
            },
        ],
    }
}


def _feeds(client, storage, resolver, ledger):
    return FeedIngestor(client, storage, resolver, ledger, today=lambda: SNAPSHOT)


def test_stats_two_segments(storage, resolver, ledger):
    client = FakeClient({"/stats": STATS_NA})
    count = asyncio.run(_feeds(client, storage, resolver, ledger).ingest_stats("na", "60"))

    assert count == 2
    assert storage.count("teams") == 2
    assert storage.count("players") == 2
    assert storage.count("player_stats_aggregate") == 2
    assert client.json_calls == [("/stats", {"region": "na", "timespan": "60"})]

    entries = ledger.recent()
    assert len(entries) == 1
    assert entries[0]["status"] == "success"
    assert entries[0]["records_processed"] == 2
    assert entries[0]["source"] == "vlrggapi"
    assert entries[0]["endpoint"] == "/stats?region=na&timespan=60"

    row = storage.select("player_stats_aggregate", order_by="id")[0]
    assert row["rating"] == 1.15
    assert row["kast"] == 74.0
    assert row["timespan"] == "60"
    assert row["snapshot_date"] == SNAPSHOT


def test_stats_rerun_same_day_upserts(storage, resolver, ledger):
    client = FakeClient({"/stats": STATS_NA})
    feeds = _feeds(client, storage, resolver, ledger)
    asyncio.run(feeds.ingest_stats("na", "60"))
    asyncio.run(feeds.ingest_stats("na", "60"))

    assert storage.count("player_stats_aggregate") == 2
    assert storage.count("players") == 2
    assert len(ledger.recent()) == 2


def test_missing_container_is_one_error_entry(storage, resolver, ledger):
    client = FakeClient({"/stats": {"data": {"status": 200}}})
    count = asyncio.run(_feeds(client, storage, resolver, ledger).ingest_stats("eu", "30"))

    assert count == 0
    entries = ledger.recent()
    assert len(entries) == 1
    assert entries[0]["status"] == "error"
    assert entries[0]["records_processed"] == 0
    assert entries[0]["error_message"] == NO_DATA_ERROR


def test_fetch_failure_is_one_error_entry(storage, resolver, ledger):
    client = FakeClient({})
    assert asyncio.run(_feeds(client, storage, resolver, ledger).ingest_rankings("kr")) == 0
    entries = ledger.recent()
    assert [e["status"] for e in entries] == ["error"]


def test_unexpected_exception_still_logs_once(storage, resolver, ledger):
    client = FakeClient({"/events": RuntimeError("boom")})
    assert asyncio.run(_feeds(client, storage, resolver, ledger).ingest_events()) == 0

    entries = ledger.recent()
    assert len(entries) == 1
    assert entries[0]["status"] == "error"
    assert entries[0]["error_message"] == "boom"


def test_matches_are_idempotent(storage, resolver, ledger):
    client = FakeClient({"/match": RESULTS})
    feeds = _feeds(client, storage, resolver, ledger)

    first = asyncio.run(feeds.ingest_matches())
    second = asyncio.run(feeds.ingest_matches())

    assert first == 2
    assert second == 2
    assert storage.count("matches") == 2
    assert storage.count("teams") == 4

    match = storage.fetch_one("matches", {"vlr_id": "318931"})
    assert match["vlr_url"] == "https://www.vlr.gg/318931/sentinels-vs-cloud9-champions-tour-2024"
    assert (match["team1_score"], match["team2_score"]) == (2, 0)

    # Event from tournament_name, falling back to round_info
    event_names = {e["name"] for e in storage.select("events")}
    assert event_names == {"Champions Tour 2024: Americas Stage 1", "Upper Final"}

    assert [e["status"] for e in ledger.recent()] == ["success", "success"]


def test_events_feed(storage, resolver, ledger):
    payload = {
        "data": {
            "segments": [
                {"title": "Champions Tour 2024: Masters Madrid", "region": "int",
                 "dates": "Mar 14 - Mar 24, 2024"},
                {"title": "Challengers League 2024 North America", "region": "na",
                 "dates": "TBD"},
                {"title": "", "region": "eu", "dates": "Jan 2024"},
            ]
        }
    }
    client = FakeClient({"/events": payload})
    count = asyncio.run(_feeds(client, storage, resolver, ledger).ingest_events("upcoming"))

    assert count == 2
    assert client.json_calls == [("/events", {"q": "upcoming"})]
    madrid = storage.fetch_one("events", {"name": "Champions Tour 2024: Masters Madrid"})
    assert madrid["tier"] == "champions"
    assert madrid["year"] == 2024
    assert madrid["start_date"] == date(2024, 3, 14)
    assert madrid["end_date"] == date(2024, 3, 24)
    assert ledger.recent()[0]["endpoint"] == "/events?q=upcoming"


def test_rankings_accept_bare_list(storage, resolver, ledger):
    payload = {
        "data": [
            {"rank": "1", "team": "Gen.G", "logo": "//owcdn.net/gen.png",
             "record": "25-8", "earnings": "$1,020,000"},
            {"rank": "2", "team": "Paper Rex", "record": "20-10", "earnings": "$500,000"},
        ]
    }
    client = FakeClient({"/rankings": payload})
    feeds = _feeds(client, storage, resolver, ledger)
    assert asyncio.run(feeds.ingest_rankings("ap")) == 2
    assert asyncio.run(feeds.ingest_rankings("ap")) == 2

    rows = storage.select("rankings", order_by="rank")
    assert len(rows) == 2
    assert rows[0]["region"] == "ap"
    assert rows[0]["earnings"] == "$1,020,000"
    gen = storage.fetch_one("teams", {"name": "Gen.G"})
    assert gen["logo_url"] == "//owcdn.net/gen.png"


def test_failing_segment_gives_partial(storage, resolver, ledger, monkeypatch):
    client = FakeClient({"/stats": STATS_NA})
    real_upsert = storage.upsert

    def flaky_upsert(entity, attributes, conflict_key):
        if attributes["player_id"] == 1:
            raise RuntimeError("disk full")
        return real_upsert(entity, attributes, conflict_key)

    monkeypatch.setattr(storage, "upsert", flaky_upsert)
    count = asyncio.run(_feeds(client, storage, resolver, ledger).ingest_stats("na", "60"))

    assert count == 1
    entries = ledger.recent()
    assert len(entries) == 1
    assert entries[0]["status"] == "partial"
    assert entries[0]["records_processed"] == 1
    assert entries[0]["metadata"] == {"segments": 2, "failed": 1}


def test_empty_segment_list_is_zero_count_success(storage, resolver, ledger):
    client = FakeClient({
        "/stats": {"data": {"segments": []}},
        "/match": {"data": {"segments": []}},
        "/events": {"data": {"segments": []}},
    })
    feeds = _feeds(client, storage, resolver, ledger)
    assert asyncio.run(feeds.ingest_stats()) == 0
    assert asyncio.run(feeds.ingest_matches()) == 0
    assert asyncio.run(feeds.ingest_events()) == 0

    entries = ledger.recent()
    assert [e["status"] for e in entries] == ["success"] * 3
    assert all(e["records_processed"] == 0 and e["error_message"] is None for e in entries)


def test_empty_rankings_list_is_no_data(storage, resolver, ledger):
    client = FakeClient({"/rankings": {"data": []}})
    assert asyncio.run(_feeds(client, storage, resolver, ledger).ingest_rankings("eu")) == 0

    entries = ledger.recent()
    assert len(entries) == 1
    assert entries[0]["status"] == "error"
    assert entries[0]["error_message"] == NO_DATA_ERROR
