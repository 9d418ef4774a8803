"""Shared fixtures: a throwaway SQLite database per test and an offline client."""

from pathlib import Path

import pytest

from vlr_ingest.database import create_all_tables, make_engine
from vlr_ingest.reconcile import EntityResolver
from vlr_ingest.run_log import RunLedger
from vlr_ingest.storage import Storage

FIXTURES = Path(__file__).parent / "fixtures"


class FakeClient:
    """Stands in for VlrClient: canned JSON per path, canned HTML per URL."""

    web_url = "https://www.vlr.gg"

    def __init__(self, json_by_path=None, html_by_url=None):
        self.json_by_path = dict(json_by_path or {})
        self.html_by_url = dict(html_by_url or {})
        self.json_calls = []
        self.html_calls = []

    def match_url(self, vlr_id, slug=None):
        if slug:
            return f"{self.web_url}/{vlr_id}/{slug}"
        return f"{self.web_url}/{vlr_id}"

    async def get_json(self, path, params=None):
        self.json_calls.append((path, dict(params or {})))
        value = self.json_by_path.get(path)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_html(self, url):
        self.html_calls.append(url)
        return self.html_by_url.get(url)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test_vct.db'}")
    create_all_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def storage(engine):
    return Storage(engine)


@pytest.fixture
def resolver(storage):
    return EntityResolver(storage)


@pytest.fixture
def ledger(storage):
    return RunLedger(storage)


@pytest.fixture
def match_html():
    return (FIXTURES / "match_page.html").read_text(encoding="utf-8")
