import asyncio

import httpx

from vlr_ingest.vlr_client import RetryPolicy, VlrClient, linear_backoff


def _client(handler, *, attempts=3, sleeps=None):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return VlrClient(
        "https://api.test",
        "https://web.test/",
        retry=RetryPolicy(max_attempts=attempts, backoff=linear_backoff(1.5)),
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
    )


def test_get_json_passes_params():
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, json={"data": {"segments": []}})

    payload = asyncio.run(_client(handler).get_json("/stats", {"region": "na", "timespan": "60"}))

    assert payload == {"data": {"segments": []}}
    assert seen[0].path == "/stats"
    assert seen[0].params["region"] == "na"
    assert seen[0].params["timespan"] == "60"


def test_rate_limit_is_retried_with_linear_backoff():
    calls = []
    sleeps = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(429)
        return httpx.Response(200, json={"ok": True})

    payload = asyncio.run(_client(handler, sleeps=sleeps).get_json("/match", {"q": "results"}))

    assert payload == {"ok": True}
    assert len(calls) == 3
    assert sleeps == [1.5, 3.0]


def test_network_errors_give_up_after_max_attempts():
    calls = []
    sleeps = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    payload = asyncio.run(_client(handler, sleeps=sleeps).get_json("/events"))

    assert payload is None
    assert len(calls) == 3
    # No pause after the final attempt
    assert sleeps == [1.5, 3.0]


def test_other_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="boom")

    assert asyncio.run(_client(handler).get_json("/rankings")) is None
    assert len(calls) == 1


def test_invalid_json_is_none():
    def handler(request):
        return httpx.Response(200, text="<html>not json</html>")

    assert asyncio.run(_client(handler).get_json("/stats")) is None


def test_get_html_and_match_url():
    def handler(request):
        return httpx.Response(200, text="<html>match</html>")

    client = _client(handler)
    assert client.match_url("318931") == "https://web.test/318931"
    assert client.match_url("318931", "sen-vs-c9") == "https://web.test/318931/sen-vs-c9"
    assert asyncio.run(client.get_html(client.match_url("318931"))) == "<html>match</html>"
