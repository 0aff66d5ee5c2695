"""WebSocket endpoint tests.

Learn: Starlette's TestClient runs the app on its own event loop in a
background thread. Ticks must run on that loop too, so they are sent
through the client's portal: tc.portal.call(scheduler.tick).
"""

import time

import pytest
from starlette.testclient import TestClient

from newstracker.errors import UpstreamUnavailableError


@pytest.fixture()
def tc(app):
    with TestClient(app) as test_client:
        yield test_client


def _wait_for_keywords(tc, expected, attempts=50):
    """Poll /realtime/status until the tracked keywords match."""
    for _ in range(attempts):
        keywords = tc.get("/api/v1/realtime/status").json()["keywords"]
        if keywords == expected:
            return keywords
        time.sleep(0.01)
    return keywords


def test_connect_greeting(tc):
    with tc.websocket_connect("/ws") as ws:
        msg = ws.receive_json()
        assert msg["type"] == "connected"
        assert "timestamp" in msg


def test_subscribe_and_receive_live_events(tc, fetcher, scheduler):
    fetcher.script("alpha", ["a", "b", "c"], ["b", "c", "d"])

    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()  # connected
        ws.send_json({"type": "subscribe", "keyword": "alpha", "interval": "30s", "display": 3})
        subscribed = ws.receive_json()
        assert subscribed["type"] == "subscribed"
        assert subscribed["keyword"] == "alpha"
        assert subscribed["subscription_id"]

        tc.portal.call(scheduler.tick)

        new = ws.receive_json()
        assert new["type"] == "news"
        assert new["data"]["type"] == "new"
        assert [i["title"] for i in new["data"]["items"]] == ["d"]
        updated = ws.receive_json()
        assert updated["data"]["type"] == "updated"
        assert updated["data"]["count"] == 3


def test_error_event_reaches_socket(tc, fetcher, scheduler):
    fetcher.script("alpha", ["a"], UpstreamUnavailableError("Naver API unavailable"))

    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "keyword": "alpha"})
        ws.receive_json()

        tc.portal.call(scheduler.tick)

        msg = ws.receive_json()
        assert msg["type"] == "news"
        assert msg["data"]["type"] == "error"
        assert msg["data"]["error"] == "Naver API unavailable"


def test_subscribe_failure_is_reported(tc, fetcher):
    fetcher.script("alpha", UpstreamUnavailableError("Cannot reach the news API"))

    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "keyword": "alpha"})
        msg = ws.receive_json()
        assert msg == {"type": "error", "message": "Cannot reach the news API"}

    assert tc.get("/api/v1/realtime/status").json()["keywords"] == []


@pytest.mark.parametrize(
    "command, fragment",
    [
        ({"type": "subscribe", "keyword": "alpha", "interval": "soon"}, "interval"),
        ({"type": "subscribe", "keyword": ""}, "Invalid subscribe"),
        ({"type": "subscribe", "keyword": "alpha", "display": 500}, "Invalid subscribe"),
        ({"type": "subscribe", "keyword": "alpha", "sort": "popularity"}, "Invalid subscribe"),
        ({"type": "get-page", "keyword": "alpha", "page": 101, "display": 10}, "1000"),
        ({"type": "teleport"}, "Unknown message type"),
        ({"type": "unsubscribe"}, "subscription_id or a keyword"),
    ],
)
def test_bad_commands(tc, fetcher, command, fragment):
    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json(command)
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert fragment in msg["message"]
    assert fetcher.calls == []


def test_invalid_json(tc):
    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "message": "Message is not valid JSON"}
        # Connection survives a bad message
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_unexpected_command_failure_keeps_connection(tc, fetcher):
    fetcher.script("python", RuntimeError("boom"))

    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "get-page", "keyword": "python", "page": 1})
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert "get-page" in msg["message"]

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_unsubscribe_by_id_and_keyword(tc, scheduler):
    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "keyword": "alpha"})
        alpha_id = ws.receive_json()["subscription_id"]
        ws.send_json({"type": "subscribe", "keyword": "beta"})
        ws.receive_json()

        ws.send_json({"type": "unsubscribe", "subscription_id": alpha_id})
        msg = ws.receive_json()
        assert msg["type"] == "unsubscribed"
        assert msg["subscription_ids"] == [alpha_id]

        ws.send_json({"type": "unsubscribe", "keyword": "beta"})
        msg = ws.receive_json()
        assert msg["keyword"] == "beta"
        assert len(msg["subscription_ids"]) == 1

        # Unknown ids are a no-op, not an error
        ws.send_json({"type": "unsubscribe", "subscription_id": "nope"})
        assert ws.receive_json()["subscription_ids"] == []

        assert scheduler.active == []


def test_cached_news_page_and_status(tc, fetcher):
    fetcher.script("alpha", ["a", "b"])

    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_json({"type": "get-cached-news", "keyword": "alpha"})
        assert ws.receive_json() == {
            "type": "cached-news", "keyword": "alpha", "items": [], "count": 0,
        }

        ws.send_json({"type": "subscribe", "keyword": "alpha"})
        ws.receive_json()

        ws.send_json({"type": "get-cached-news", "keyword": "alpha"})
        cached = ws.receive_json()
        assert [i["title"] for i in cached["items"]] == ["a", "b"]

        fetcher.totals["python"] = 42
        ws.send_json({"type": "get-page", "keyword": "python", "page": 2, "display": 20})
        page = ws.receive_json()
        assert page["type"] == "news-page"
        assert (page["start"], page["total_pages"], page["has_next_page"]) == (21, 3, True)
        assert len(page["items"]) == 20

        ws.send_json({"type": "get-status"})
        status = ws.receive_json()
        assert status["type"] == "status"
        assert status["keywords"] == ["alpha"]
        assert status["subscriber_count_by_keyword"] == {"alpha": 1}


def test_two_sockets_share_one_tracker(tc, fetcher, scheduler):
    fetcher.script("alpha", ["a"], ["a", "b"])

    with tc.websocket_connect("/ws") as first, tc.websocket_connect("/ws") as second:
        for ws in (first, second):
            ws.receive_json()
            ws.send_json({"type": "subscribe", "keyword": "alpha"})
            assert ws.receive_json()["type"] == "subscribed"

        assert len(fetcher.calls_for("alpha")) == 1
        tc.portal.call(scheduler.tick)

        for ws in (first, second):
            assert ws.receive_json()["data"]["type"] == "new"
            assert ws.receive_json()["data"]["type"] == "updated"


def test_disconnect_drops_subscriptions(tc, scheduler):
    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "keyword": "alpha"})
        ws.receive_json()
        assert tc.get("/api/v1/realtime/status").json()["keywords"] == ["alpha"]

    assert _wait_for_keywords(tc, []) == []
    assert scheduler.active == []
    # The snapshot outlives the tracker
    assert tc.get("/api/v1/news/alpha/cache").json()["count"] == 10
