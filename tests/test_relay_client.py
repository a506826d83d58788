"""Relay API client: failure folding and payload parsing."""

from unittest import mock

import pytest
import requests

from hexwatch.ingest import fetch_json
from hexwatch.ingest import relay_client
from hexwatch.ingest.relay_client import (
    events_url,
    parse_cells,
    parse_events,
    parse_stats,
    parse_timestamp,
    resolve_preview_url,
)
from hexwatch.render.batch import CellCount


def response(payload=None, status=200, bad_json=False):
    resp = mock.Mock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    if bad_json:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


class TestFetchJson:
    def test_ok(self):
        with mock.patch("requests.get", return_value=response({"ok": True, "x": 1})) as get:
            r = fetch_json("http://relay/v1/world/stats", params={"res": "9"}, timeout=2.0)
        assert r.ok
        assert r.data["x"] == 1
        get.assert_called_once_with(
            "http://relay/v1/world/stats", params={"res": "9"}, timeout=2.0
        )

    def test_timeout_is_not_raised(self):
        with mock.patch("requests.get", side_effect=requests.Timeout("slow")):
            r = fetch_json("http://relay/x", timeout=0.1)
        assert not r.ok
        assert r.error.startswith("timeout")

    def test_connection_error_is_not_raised(self):
        with mock.patch("requests.get", side_effect=requests.ConnectionError("refused")):
            r = fetch_json("http://relay/x")
        assert not r.ok
        assert r.error.startswith("network")

    def test_http_error_status(self):
        with mock.patch("requests.get", return_value=response({"ok": True}, status=503)):
            r = fetch_json("http://relay/x")
        assert not r.ok
        assert r.status == 503

    def test_unparseable_body(self):
        with mock.patch("requests.get", return_value=response(bad_json=True)):
            r = fetch_json("http://relay/x")
        assert not r.ok
        assert r.error == "malformed response"

    @pytest.mark.parametrize("payload", [{"cells": []}, {"ok": False}, {"ok": "yes"}, [1, 2]])
    def test_missing_or_false_ok_flag(self, payload):
        with mock.patch("requests.get", return_value=response(payload)):
            r = fetch_json("http://relay/x")
        assert not r.ok


class TestParseCells:
    def test_drops_malformed_records(self):
        batch = parse_cells({
            "ok": True,
            "unique_cells": 42,
            "cells": [
                {"cell": "a", "count": 3},
                {"cell": "", "count": 9},
                {"count": 4},
                {"cell": "b", "count": "NaN"},
                {"cell": "c", "count": -1},
                "junk",
                {"cell": "d", "count": "7"},
                {"cell": "e"},
            ],
        })
        assert batch.cells == (CellCount("a", 3), CellCount("d", 7), CellCount("e", 0))
        assert batch.unique_cells == 42

    def test_fractional_counts_truncate(self):
        batch = parse_cells({"cells": [{"cell": "a", "count": 7.9}, {"cell": "b", "count": "2.5"}]})
        assert batch.cells == (CellCount("a", 7), CellCount("b", 2))

    def test_missing_array(self):
        assert len(parse_cells({"ok": True})) == 0

    def test_duplicates_last_wins(self):
        batch = parse_cells({"cells": [{"cell": "a", "count": 1}, {"cell": "a", "count": 8}]})
        assert batch.cells == (CellCount("a", 8),)


class TestParseStats:
    def test_full_payload(self):
        stats = parse_stats({
            "ok": True, "active_nodes": 120, "nodes_total": 300,
            "events_total": 45678, "unique_cells": 999, "res": 8,
            "last_event": {"ts": "2026-10-17T10:00:00Z", "id": "evt_1"},
        })
        assert stats.active_nodes == 120
        assert stats.res == 8
        assert stats.last_event.id == "evt_1"
        assert stats.last_event.time.year == 2026

    def test_missing_last_event(self):
        stats = parse_stats({"ok": True})
        assert stats.last_event.ts is None
        assert stats.last_event.time is None
        assert stats.active_nodes is None


class TestParseEvents:
    def test_events(self):
        events = parse_events({"events": [
            {"ts": "2026-10-17T10:00:00Z", "id": "e1", "preview_url": "/v1/blobs/e1.jpg"},
            {"ts": "2026-10-17T09:00:00Z", "id": "e2"},
            None,
        ]})
        assert [e.id for e in events] == ["e1", "e2"]
        assert events[0].preview_url == "/v1/blobs/e1.jpg"
        assert events[1].preview_url is None

    def test_not_a_list(self):
        assert parse_events({"events": "nope"}) == []


class TestHelpers:
    @pytest.mark.parametrize("ts", ["2026-10-17T10:00:00Z", "2026-10-17T10:00:00+00:00",
                                    "2026-10-17T10:00:00"])
    def test_parse_timestamp_is_utc(self, ts):
        dt = parse_timestamp(ts)
        assert dt.utcoffset().total_seconds() == 0
        assert dt.hour == 10

    @pytest.mark.parametrize("ts", [None, "", "yesterday", 5])
    def test_parse_timestamp_rejects(self, ts):
        assert parse_timestamp(ts) is None

    def test_resolve_preview_url(self):
        assert resolve_preview_url("http://r:1", "/v1/blobs/a.jpg") == "http://r:1/v1/blobs/a.jpg"
        assert resolve_preview_url("http://r:1", "v1/blobs/a.jpg") == "http://r:1/v1/blobs/a.jpg"
        assert resolve_preview_url("http://r:1", "https://cdn/x.jpg") == "https://cdn/x.jpg"

    def test_events_url(self):
        url = events_url("http://r:1", "8928308280fffff", limit=10, res=9)
        assert url.startswith("http://r:1/v1/world/events?")
        assert "cell=8928308280fffff" in url
        assert "limit=10" in url and "res=9" in url


class TestFetchCells:
    def test_request_parameters(self):
        payload = {"ok": True, "cells": [{"cell": "a", "count": 2}]}
        with mock.patch("requests.get", return_value=response(payload)) as get:
            batch = relay_client.fetch_cells("http://r:1", res=7, hours=12, limit=8000, timeout=5.0)
        assert len(batch) == 1
        args, kwargs = get.call_args
        assert args[0] == "http://r:1/v1/world/cells"
        assert kwargs["params"] == {"res": "7", "limit": "8000", "hours": "12"}
        assert kwargs["timeout"] == 5.0

    def test_failure_returns_none(self):
        with mock.patch("requests.get", side_effect=requests.Timeout()):
            assert relay_client.fetch_cells("http://r:1") is None
            assert relay_client.fetch_stats("http://r:1") is None
            assert relay_client.fetch_events("http://r:1", "abc") is None

    def test_preview_download(self):
        resp = mock.Mock(status_code=200, content=b"\x89PNG...")
        with mock.patch("requests.get", return_value=resp):
            assert relay_client.fetch_preview("http://r:1/a.png") == b"\x89PNG..."
        with mock.patch("requests.get", return_value=mock.Mock(status_code=404, content=b"")):
            assert relay_client.fetch_preview("http://r:1/a.png") is None
