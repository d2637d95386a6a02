# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for the record stores and change feed.

Validates:
  1. FileRecordStore writes the persisted camelCase shape atomically
  2. Missing, corrupt and schema-invalid records raise StoreError subclasses
  3. RestRecordStore fetches the single row, remembers its id and patches it
  4. HTTP 404 / empty table map to RecordNotFoundError
  5. 5xx and network failures are retried, then raised
  6. ChangeFeed fan-out, unsubscribe, and isolation of failing handlers
"""

import io
import json
import sys
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from data.store import (
    MAX_RETRIES,
    ChangeFeed,
    FileRecordStore,
    RecordNotFoundError,
    RestRecordStore,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)
from ledger import record_result
from models import OrderData
from roster import add_bench_player, add_player


@pytest.fixture
def sample_order():
    data = add_player(OrderData(), "田中", "遊")
    data = add_player(data, "山本", "投")
    data = add_bench_player(data, "managers", "監督")
    gs = record_result(data.game_state, 1, 0, "左安")
    return data.model_copy(update={"game_state": gs, "version": 3})


# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------

class TestFileRecordStore:
    def test_missing_file(self, tmp_path):
        with pytest.raises(RecordNotFoundError):
            FileRecordStore(tmp_path / "none.json").load()

    def test_save_and_load(self, tmp_path, sample_order):
        store = FileRecordStore(tmp_path / "nested" / "order.json")
        store.save(sample_order)
        assert store.load() == sample_order
        assert not store.path.with_suffix(".tmp").exists()

    def test_persisted_shape(self, tmp_path, sample_order):
        store = FileRecordStore(tmp_path / "order.json")
        store.save(sample_order)
        record = json.loads(store.path.read_text(encoding="utf-8"))
        assert set(record) == {
            "players", "benchPitchers", "benchCatchers", "managers", "gameState", "version",
        }
        assert record["players"][0] == {"name": "田中", "face": "😊", "pos": "遊"}
        gs = record["gameState"]
        assert gs["isTopHalf"] is True and gs["currentBatterIndex"] == 0
        assert gs["battingStats"]["1"] == {
            "hits": 1, "atBats": 1, "walks": 0, "results": ["左安"],
        }

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "order.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            FileRecordStore(path).load()

    def test_schema_invalid_record(self, tmp_path):
        path = tmp_path / "order.json"
        path.write_text(json.dumps({"players": [{"name": "", "pos": "投", "face": "😊"}]}),
                        encoding="utf-8")
        with pytest.raises(StoreError) as exc_info:
            FileRecordStore(path).load()
        assert not isinstance(exc_info.value, RecordNotFoundError)

    def test_loads_record_without_optional_groups(self, tmp_path):
        path = tmp_path / "order.json"
        path.write_text(json.dumps({
            "players": [{"name": "A", "pos": "DH", "face": "😐"}],
            "benchPitchers": None,
            "gameState": {"inning": 2, "isTopHalf": False, "currentBatterIndex": 0,
                          "battingStats": {"0": {"hits": 0, "atBats": 1, "walks": 0,
                                                 "results": ["三振", None]}}},
        }))
        data = FileRecordStore(path).load()
        assert data.bench_pitchers == [] and data.managers == []
        assert data.game_state.batting_stats[0].results == ["三振", ""]
        assert data.version == 0


# ---------------------------------------------------------------------------
# REST store
# ---------------------------------------------------------------------------

def _response(payload):
    resp = MagicMock()
    resp.read.return_value = b"" if payload is None else json.dumps(payload).encode()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _http_error(code):
    return urllib.error.HTTPError("http://x", code, "err", {}, io.BytesIO(b""))


@pytest.fixture
def rest_store():
    return RestRecordStore("https://example.supabase.co/", "anon-key")


@pytest.fixture(autouse=True)
def no_backoff():
    with patch("data.store._backoff_sleep"):
        yield


class TestRestRecordStore:
    def test_load_fetches_single_row(self, rest_store, sample_order):
        row = {"id": "abc-1", "data": sample_order.to_record()}
        with patch("urllib.request.urlopen", return_value=_response([row])) as mock_open:
            data = rest_store.load()
        assert data == sample_order
        assert rest_store.record_id == "abc-1"
        req = mock_open.call_args[0][0]
        assert req.get_method() == "GET"
        assert req.full_url.startswith("https://example.supabase.co/rest/v1/order_data?")
        assert "limit=1" in req.full_url
        assert req.get_header("Apikey") == "anon-key"
        assert req.get_header("Authorization") == "Bearer anon-key"

    def test_save_patches_loaded_row(self, rest_store, sample_order):
        row = {"id": 42, "data": sample_order.to_record()}
        with patch("urllib.request.urlopen", return_value=_response([row])):
            rest_store.load()
        with patch("urllib.request.urlopen", return_value=_response(None)) as mock_open:
            rest_store.save(sample_order)
        req = mock_open.call_args[0][0]
        assert req.get_method() == "PATCH"
        assert req.full_url.endswith("/rest/v1/order_data?id=eq.42")
        body = json.loads(req.data)
        assert body["data"] == sample_order.to_record()
        assert "updated_at" in body

    def test_save_before_load(self, rest_store, sample_order):
        with pytest.raises(RecordNotFoundError):
            rest_store.save(sample_order)

    def test_empty_table(self, rest_store):
        with patch("urllib.request.urlopen", return_value=_response([])):
            with pytest.raises(RecordNotFoundError):
                rest_store.load()

    def test_null_data_column_is_empty_record(self, rest_store):
        with patch("urllib.request.urlopen", return_value=_response([{"id": 1, "data": None}])):
            assert rest_store.load() == OrderData()

    def test_404_not_retried(self, rest_store):
        with patch("urllib.request.urlopen", side_effect=_http_error(404)) as mock_open:
            with pytest.raises(RecordNotFoundError):
                rest_store.load()
        assert mock_open.call_count == 1

    def test_client_error_not_retried(self, rest_store):
        with patch("urllib.request.urlopen", side_effect=_http_error(401)) as mock_open:
            with pytest.raises(StoreError) as exc_info:
                rest_store.load()
        assert exc_info.value.status_code == 401
        assert mock_open.call_count == 1

    def test_server_error_retried(self, rest_store):
        with patch("urllib.request.urlopen", side_effect=_http_error(503)) as mock_open:
            with pytest.raises(StoreConnectionError):
                rest_store.load()
        assert mock_open.call_count == MAX_RETRIES

    def test_recovers_after_transient_failure(self, rest_store):
        ok = _response([{"id": 1, "data": {}}])
        side_effects = [urllib.error.URLError("refused"), ok]
        with patch("urllib.request.urlopen", side_effect=side_effects):
            assert rest_store.load() == OrderData()

    def test_timeout(self, rest_store):
        with patch("urllib.request.urlopen", side_effect=TimeoutError()):
            with pytest.raises(StoreTimeoutError):
                rest_store.load()

    @pytest.mark.parametrize("data", [
        {"players": [{"name": "A", "pos": "捕手"}]},
        {"gameState": {"inning": -1}},
        {"managers": [{"name": "M", "face": "🙂"}]},
    ])
    def test_schema_invalid_row(self, rest_store, data):
        with patch("urllib.request.urlopen", return_value=_response([{"id": 1, "data": data}])):
            with pytest.raises(StoreError):
                rest_store.load()

    def test_no_attempts_raises_connection_error(self):
        store = RestRecordStore("https://example.supabase.co", "anon-key", max_retries=0)
        with patch("urllib.request.urlopen") as mock_open:
            with pytest.raises(StoreConnectionError):
                store.load()
        mock_open.assert_not_called()


# ---------------------------------------------------------------------------
# Change feed
# ---------------------------------------------------------------------------

class TestChangeFeed:
    def test_publish_and_unsubscribe(self):
        feed = ChangeFeed()
        got = []
        unsubscribe = feed.subscribe(got.append)
        feed.publish(OrderData(version=1))
        unsubscribe()
        unsubscribe()
        feed.publish(OrderData(version=2))
        assert [d.version for d in got] == [1]
        assert len(feed) == 0

    def test_failing_handler_isolated(self):
        feed = ChangeFeed()
        got = []

        def broken(_):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(got.append)
        feed.publish(OrderData())
        assert len(got) == 1
