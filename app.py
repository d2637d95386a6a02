# /// script
# requires-python = ">=3.12"
# dependencies = ["flask>=3.0", "pydantic>=2.0"]
# ///
"""JSON API for the team order board and scorebook.

Every browser client talks to one shared :class:`~session.ScorebookSession`.
Edits are applied immediately and saved after a short quiet period;
``/api/events`` streams each saved record to connected clients.

Usage:
    uv run app.py
    uv run app.py --watch          # also poll the store for outside edits
"""

from __future__ import annotations

import json
import logging
import os
import queue

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError

import inning
import ledger
import roster
from config import (
    create_record_store,
    get_debounce_seconds,
    get_echo_window_ms,
    get_poll_interval,
)
from data.store import ChangeFeed, RecordStore
from models import OrderData
from session import ScorebookSession
from sync import StoreWatcher, SyncGuard
from team_stats import aggregate

logger = logging.getLogger("app")

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = Flask(__name__)
app.json.ensure_ascii = False

FEED = ChangeFeed()
SESSION: ScorebookSession | None = None

KEEPALIVE_SECONDS = 30


def init_session(store: RecordStore | None = None,
                 debounce_seconds: float | None = None) -> ScorebookSession:
    """(Re)create the shared session and load the stored record."""
    global SESSION
    if SESSION is not None:
        SESSION.close()
    SESSION = ScorebookSession(
        store or create_record_store(),
        feed=FEED,
        guard=SyncGuard(window_ms=get_echo_window_ms()),
        debounce_seconds=get_debounce_seconds() if debounce_seconds is None else debounce_seconds,
    )
    SESSION.load()
    return SESSION


def get_session() -> ScorebookSession:
    if SESSION is None:
        return init_session()
    return SESSION


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def order_view(data: OrderData) -> dict:
    """Record plus the derived numbers a client displays."""
    gs = data.game_state
    return {
        "order": data.to_record(),
        "inning_label": inning.inning_label(gs),
        "player_averages": [
            ledger.player_average(gs.stats_for(i)) for i in range(len(data.players))
        ],
        "team_stats": aggregate(gs.batting_stats).model_dump(),
    }


def success_response(data: dict, status: int = 200):
    return jsonify({"status": "ok", "data": data}), status


def error_response(error_code: str, message: str, status: int):
    return jsonify({
        "status": "error",
        "error_code": error_code,
        "message": message,
    }), status


def _body() -> dict:
    return request.get_json(silent=True) or {}


@app.errorhandler(roster.RosterValidationError)
def _validation_error(exc):
    return error_response("VALIDATION_ERROR", str(exc), 400)


@app.errorhandler(ValidationError)
def _model_error(exc):
    return error_response("VALIDATION_ERROR", str(exc), 400)


@app.errorhandler(ledger.LedgerError)
def _ledger_error(exc):
    return error_response("INVALID_SLOT", str(exc), 400)


@app.errorhandler(roster.RosterIndexError)
def _index_error(exc):
    return error_response("NOT_FOUND", str(exc), 404)


def _edit(reducer, *args):
    return success_response(order_view(get_session().dispatch(reducer, *args)))


def _game_edit(transition, *args):
    return success_response(order_view(get_session().update_game(transition, *args)))


# ---------------------------------------------------------------------------
# Record routes
# ---------------------------------------------------------------------------


@app.route("/api/order")
def api_order():
    return success_response(order_view(get_session().state))


@app.route("/api/order/load", methods=["POST"])
def api_load():
    session = get_session()
    if not session.load():
        return error_response("STORE_ERROR", "読み込みに失敗しました", 503)
    return success_response(order_view(session.state))


@app.route("/api/order/save", methods=["POST"])
def api_save():
    session = get_session()
    if not session.save_now(show_message=True):
        return error_response("STORE_ERROR", "保存に失敗しました", 503)
    return success_response(order_view(session.state))


@app.route("/api/order/clear", methods=["POST"])
def api_clear():
    return _edit(roster.clear_all)


@app.route("/api/game/reset", methods=["POST"])
def api_reset_game():
    return _edit(roster.reset_game)


@app.route("/api/notifications")
def api_notifications():
    return jsonify(get_session().drain_notifications())


# ---------------------------------------------------------------------------
# Lineup routes
# ---------------------------------------------------------------------------


@app.route("/api/players", methods=["POST"])
def api_add_player():
    body = _body()
    return _edit(roster.add_player, body.get("name", ""), body.get("pos", "投"))


@app.route("/api/players/<int:index>", methods=["DELETE"])
def api_remove_player(index: int):
    return _edit(roster.remove_player, index)


@app.route("/api/players/<int:index>/move", methods=["POST"])
def api_move_player(index: int):
    return _edit(roster.move_player, index, _body().get("direction", ""))


@app.route("/api/players/swap", methods=["POST"])
def api_swap_players():
    body = _body()
    try:
        i, j = int(body["i"]), int(body["j"])
    except (KeyError, TypeError, ValueError):
        return error_response("VALIDATION_ERROR", "Body must contain integer 'i' and 'j'", 400)
    return _edit(roster.swap_players, i, j)


@app.route("/api/players/<int:index>/position", methods=["PUT"])
def api_change_position(index: int):
    return _edit(roster.change_position, index, _body().get("pos", ""))


@app.route("/api/<group>/<int:index>/condition", methods=["PUT"])
def api_change_condition(group: str, index: int):
    return _edit(roster.change_condition, group, index, _body().get("face", ""))


@app.route("/api/bench/<group>", methods=["POST"])
def api_add_bench(group: str):
    return _edit(roster.add_bench_player, group, _body().get("name", ""))


@app.route("/api/bench/<group>/<int:index>", methods=["DELETE"])
def api_remove_bench(group: str, index: int):
    return _edit(roster.remove_bench_player, group, index)


# ---------------------------------------------------------------------------
# Game routes
# ---------------------------------------------------------------------------


@app.route("/api/batting/<int:index>/<int:slot>", methods=["PUT"])
def api_record_result(index: int, slot: int):
    session = get_session()
    players = session.state.players
    if index >= len(players):
        return error_response(
            "NOT_FOUND", f"players index {index} out of range (size {len(players)})", 404,
        )
    result = _body().get("result", "")
    if not isinstance(result, str):
        return error_response("VALIDATION_ERROR", "'result' must be a string", 400)
    return _game_edit(ledger.record_result, index, slot, result)


@app.route("/api/inning/advance", methods=["POST"])
def api_inning_advance():
    return _game_edit(inning.advance)


@app.route("/api/inning/retreat", methods=["POST"])
def api_inning_retreat():
    return _game_edit(inning.retreat)


@app.route("/api/team-stats")
def api_team_stats():
    stats = get_session().state.game_state.batting_stats
    return jsonify(aggregate(stats).model_dump())


# ---------------------------------------------------------------------------
# Change stream
# ---------------------------------------------------------------------------


@app.route("/api/events")
def api_events():
    def generate():
        q: queue.Queue = queue.Queue()
        unsubscribe = FEED.subscribe(q.put)
        try:
            while True:
                try:
                    snapshot = q.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ":\n\n"
                    continue
                data = json.dumps(snapshot.to_record(), ensure_ascii=False)
                yield f"event: order\ndata: {data}\n\n"
        finally:
            unsubscribe()

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Team order board and scorebook API.")
    parser.add_argument(
        "--watch", action="store_true",
        help="Poll the record store for edits made outside this server",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    session = init_session()
    if args.watch:
        # Outside edits go through the feed so streams and the session both see them.
        watcher = StoreWatcher(session.store, FEED.publish, interval=get_poll_interval())
        watcher.prime(session.state)
        watcher.start()

    port = int(os.environ.get("PORT", 5050))
    app.run(debug=False, host="0.0.0.0", port=port, threaded=True)
