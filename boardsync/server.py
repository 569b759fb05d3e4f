#!/usr/bin/env python3
"""
boardsync HTTP server
---------------------
JSON API over the SQLite store. Remote clients point an HttpGateway at
it and use it as their persistent board store.

Usage:
    python -m boardsync.server --port 3000 --db ./boards.db

API:
    GET    /api/boards/<board_id>              → board (seeded on first access)
    POST   /api/boards/<board_id>/tasks        → create task, 201
    PATCH  /api/tasks/<task_id>                → update task fields
    DELETE /api/tasks/<task_id>                → 204
    POST   /api/boards/<board_id>/reposition   → body {entries: [{id, column_id, position}]}, 204
    POST   /api/boards/<board_id>/reset        → body {demo: bool}, reseeded board
    GET    /health

Mutating routes require an X-API-Key header matching BOARDSYNC_API_SECRET.
"""
import argparse
import hmac
from functools import wraps
from typing import Optional

from flask import Flask, current_app, jsonify, request

from .config import Config, setup_logging
from .errors import BoardSyncError, ColumnNotFound, TaskNotFound, ValidationError
from .gateway import TaskRecord
from .positions import RepositionEntry
from .store import KanbanStore


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config["BOARDSYNC"].api_secret
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


def _store() -> KanbanStore:
    return current_app.extensions["boardsync_store"]


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def create_app(config: Optional[Config] = None, store: Optional[KanbanStore] = None) -> Flask:
    config = config or Config.load()
    if store is None:
        store = KanbanStore(
            config.db_path,
            default_columns=config.default_columns,
            seed_demo=config.seed_demo,
            spacing=config.position_spacing,
        )

    app = Flask(__name__)
    app.config["BOARDSYNC"] = config
    app.extensions["boardsync_store"] = store

    # ── Error mapping ────────────────────────────────────────────────────────

    @app.errorhandler(TaskNotFound)
    @app.errorhandler(ColumnNotFound)
    def not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(ValidationError)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(BoardSyncError)
    def store_error(e):
        app.logger.error(f"Store error: {e}")
        return jsonify({"error": str(e)}), 500

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/api/boards/<board_id>", methods=["GET"])
    def api_board(board_id):
        board = _store().fetch_or_seed(board_id)
        return jsonify(board.to_dict())

    @app.route("/api/boards/<board_id>/tasks", methods=["POST"])
    @require_api_key
    def api_create_task(board_id):
        data = _json_body()
        try:
            record = TaskRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid task record: {e}")
        task = _store().create_task(board_id, record)
        return jsonify(task.to_dict()), 201

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    @require_api_key
    def api_update_task(task_id):
        task = _store().update_task(task_id, _json_body())
        return jsonify(task.to_dict())

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_task(task_id):
        _store().delete_task(task_id)
        return "", 204

    @app.route("/api/boards/<board_id>/reposition", methods=["POST"])
    @require_api_key
    def api_reposition(board_id):
        raw = _json_body().get("entries")
        if not isinstance(raw, list):
            raise ValidationError("entries must be a list")
        try:
            entries = [
                RepositionEntry(id=e["id"], column_id=e["column_id"], position=int(e["position"]))
                for e in raw
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid reposition entry: {e}")
        _store().reposition(board_id, entries)
        return "", 204

    @app.route("/api/boards/<board_id>/reset", methods=["POST"])
    @require_api_key
    def api_reset(board_id):
        data = request.get_json(force=True, silent=True) or {}
        board = _store().reset(board_id, demo=bool(data.get("demo", True)))
        app.logger.info(f"Board {board_id} reset")
        return jsonify(board.to_dict())

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": _store().db_path})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="boardsync HTTP server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to the SQLite file (overrides config and BOARDSYNC_DB)")
    parser.add_argument("--config", help="Path to boardsync.yaml")
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    if args.db:
        config.db_path = args.db
        config.validate()
    setup_logging(config.log_level)

    app = create_app(config)
    app.logger.info(f"Serving {config.db_path} on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
