#!/usr/bin/env python3
"""
Teamboard Server
----------------
JSON API for daily reports and the shared kanban board, backed by SQLite.

Usage:
    python teamboard_server.py --create-user alice    # prints alice's token once
    python teamboard_server.py --port 3000

Every resource route needs `Authorization: Bearer <token>` (or X-API-Key).

API:
    GET    /reports                                  → own reports, newest first
    GET    /reports/calendar?startDate=&endDate=      → everyone's reports in range
    GET    /reports/search?keyword=                  → substring search, max 50
    GET    /reports/<id>                             → single report
    POST   /reports      { date, content, title? }   → 201 report
    PUT    /reports/<id> { date?, content?, title? } → report (owner only)
    DELETE /reports/<id>                             → owner only
    GET    /kanban                                   → every task on the board
    GET    /kanban/<id>                              → single task
    POST   /kanban       { title, description?, status?, priority?, startDate?, deadline? }
    PUT    /kanban/<id>  any of the above + order    → task (owner only)
    DELETE /kanban/<id>                              → owner only
    GET    /me                                       → { id, username }
    GET    /health                                   → { status, db }
"""

import logging
import os
from functools import wraps
from pathlib import Path

from flask import Flask, g, jsonify, request

from pkg.teamboard.config import Config
from pkg.teamboard.errors import AuthenticationError, TeamboardError, ValidationError
from pkg.teamboard.store import ReportStore, TaskStore, UserStore

app = Flask(__name__)


# ── Config ───────────────────────────────────────────────────────────────────

def get_config() -> Config:
    return Config.load()


def get_db_path() -> Path:
    return Path(get_config().db_path)


def _report_store() -> ReportStore:
    cfg = get_config()
    return ReportStore(cfg.db_path, search_limit=cfg.search_limit)


def _task_store() -> TaskStore:
    return TaskStore(str(get_db_path()))


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ── Auth ─────────────────────────────────────────────────────────────────────

def _token_from_request() -> str:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer":
        return credentials.strip()
    return request.headers.get("X-API-Key", "").strip()


def require_principal(f):
    """Decorator: resolve the bearer token to a user and expose it as g.principal."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _token_from_request()
        if not token:
            app.logger.warning(f"Auth failed: no token provided for {request.path}")
            raise AuthenticationError("Authentication required")
        user = UserStore(str(get_db_path())).resolve_token(token)
        if user is None:
            app.logger.warning(f"Auth failed: invalid token for {request.path}")
            raise AuthenticationError("Invalid authentication token")
        g.principal = user
        return f(*args, **kwargs)
    return decorated


@app.errorhandler(TeamboardError)
def handle_teamboard_error(e):
    if e.status >= 500:
        app.logger.error(f"{request.method} {request.path} failed: {e}")
    resp = jsonify({"error": str(e)})
    if e.status == 401:
        resp.headers["WWW-Authenticate"] = "Bearer"
    return resp, e.status


# ── Reports ──────────────────────────────────────────────────────────────────

@app.route("/reports", methods=["GET"])
@require_principal
def api_list_own_reports():
    reports = _report_store().list_own(g.principal.id)
    return jsonify([r.to_dict() for r in reports])


@app.route("/reports/calendar", methods=["GET"])
@require_principal
def api_reports_calendar():
    start = request.args.get("startDate")
    end = request.args.get("endDate")
    reports = _report_store().list_by_date_range(start, end)
    return jsonify([r.to_dict() for r in reports])


@app.route("/reports/search", methods=["GET"])
@require_principal
def api_search_reports():
    keyword = request.args.get("keyword", "")
    reports = _report_store().search(keyword)
    return jsonify([r.to_dict() for r in reports])


@app.route("/reports/<report_id>", methods=["GET"])
@require_principal
def api_get_report(report_id):
    return jsonify(_report_store().get(report_id).to_dict())


@app.route("/reports", methods=["POST"])
@require_principal
def api_create_report():
    report = _report_store().create(g.principal.id, _json_body())
    return jsonify(report.to_dict()), 201


@app.route("/reports/<report_id>", methods=["PUT"])
@require_principal
def api_update_report(report_id):
    report = _report_store().update(report_id, g.principal.id, _json_body())
    return jsonify(report.to_dict())


@app.route("/reports/<report_id>", methods=["DELETE"])
@require_principal
def api_delete_report(report_id):
    _report_store().delete(report_id, g.principal.id)
    return jsonify({"message": "Report deleted successfully"})


# ── Kanban ───────────────────────────────────────────────────────────────────

@app.route("/kanban", methods=["GET"])
@require_principal
def api_list_tasks():
    return jsonify([t.to_dict() for t in _task_store().list_all()])


@app.route("/kanban/<task_id>", methods=["GET"])
@require_principal
def api_get_task(task_id):
    return jsonify(_task_store().get(task_id).to_dict())


@app.route("/kanban", methods=["POST"])
@require_principal
def api_create_task():
    task = _task_store().create(g.principal.id, _json_body())
    return jsonify(task.to_dict()), 201


@app.route("/kanban/<task_id>", methods=["PUT"])
@require_principal
def api_update_task(task_id):
    task = _task_store().update(task_id, g.principal.id, _json_body())
    return jsonify(task.to_dict())


@app.route("/kanban/<task_id>", methods=["DELETE"])
@require_principal
def api_delete_task(task_id):
    _task_store().delete(task_id, g.principal.id)
    return jsonify({"message": "Task deleted successfully"})


# ── Misc ─────────────────────────────────────────────────────────────────────

@app.route("/me")
@require_principal
def api_me():
    return jsonify(g.principal.to_dict())


@app.route("/health")
def health():
    return jsonify({"status": "ok", "db": str(get_db_path())})


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    cfg = get_config()
    parser = argparse.ArgumentParser(description="Teamboard Server")
    parser.add_argument("--host", default=cfg.host,
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=cfg.port)
    parser.add_argument("--db", help="Path to teamboard.db (overrides TEAMBOARD_DB env var)")
    parser.add_argument("--create-user", metavar="USERNAME",
                        help="Register a user, print its bearer token and exit")
    args = parser.parse_args(argv)

    if args.db:
        os.environ["TEAMBOARD_DB"] = args.db

    logging.basicConfig(
        level=getattr(logging, str(cfg.log_level).upper(), logging.INFO),
        format="%(asctime)s [teamboard] %(levelname)s: %(message)s",
    )

    if args.create_user:
        try:
            user, token = UserStore(str(get_db_path())).create(args.create_user)
        except TeamboardError as e:
            print(f"error: {e}")
            return 1
        print(f"user:  {user.username} ({user.id})")
        print(f"token: {token}")
        return 0

    db_path = get_db_path()
    print(f"""
╔═══════════════════════════════════════╗
║  Teamboard Server                     ║
╠═══════════════════════════════════════╣
║  URL:  http://{args.host}:{args.port:<20}║
║  DB:   {str(db_path):<31}║
╚═══════════════════════════════════════╝
""")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
