#!/usr/bin/env python3
"""
Issue Board Server
------------------
JSON API over one board workspace: sign in, pick a project, read the board,
create issues and move them between columns. Storage and auth live in the
hosted backend; this process only holds the signed-in user's stores.

Usage:
    python board_server.py --port 3000 --config issueboard.yaml

API:
    GET  /health                    → { status, backend }
    GET  /api/session               → { identity, loading }
    POST /api/auth/sign-in          → body { email, password }
    POST /api/auth/sign-up          → body { email, password, name }
    POST /api/auth/sign-out
    GET  /api/projects              → { projects, selected }
    POST /api/projects              → body { name, key?, description? }
    POST /api/projects/<id>/select
    GET  /api/board[?refresh=1]     → { project, columns, stats }
    POST /api/issues                → body { title, description?, type?, priority? }
    POST /api/issues/<id>/move      → body { status }
    GET  /api/stats

All POST endpoints require an X-API-Key header matching api_secret.

Dependencies:
    pip install "flask[async]" requests pyyaml
"""

import hmac
import logging
import sys
from functools import wraps

from flask import Flask, jsonify, request

from pkg.issueboard.backend import BackendClient
from pkg.issueboard.config import Config
from pkg.issueboard.schema import IssueDraft, IssueStatus, ProjectDraft
from pkg.issueboard.workspace import NotSignedIn, Workspace

logger = logging.getLogger("board_server")

app = Flask(__name__)


# ── Config + workspace ───────────────────────────────────────────────────────

def get_config() -> Config:
    cfg = app.config.get("ISSUEBOARD")
    if cfg is None:
        cfg = Config.load()
        app.config["ISSUEBOARD"] = cfg
    return cfg


async def get_workspace() -> Workspace:
    """The process-wide workspace, started on first use."""
    ws = app.config.get("WORKSPACE")
    if ws is None:
        cfg = get_config().validate()
        ws = Workspace(BackendClient(cfg.backend_url, cfg.anon_key, cfg.request_timeout))
        app.config["WORKSPACE"] = ws
    if not app.config.get("WORKSPACE_STARTED"):
        await ws.start()
        app.config["WORKSPACE_STARTED"] = True
    return ws


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    async def decorated(*args, **kwargs):
        secret = get_config().api_secret
        if not secret:
            return jsonify({"error": "api_secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return await f(*args, **kwargs)
    return decorated


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


def _board_payload(ws: Workspace) -> dict:
    selected = ws.projects.selected
    return {
        "project": selected.to_dict() if selected else None,
        "loading": ws.issues.loading,
        "columns": [c.to_dict() for c in ws.board.columns()],
        "stats": ws.board.stats(),
    }


@app.errorhandler(NotSignedIn)
def handle_not_signed_in(e):
    return jsonify({"error": str(e)}), 401


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/health")
def health():
    return jsonify({"status": "ok", "backend": get_config().backend_url})


@app.route("/api/session")
async def api_session():
    ws = await get_workspace()
    identity = ws.identity
    return jsonify({
        "identity": identity.to_dict() if identity else None,
        "loading": ws.session.loading,
    })


@app.route("/api/auth/sign-in", methods=["POST"])
@require_api_key
async def api_sign_in():
    data = _body()
    email = data.get("email", "").strip()
    password = data.get("password", "")
    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400

    ws = await get_workspace()
    error = await ws.sign_in(email, password)
    if error:
        return jsonify({"error": error}), 401
    return jsonify({"identity": ws.identity.to_dict() if ws.identity else None})


@app.route("/api/auth/sign-up", methods=["POST"])
@require_api_key
async def api_sign_up():
    data = _body()
    email = data.get("email", "").strip()
    password = data.get("password", "")
    name = data.get("name", "").strip()
    if not email or not password or not name:
        return jsonify({"error": "email, password and name are required"}), 400

    ws = await get_workspace()
    error = await ws.sign_up(email, password, name)
    if error:
        return jsonify({"error": error}), 400
    return jsonify({"identity": ws.identity.to_dict() if ws.identity else None}), 201


@app.route("/api/auth/sign-out", methods=["POST"])
@require_api_key
async def api_sign_out():
    ws = await get_workspace()
    error = await ws.sign_out()
    if error:
        return jsonify({"error": error}), 502
    return jsonify({"identity": None})


@app.route("/api/projects", methods=["GET"])
async def api_projects():
    ws = await get_workspace()
    selected = ws.projects.selected
    return jsonify({
        "projects": [p.to_dict() for p in ws.projects.projects],
        "selected": selected.id if selected else None,
        "loading": ws.projects.loading,
    })


@app.route("/api/projects", methods=["POST"])
@require_api_key
async def api_create_project():
    data = _body()
    draft = ProjectDraft(
        name=data.get("name", ""),
        key=data.get("key", "") or "",
        description=data.get("description", "") or "",
    )
    ws = await get_workspace()
    try:
        project = await ws.create_project(draft)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if project is None:
        return jsonify({"error": "Project could not be created"}), 502
    return jsonify({"project": project.to_dict()}), 201


@app.route("/api/projects/<project_id>/select", methods=["POST"])
@require_api_key
async def api_select_project(project_id):
    ws = await get_workspace()
    try:
        project = await ws.select_project(project_id)
    except KeyError:
        return jsonify({"error": "Project not found"}), 404
    return jsonify({"project": project.to_dict(), "board": _board_payload(ws)})


@app.route("/api/board")
async def api_board():
    ws = await get_workspace()
    if request.args.get("refresh"):
        await ws.issues.refetch()
    return jsonify(_board_payload(ws))


@app.route("/api/issues", methods=["POST"])
@require_api_key
async def api_create_issue():
    ws = await get_workspace()
    try:
        draft = IssueDraft.from_dict(_body())
        issue = await ws.create_issue(draft)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if issue is None:
        return jsonify({"error": "Issue could not be created"}), 502
    return jsonify({"issue": issue.to_dict()}), 201


@app.route("/api/issues/<issue_id>/move", methods=["POST"])
@require_api_key
async def api_move_issue(issue_id):
    status = IssueStatus.from_str(_body().get("status", ""))
    if status is None:
        return jsonify({"error": "status must be one of: "
                        + ", ".join(s.value for s in IssueStatus)}), 400

    ws = await get_workspace()
    issue = await ws.move_issue(issue_id, status)
    if issue is None:
        return jsonify({"error": "Issue could not be updated"}), 502
    return jsonify({"issue": issue.to_dict()})


@app.route("/api/stats")
async def api_stats():
    ws = await get_workspace()
    return jsonify(ws.board.stats())


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Issue Board Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to issueboard.yaml (overrides ISSUEBOARD_CONFIG)")
    args = parser.parse_args()

    cfg = Config.load(args.config)
    app.config["ISSUEBOARD"] = cfg

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [issueboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    cfg.validate()

    print(f"""
╔═══════════════════════════════════════╗
║  Issue Board Server                   ║
╠═══════════════════════════════════════╣
║  URL:     http://{args.host}:{args.port:<17}║
║  Backend: {cfg.backend_url[:28]:<28}║
╚═══════════════════════════════════════╝
""")

    app.run(host=args.host, port=args.port, debug=False, threaded=True)
