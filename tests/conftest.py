"""Shared fixtures: an in-memory stand-in for the hosted backend."""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

# Ensure the repo root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.issueboard.backend import BackendError, Session, SignUpResult, SIGNED_IN, SIGNED_OUT


class FakeAuth:
    """Auth service with a user table and local change notifications."""

    def __init__(self):
        self.session: Optional[Session] = None
        self.listeners = []
        self.users: Dict[str, Dict[str, Any]] = {}  # email -> {id, password, name}
        self.fail_get_session = False

    async def get_session(self):
        if self.fail_get_session:
            raise BackendError("session lookup failed", 500)
        return self.session

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)

        def unsubscribe():
            if callback in self.listeners:
                self.listeners.remove(callback)

        return unsubscribe

    def _notify(self, event):
        for callback in list(self.listeners):
            callback(event, self.session)

    def _session_for(self, email):
        user = self.users[email]
        return Session(
            access_token=f"token-{user['id']}",
            user={"id": user["id"], "email": email, "user_metadata": {"name": user["name"]}},
        )

    def add_user(self, email, password, name="", user_id=None):
        user_id = user_id or f"user-{len(self.users) + 1}"
        self.users[email] = {"id": user_id, "password": password, "name": name}
        return user_id

    async def sign_in_with_password(self, email, password):
        user = self.users.get(email)
        if not user or user["password"] != password:
            raise BackendError("Invalid login credentials", 400)
        self.session = self._session_for(email)
        self._notify(SIGNED_IN)
        return self.session

    async def sign_up(self, email, password, data=None):
        if email in self.users:
            raise BackendError("User already registered", 422)
        self.add_user(email, password, (data or {}).get("name", ""))
        self.session = self._session_for(email)
        self._notify(SIGNED_IN)
        return SignUpResult(user=self.session.user, session=self.session)

    async def sign_out(self):
        self.session = None
        self._notify(SIGNED_OUT)


class FakeBackend:
    """
    Tables in dicts. Issue selects honour the joined-profile column list.

    fail:  set of "op:table" strings that raise BackendError
    gates: project_id -> asyncio.Event; issue selects for that project wait on it.
           ("update", row_id, status) -> asyncio.Event; that update is applied
           at once but its response waits on the event
    calls: (op, table, detail) for every table call, in order
    """

    def __init__(self):
        self.auth = FakeAuth()
        self.tables = {"projects": [], "issues": [], "profiles": []}
        self.fail = set()
        self.gates = {}
        self.calls = []
        self._seq = 0

    def _tick(self):
        self._seq += 1
        return self._seq

    def _timestamp(self, n):
        return f"2024-01-01T{n // 3600:02d}:{(n // 60) % 60:02d}:{n % 60:02d}+00:00"

    def _check(self, op, table):
        if f"{op}:{table}" in self.fail:
            raise BackendError(f"{op} on {table} failed", 500)

    def _profile(self, user_id):
        for p in self.tables["profiles"]:
            if p["id"] == user_id:
                return {k: p.get(k) for k in ("id", "full_name", "email", "avatar_url")}
        return None

    def _shape(self, row, columns):
        out = dict(row)
        if "assignee:" in columns:
            out["assignee"] = self._profile(row.get("assignee_id"))
            out["reporter"] = self._profile(row.get("reporter_id"))
        return out

    async def select(self, table, columns="*", filters=None, order=None):
        filters = dict(filters or {})
        self.calls.append(("select", table, filters))
        gate = self.gates.get(filters.get("project_id"))
        if gate is not None:
            await gate.wait()
        self._check("select", table)
        rows = [r for r in self.tables[table] if all(r.get(k) == v for k, v in filters.items())]
        if order:
            column, descending = order
            rows.sort(key=lambda r: r.get(column) or "", reverse=descending)
        return [self._shape(r, columns) for r in rows]

    async def insert(self, table, row, columns="*", returning=True):
        self.calls.append(("insert", table, dict(row)))
        self._check("insert", table)
        n = self._tick()
        stored = dict(row)
        stored.setdefault("id", f"{table[:-1]}-{n:06d}")
        stored.setdefault("created_at", self._timestamp(n))
        stored.setdefault("updated_at", stored["created_at"])
        self.tables[table].append(stored)
        return self._shape(stored, columns) if returning else None

    async def update(self, table, row_id, fields, columns="*"):
        self.calls.append(("update", table, {"id": row_id, **fields}))
        self._check("update", table)
        for stored in self.tables[table]:
            if stored["id"] == row_id:
                stored.update(fields)
                stored["updated_at"] = self._timestamp(self._tick())
                shaped = self._shape(stored, columns)
                gate = self.gates.get(("update", row_id, fields.get("status")))
                if gate is not None:
                    await gate.wait()
                return shaped
        raise BackendError("JSON object requested, multiple (or no) rows returned", 406)

    # ── Seeding helpers ──

    def seed_profile(self, user_id, email, full_name=None):
        self.tables["profiles"].append(
            {"id": user_id, "email": email, "full_name": full_name, "avatar_url": None}
        )

    def seed_project(self, name, key, owner_id="user-1"):
        n = self._tick()
        row = {
            "id": f"project-{n:06d}", "name": name, "key": key, "description": None,
            "owner_id": owner_id, "created_at": self._timestamp(n), "updated_at": self._timestamp(n),
        }
        self.tables["projects"].append(row)
        return row

    def seed_issue(self, project_id, title, status="todo", reporter_id="user-1", **extra):
        n = self._tick()
        row = {
            "id": f"issue-{n:06d}", "title": title, "description": None, "type": "task",
            "status": status, "priority": "medium", "project_id": project_id,
            "assignee_id": None, "reporter_id": reporter_id,
            "created_at": self._timestamp(n), "updated_at": self._timestamp(n),
        }
        row.update(extra)
        self.tables["issues"].append(row)
        return row

    def ops(self, op, table):
        return [c for c in self.calls if c[0] == op and c[1] == table]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def signed_in_backend(backend):
    """Backend with one registered user already holding a session."""
    backend.auth.add_user("ada@example.com", "secret", "Ada", user_id="user-1")
    backend.seed_profile("user-1", "ada@example.com", "Ada")
    backend.auth.session = backend.auth._session_for("ada@example.com")
    return backend
