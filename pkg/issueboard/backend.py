"""
Thin client for the hosted backend (auth service + REST database).

Two surfaces, both over HTTPS with `requests`:
  /auth/v1/...   - password sign-in, sign-up, sign-out
  /rest/v1/...   - select / insert / update on tables, filtered by exact match

Every public call is a coroutine; the blocking HTTP request runs in a worker
thread so the event loop stays free while a call is in flight. Any failure
(network, HTTP status, bad payload) is raised as BackendError.

Session-change listeners are notified locally when sign-in/sign-out succeed
and when an expired access token is refreshed, the same way hosted auth
client libraries do it. A table call answered with 401 refreshes the session
once and is retried; if the refresh fails the session is dropped.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

PROFILE_SUMMARY = "id, full_name, email, avatar_url"

# Issue rows with their assignee/reporter profile summaries joined in
ISSUE_COLUMNS = (
    "*, "
    f"assignee:profiles!assignee_id({PROFILE_SUMMARY}), "
    f"reporter:profiles!reporter_id({PROFILE_SUMMARY})"
)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"


class BackendError(Exception):
    """Raised when a backend call fails for any reason."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class Session:
    """An authenticated session as returned by the auth service."""
    access_token: str
    user: Dict[str, Any]
    refresh_token: str = ""
    expires_in: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            access_token=data["access_token"],
            user=data.get("user") or {},
            refresh_token=data.get("refresh_token", ""),
            expires_in=data.get("expires_in"),
        )


@dataclass
class SignUpResult:
    user: Optional[Dict[str, Any]]
    session: Optional[Session] = None


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for k in ("msg", "message", "error_description", "error"):
            if body.get(k):
                return str(body[k])
    return f"HTTP {resp.status_code}"


class AuthClient:
    """Auth half of the backend: session state plus change notifications."""

    def __init__(self, backend: "BackendClient"):
        self._backend = backend
        self.session: Optional[Session] = None
        self._listeners: List[Callable[[str, Optional[Session]], None]] = []

    async def get_session(self) -> Optional[Session]:
        return self.session

    def on_auth_state_change(
        self, callback: Callable[[str, Optional[Session]], None]
    ) -> Callable[[], None]:
        """Register a listener for (event, session). Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for callback in list(self._listeners):
            try:
                callback(event, self.session)
            except Exception as e:
                logger.error(f"Auth listener failed on {event}: {e}")

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self._backend._call(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            retry=False,
        )
        if not isinstance(data, dict) or "access_token" not in data:
            raise BackendError("Sign-in response did not contain a session")
        self.session = Session.from_payload(data)
        self._notify(SIGNED_IN)
        return self.session

    async def sign_up(
        self, email: str, password: str, data: Optional[Dict[str, Any]] = None
    ) -> SignUpResult:
        """
        Create an account. The auth service answers with a session when
        e-mail confirmation is off, or with the bare user when it is on.
        """
        body = await self._backend._call(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": data or {}},
            retry=False,
        )
        if not isinstance(body, dict):
            raise BackendError("Unexpected sign-up response")
        if "access_token" in body:
            self.session = Session.from_payload(body)
            self._notify(SIGNED_IN)
            return SignUpResult(user=self.session.user, session=self.session)
        return SignUpResult(user=body if body.get("id") else body.get("user"))

    async def sign_out(self) -> None:
        if self.session is not None:
            try:
                await self._backend._call("POST", "/auth/v1/logout", retry=False)
            except BackendError as e:
                # An expired session is already over on the server side
                if e.status != 401:
                    raise
        self.session = None
        self._notify(SIGNED_OUT)

    async def refresh_session(self) -> Optional[Session]:
        """
        Trade the refresh token for a new access token.

        On success listeners get TOKEN_REFRESHED. On failure the session is
        dropped, listeners get SIGNED_OUT, and None is returned.
        """
        if self.session is None:
            return None
        try:
            if not self.session.refresh_token:
                raise BackendError("Session has no refresh token", 401)
            data = await self._backend._call(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": self.session.refresh_token},
                retry=False,
            )
            if not isinstance(data, dict) or "access_token" not in data:
                raise BackendError("Refresh response did not contain a session")
        except BackendError as e:
            logger.warning(f"Session refresh failed, signing out: {e.message}")
            self.session = None
            self._notify(SIGNED_OUT)
            return None

        self.session = Session.from_payload(data)
        logger.debug(f"Session refreshed, expires in {self.session.expires_in}s")
        self._notify(TOKEN_REFRESHED)
        return self.session


@dataclass
class BackendClient:
    """
    Client bound to one backend project.

    Usage:
        backend = BackendClient(url, anon_key)
        await backend.auth.sign_in_with_password(email, password)
        rows = await backend.select("projects", order=("created_at", True))
    """
    url: str
    anon_key: str
    timeout: float = 10.0
    http: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self):
        self.url = self.url.rstrip("/")
        self.auth = AuthClient(self)

    # ── HTTP ─────────────────────────────────────────────────────────────────

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        token = self.auth.session.access_token if self.auth.session else self.anon_key
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Blocking request. Returns the decoded JSON body, or None when empty."""
        try:
            resp = self.http.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if not resp.ok:
            raise BackendError(_error_message(resp), status=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON") from e

    async def _call(self, method: str, path: str, retry: bool = True, **kwargs) -> Any:
        """Run a request off the loop; on 401 refresh the session and try once more."""
        try:
            return await asyncio.to_thread(self._request, method, path, **kwargs)
        except BackendError as e:
            if not retry or e.status != 401 or self.auth.session is None:
                raise
            expired = e
        if await self.auth.refresh_session() is None:
            raise expired
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    # ── Tables ───────────────────────────────────────────────────────────────

    @staticmethod
    def _query(
        columns: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[Tuple[str, bool]] = None,
    ) -> Dict[str, str]:
        params = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            column, descending = order
            params["order"] = f"{column}.{'desc' if descending else 'asc'}"
        return params

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[Tuple[str, bool]] = None,
    ) -> List[Dict[str, Any]]:
        """Rows matching every filter exactly; `order` is (column, descending)."""
        rows = await self._call(
            "GET", f"/rest/v1/{table}", params=self._query(columns, filters, order)
        )
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise BackendError(f"Expected a list of rows from {table}")
        return rows

    async def insert(
        self, table: str, row: Dict[str, Any], columns: str = "*", returning: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Insert one row; returns the stored row (with backend-assigned fields)."""
        if not returning:
            await self._call(
                "POST",
                f"/rest/v1/{table}",
                json=[row],
                headers={"Prefer": "return=minimal"},
            )
            return None
        return await self._call(
            "POST",
            f"/rest/v1/{table}",
            params={"select": columns},
            json=row,
            headers={
                "Prefer": "return=representation",
                "Accept": "application/vnd.pgrst.object+json",
            },
        )

    async def update(
        self, table: str, row_id: str, fields: Dict[str, Any], columns: str = "*"
    ) -> Dict[str, Any]:
        """Patch the row with this id; returns it as stored after the write."""
        params = self._query(columns, {"id": row_id})
        return await self._call(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=fields,
            headers={
                "Prefer": "return=representation",
                "Accept": "application/vnd.pgrst.object+json",
            },
        )
