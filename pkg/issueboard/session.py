"""
Session store: who is signed in.

The identity is never set directly by sign-in/sign-up; it arrives through
the backend's session-change notifications (or the initial session fetch).
Auth operations return a human-readable error string, or None on success.
"""
import logging
from typing import Callable, Optional

from .backend import BackendClient, BackendError, Session
from .events import EventEmitter
from .schema import Identity

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


class SessionStore(EventEmitter):
    """Current identity plus sign-in/sign-up/sign-out."""

    def __init__(self, backend: BackendClient):
        super().__init__()
        self.backend = backend
        self.identity: Optional[Identity] = None
        self.loading = True
        self._closed = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def start(self) -> None:
        """Subscribe to session changes and fetch the current session once."""
        if self._closed:
            return
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.auth.on_auth_state_change(self._on_auth_change)
        try:
            session = await self.backend.auth.get_session()
        except BackendError as e:
            logger.error(f"Session error: {e.message}")
            session = None
        if self._closed:
            return
        self._set_identity(session)

    def close(self) -> None:
        """Stop listening; nothing is applied after this."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_auth_change(self, event: str, session: Optional[Session]) -> None:
        if self._closed:
            return
        logger.debug(f"Auth state change: {event}")
        self._set_identity(session)

    def _set_identity(self, session: Optional[Session]) -> None:
        self.identity = Identity.from_row(session.user) if session else None
        self.loading = False
        self._emit("identity_changed", identity=self.identity)

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        try:
            await self.backend.auth.sign_in_with_password(email, password)
        except BackendError as e:
            return e.message
        return None

    async def sign_up(self, email: str, password: str, display_name: str) -> Optional[str]:
        """
        Create the account, then its profile row.

        A failed profile write is reported but the account stays: there is
        no compensating delete.
        """
        try:
            result = await self.backend.auth.sign_up(
                email, password, data={"name": display_name}
            )
        except BackendError as e:
            return e.message
        if not result.user:
            return "Failed to create user"

        try:
            await self.backend.insert(
                PROFILES_TABLE,
                {"id": result.user.get("id"), "email": email, "full_name": display_name},
                returning=False,
            )
        except BackendError as e:
            logger.error(f"Profile write failed for new account {email}: {e.message}")
            return e.message
        return None

    async def sign_out(self) -> Optional[str]:
        try:
            await self.backend.auth.sign_out()
        except BackendError as e:
            return e.message
        return None
