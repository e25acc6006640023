"""
Workspace: one signed-in user's view of the board.

Data flow:
    session ──identity_changed──▶ projects ──selection_changed──▶ issues ──▶ board

The stores never call each other. The workspace subscribes to their events
and turns each one into follow-up work: a new identity reloads the project
list, a new selection re-binds the issue store. So a change made directly
on a store (projects.select(), a session ending on the auth service side)
reaches the board the same way a change made through the workspace does.

Nothing is fetched until an identity is present. Signing out clears
projects, selection and issues.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from .backend import BackendClient
from .board import Board
from .issues import IssueStore
from .projects import ProjectStore
from .schema import Identity, Issue, IssueDraft, IssueStatus, Project, ProjectDraft
from .session import SessionStore

logger = logging.getLogger(__name__)


class NotSignedIn(Exception):
    """Raised when a user action needs an identity and there is none."""
    pass


class Workspace:
    """Owns the stores for one client and keeps them in step."""

    def __init__(self, backend: BackendClient):
        self.backend = backend
        self.session = SessionStore(backend)
        self.projects = ProjectStore(backend)
        self.issues = IssueStore(backend)
        self.board = Board(self.issues)
        self._loaded_for: Optional[str] = None
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: List[Callable[[], None]] = [
            self.session.subscribe("identity_changed", self._on_identity_changed),
            self.projects.subscribe("selection_changed", self._on_selection_changed),
        ]

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.identity

    def _require_identity(self) -> Identity:
        if self.session.identity is None:
            raise NotSignedIn("Sign in first")
        return self.session.identity

    async def start(self) -> None:
        await self.session.start()
        await self.settle()

    def close(self) -> None:
        self.session.close()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        for task in list(self._tasks):
            task.cancel()

    # ── Event wiring ─────────────────────────────────────────────────────────

    def _on_identity_changed(self, identity: Optional[Identity]) -> None:
        self._spawn(self.sync())

    def _on_selection_changed(self, project: Optional[Project]) -> None:
        self._spawn(self.issues.bind(project.id if project else ""))

    def _spawn(self, coro: Awaitable[None]) -> None:
        """
        Run follow-up work for a store event.

        Inside a running loop the work becomes a task that settle() waits
        for. Called from plain synchronous code, it runs to completion
        (including anything it triggers) before returning.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_settled(coro))
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Workspace update failed: {task.exception()}")

    async def _run_settled(self, coro: Awaitable[None]) -> None:
        await coro
        await self.settle()

    async def settle(self) -> None:
        """Wait until every update triggered by store events has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def sync(self) -> None:
        """Bring the project list in line with the current identity."""
        identity = self.session.identity
        if identity is None:
            if self._loaded_for is not None:
                logger.info("Signed out; clearing board")
            self._loaded_for = None
            self.projects.clear()
            return
        if self._loaded_for == identity.id:
            return

        self._loaded_for = identity.id
        self.projects.clear()
        await self.projects.list_projects()
        current = self.session.identity
        if current is None or current.id != identity.id:
            # Identity changed while the list was in flight
            self.projects.clear()

    # ── Auth ─────────────────────────────────────────────────────────────────

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        error = await self.session.sign_in(email, password)
        await self.settle()
        return error

    async def sign_up(self, email: str, password: str, display_name: str) -> Optional[str]:
        error = await self.session.sign_up(email, password, display_name)
        await self.settle()
        return error

    async def sign_out(self) -> Optional[str]:
        error = await self.session.sign_out()
        await self.settle()
        return error

    # ── Projects ─────────────────────────────────────────────────────────────

    async def select_project(self, project_id: str) -> Project:
        project = self.projects.select(project_id)
        await self.settle()
        return project

    async def create_project(self, draft: ProjectDraft) -> Optional[Project]:
        """Create a project owned by the current user and switch to it."""
        identity = self._require_identity()
        project = await self.projects.create_project(draft, owner_id=identity.id)
        if project is not None:
            await self.select_project(project.id)
        return project

    # ── Issues ───────────────────────────────────────────────────────────────

    async def create_issue(self, draft: IssueDraft) -> Optional[Issue]:
        identity = self._require_identity()
        return await self.issues.create_issue(draft, reporter_id=identity.id)

    async def move_issue(self, issue_id: str, status: IssueStatus) -> Optional[Issue]:
        payload = self.board.drag_start(issue_id)
        return await self.board.drop(payload, status)
