"""
Issue store: the issues of one project, newest first.

The store is bound to a project id with bind(). Changing the id clears the
list and starts a fresh fetch; an unchanged id does nothing; an empty id
holds an empty list and never fetches.

Every fetch carries a generation number. A response that comes back after a
newer fetch has started, or after the bound project changed, is dropped, so
a slow response for an old project can never overwrite the current list.

Mutations are write-then-reread: the list is only touched with the row the
backend returns, assignee/reporter summaries included.
"""
import logging
from typing import Any, Dict, List, Optional

from .backend import BackendClient, BackendError, ISSUE_COLUMNS
from .events import EventEmitter
from .schema import Issue, IssueDraft

logger = logging.getLogger(__name__)

ISSUES_TABLE = "issues"

# Fields fixed at creation; never sent in an update
IMMUTABLE_FIELDS = {"id", "project_id", "reporter_id", "created_at"}


class IssueStore(EventEmitter):
    """In-memory issue list scoped to the bound project."""

    def __init__(self, backend: BackendClient, project_id: str = ""):
        super().__init__()
        self.backend = backend
        self.project_id = ""
        self.issues: List[Issue] = []
        self.loading = False
        self._generation = 0
        self._initial_project_id = project_id or ""

    async def start(self) -> None:
        """Bind to the project id given at construction."""
        await self.bind(self._initial_project_id)

    async def bind(self, project_id: Optional[str]) -> None:
        """Re-scope the store. Fetches only when the id actually changes."""
        project_id = project_id or ""
        if project_id == self.project_id:
            return
        self.project_id = project_id
        self._generation += 1
        self.issues = []
        if not project_id:
            self.loading = False
            self._emit("issues_loaded", project_id="", issues=[])
            return
        await self.list_issues()

    async def list_issues(self) -> List[Issue]:
        """Fetch the bound project's issues. On failure the list stays as it was."""
        if not self.project_id:
            return self.issues

        self._generation += 1
        generation = self._generation
        project_id = self.project_id
        self.loading = True
        try:
            rows = await self.backend.select(
                ISSUES_TABLE,
                columns=ISSUE_COLUMNS,
                filters={"project_id": project_id},
                order=("created_at", True),
            )
        except BackendError as e:
            logger.error(f"Error fetching issues for project {project_id}: {e.message}")
            if generation == self._generation:
                self.loading = False
            return self.issues

        if generation != self._generation or project_id != self.project_id:
            logger.debug(f"Discarding stale issue list for project {project_id}")
            return self.issues

        self.issues = [Issue.from_row(r) for r in rows]
        self.loading = False
        self._emit("issues_loaded", project_id=project_id, issues=list(self.issues))
        return self.issues

    refetch = list_issues

    async def create_issue(self, draft: IssueDraft, reporter_id: str) -> Optional[Issue]:
        """
        Insert an issue into the bound project, always in To Do with no assignee.

        Raises ValueError if no project is bound or the draft is invalid.
        Returns None if the backend rejects the write.
        """
        if not self.project_id:
            raise ValueError("No project selected")
        project_id = self.project_id
        row = draft.to_row(project_id=project_id, reporter_id=reporter_id)
        try:
            data = await self.backend.insert(ISSUES_TABLE, row, columns=ISSUE_COLUMNS)
        except BackendError as e:
            logger.error(f"Error creating issue in project {project_id}: {e.message}")
            return None

        issue = Issue.from_row(data)
        if issue.project_id == self.project_id:
            self.issues = [issue] + self.issues
        logger.info(f"Issue created: {issue.short_ref} {issue.title}")
        self._emit("issue_created", issue=issue)
        return issue

    async def update_issue(self, issue_id: str, fields: Dict[str, Any]) -> Optional[Issue]:
        """
        Patch an issue and swap the stored row into the list at the same position.

        Returns None if the backend rejects the write, or if nothing is left
        to send once fixed fields are dropped.
        """
        fields = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
        if not fields:
            logger.error(f"Nothing to update on issue {issue_id}")
            return None
        try:
            data = await self.backend.update(
                ISSUES_TABLE, issue_id, fields, columns=ISSUE_COLUMNS
            )
        except BackendError as e:
            logger.error(f"Error updating issue {issue_id}: {e.message}")
            return None

        issue = Issue.from_row(data)
        if issue.project_id == self.project_id:
            self.issues = [issue if i.id == issue_id else i for i in self.issues]
        self._emit("issue_updated", issue=issue)
        return issue

    def get(self, issue_id: str) -> Optional[Issue]:
        for issue in self.issues:
            if issue.id == issue_id:
                return issue
        return None
