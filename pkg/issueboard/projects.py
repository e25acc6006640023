"""
Project store: the projects visible to the signed-in user.

The list only changes after the backend acknowledges a write. The selected
project is a transient pointer that defaults to the first project once a
load finishes and nothing is selected yet.
"""
import logging
from typing import List, Optional

from .backend import BackendClient, BackendError
from .events import EventEmitter
from .schema import Project, ProjectDraft

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"


class ProjectStore(EventEmitter):
    """In-memory project list, newest first, plus the current selection."""

    def __init__(self, backend: BackendClient):
        super().__init__()
        self.backend = backend
        self.projects: List[Project] = []
        self.selected: Optional[Project] = None
        self.loading = True

    async def list_projects(self) -> List[Project]:
        """Fetch all projects, newest first. On failure the list stays as it was."""
        try:
            rows = await self.backend.select(
                PROJECTS_TABLE, order=("created_at", True)
            )
            self.projects = [Project.from_row(r) for r in rows]
            self._emit("projects_loaded", projects=list(self.projects))
        except BackendError as e:
            logger.error(f"Error fetching projects: {e.message}")
        finally:
            self.loading = False

        if self.selected is None and self.projects:
            self.select(self.projects[0].id)
        return self.projects

    refetch = list_projects

    async def create_project(self, draft: ProjectDraft, owner_id: str) -> Optional[Project]:
        """
        Insert one project and put the stored row at the front of the list.

        Raises ValueError for an invalid draft (before any backend call).
        Returns None if the backend rejects the write.
        """
        row = draft.to_row(owner_id)
        try:
            data = await self.backend.insert(PROJECTS_TABLE, row)
        except BackendError as e:
            logger.error(f"Error creating project {row['key']}: {e.message}")
            return None

        project = Project.from_row(data)
        self.projects = [project] + self.projects
        logger.info(f"Project created: {project.key} ({project.id})")
        self._emit("project_created", project=project)
        return project

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def select(self, project_id: str) -> Project:
        """Point the selection at a loaded project. Raises KeyError if unknown."""
        project = self.get(project_id)
        if project is None:
            raise KeyError(project_id)
        changed = self.selected is None or self.selected.id != project.id
        self.selected = project
        if changed:
            self._emit("selection_changed", project=project)
        return project

    def clear(self) -> None:
        """Forget the list and the selection (after sign-out)."""
        self.projects = []
        had_selection = self.selected is not None
        self.selected = None
        if had_selection:
            self._emit("selection_changed", project=None)
