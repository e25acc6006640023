"""
Issue board schema.

Rows arrive from the backend as plain dicts; these dataclasses give them
names and types. Identifiers and timestamps are assigned by the backend and
kept as the strings it returns.

Board lifecycle of an issue:
  To Do → In Progress → In Review → Done   (any column to any column)
"""
import re
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any


class IssueStatus(Enum):
    """Board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional["IssueStatus"]:
        try:
            return cls((value or "").lower())
        except ValueError:
            return None


class IssueType(Enum):
    STORY = "story"
    BUG = "bug"
    TASK = "task"
    EPIC = "epic"

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional["IssueType"]:
        try:
            return cls((value or "").lower())
        except ValueError:
            return None


class IssuePriority(Enum):
    LOWEST = "lowest"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HIGHEST = "highest"

    @classmethod
    def from_str(cls, value: Optional[str]) -> Optional["IssuePriority"]:
        try:
            return cls((value or "").lower())
        except ValueError:
            return None


PROJECT_KEY_RE = re.compile(r"^[A-Z0-9]{2,10}$")
AUTO_KEY_LENGTH = 4


def derive_project_key(name: str) -> str:
    """Default key for a project name: uppercased, alphanumerics only, first 4."""
    return re.sub(r"[^A-Z0-9]", "", (name or "").upper())[:AUTO_KEY_LENGTH]


def validate_project_key(key: str) -> str:
    if not PROJECT_KEY_RE.match(key or ""):
        raise ValueError(
            f"Invalid project key {key!r}: use 2-10 uppercase letters or digits"
        )
    return key


@dataclass
class Identity:
    """An authenticated user, or the profile summary joined onto an issue."""
    id: str
    email: str = ""
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def initial(self) -> str:
        name = self.display_name
        return name[0].upper() if name else "A"

    @classmethod
    def from_row(cls, data: Optional[Dict[str, Any]]) -> Optional["Identity"]:
        """Build from a profile row or an auth user payload; None passes through."""
        if not data:
            return None
        metadata = data.get("user_metadata") or {}
        return cls(
            id=data.get("id", ""),
            email=data.get("email") or "",
            full_name=data.get("full_name") or metadata.get("full_name") or metadata.get("name"),
            avatar_url=data.get("avatar_url") or metadata.get("avatar_url"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
        }


@dataclass
class Project:
    """A named container of issues, shown by its short key."""
    id: str
    name: str
    key: str
    owner_id: str
    description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            key=data.get("key", ""),
            owner_id=data.get("owner_id", ""),
            description=data.get("description"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "key": self.key,
            "description": self.description,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Issue:
    """
    A unit of work on the board.

    `status` keeps the raw backend string: a value outside IssueStatus is
    carried along and simply matches no board column.
    """
    id: str
    title: str
    project_id: str
    reporter_id: str
    status: str = IssueStatus.TODO.value
    type: IssueType = IssueType.STORY
    priority: IssuePriority = IssuePriority.MEDIUM
    description: Optional[str] = None
    assignee_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    # Joined at read time
    assignee: Optional[Identity] = None
    reporter: Optional[Identity] = None

    @property
    def short_ref(self) -> str:
        return f"#{self.id[-6:]}"

    @classmethod
    def from_row(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            project_id=data.get("project_id", ""),
            reporter_id=data.get("reporter_id", ""),
            status=data.get("status") or "",
            type=IssueType.from_str(data.get("type")) or IssueType.STORY,
            priority=IssuePriority.from_str(data.get("priority")) or IssuePriority.MEDIUM,
            description=data.get("description"),
            assignee_id=data.get("assignee_id"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            assignee=Identity.from_row(data.get("assignee")),
            reporter=Identity.from_row(data.get("reporter")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "status": self.status,
            "priority": self.priority.value,
            "project_id": self.project_id,
            "assignee_id": self.assignee_id,
            "reporter_id": self.reporter_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "assignee": self.assignee.to_dict() if self.assignee else None,
            "reporter": self.reporter.to_dict() if self.reporter else None,
        }


@dataclass
class ProjectDraft:
    """Create-project form. An empty key means "derive it from the name"."""
    name: str
    key: str = ""
    description: str = ""

    def resolved_key(self) -> str:
        return self.key.strip().upper() if self.key.strip() else derive_project_key(self.name)

    def to_row(self, owner_id: str) -> Dict[str, Any]:
        name = self.name.strip()
        if not name:
            raise ValueError("Project name is required")
        return {
            "name": name,
            "key": validate_project_key(self.resolved_key()),
            "description": self.description.strip() or None,
            "owner_id": owner_id,
        }


@dataclass
class IssueDraft:
    """
    Create-issue form.

    `status` is accepted so callers can pass a whole form through, but new
    issues always start in To Do.
    """
    title: str
    description: str = ""
    type: IssueType = IssueType.STORY
    priority: IssuePriority = IssuePriority.MEDIUM
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueDraft":
        issue_type = IssueType.from_str(data.get("type"))
        priority = IssuePriority.from_str(data.get("priority"))
        if data.get("type") and issue_type is None:
            raise ValueError(f"Invalid issue type: {data['type']}")
        if data.get("priority") and priority is None:
            raise ValueError(f"Invalid priority: {data['priority']}")
        return cls(
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            type=issue_type or IssueType.STORY,
            priority=priority or IssuePriority.MEDIUM,
            status=data.get("status"),
        )

    def to_row(self, project_id: str, reporter_id: str) -> Dict[str, Any]:
        title = self.title.strip()
        if not title:
            raise ValueError("Issue title is required")
        return {
            "title": title,
            "description": self.description.strip() or None,
            "type": self.type.value,
            "priority": self.priority.value,
            "status": IssueStatus.TODO.value,
            "project_id": project_id,
            "reporter_id": reporter_id,
            "assignee_id": None,
        }
