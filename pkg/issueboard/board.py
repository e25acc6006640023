"""
Board view model: four status columns over the issue store.

Columns are fixed and ordered: To Do, In Progress, In Review, Done. An issue
whose status matches none of them is not shown. Any column-to-column move is
allowed; a drop just asks the issue store to set the new status.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .issues import IssueStore
from .schema import Issue, IssueStatus, IssueType

logger = logging.getLogger(__name__)

COLUMN_TITLES = {
    IssueStatus.TODO: "To Do",
    IssueStatus.IN_PROGRESS: "In Progress",
    IssueStatus.IN_REVIEW: "In Review",
    IssueStatus.DONE: "Done",
}

# Issues are only created from the first column, and always land there
CREATE_COLUMN = IssueStatus.TODO


@dataclass
class Column:
    status: IssueStatus
    title: str
    issues: List[Issue]

    @property
    def can_create(self) -> bool:
        return self.status == CREATE_COLUMN

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "title": self.title,
            "can_create": self.can_create,
            "count": len(self.issues),
            "issues": [i.to_dict() for i in self.issues],
        }


def partition(issues: Sequence[Issue]) -> Dict[IssueStatus, List[Issue]]:
    """Split issues by exact status match, keeping list order within a column."""
    columns: Dict[IssueStatus, List[Issue]] = {status: [] for status in IssueStatus}
    for issue in issues:
        for status in columns:
            if issue.status == status.value:
                columns[status].append(issue)
                break
    return columns


class Board:
    """Columns, drag-and-drop, and summary for the issue store's current list."""

    def __init__(self, store: IssueStore):
        self.store = store

    def columns(self) -> List[Column]:
        parts = partition(self.store.issues)
        return [Column(status, COLUMN_TITLES[status], parts[status]) for status in IssueStatus]

    def column(self, status: IssueStatus) -> Column:
        return Column(status, COLUMN_TITLES[status], partition(self.store.issues)[status])

    def drag_start(self, issue_id: str) -> str:
        """Payload carried from the dragged card to the drop target."""
        return issue_id

    async def drop(
        self, payload: str, status: Union[IssueStatus, str]
    ) -> Optional[Issue]:
        """Move the dragged issue into the target column."""
        target = status if isinstance(status, IssueStatus) else IssueStatus.from_str(status)
        if target is None:
            logger.debug(f"Ignoring drop onto unknown column {status!r}")
            return None
        if not payload:
            logger.debug("Ignoring drop with empty payload")
            return None
        return await self.store.update_issue(payload, {"status": target.value})

    def stats(self) -> Dict[str, int]:
        issues = self.store.issues
        stats = {
            "total": len(issues),
            "bugs": sum(1 for i in issues if i.type == IssueType.BUG),
            "done": sum(1 for i in issues if i.status == IssueStatus.DONE.value),
        }
        for status, items in partition(issues).items():
            stats[status.value] = len(items)
        return stats

    def render_text(self) -> str:
        """Plain-text board, one section per column."""
        if not self.store.issues:
            return "No issues found."

        lines = [f"Board ({len(self.store.issues)} issues):"]
        for column in self.columns():
            lines.append(f"\n{column.title} ({len(column.issues)})")
            for issue in column.issues:
                line = f"  {issue.short_ref} {issue.title} [{issue.priority.value}]"
                if issue.assignee:
                    line += f" @{issue.assignee.display_name}"
                lines.append(line)
        return "\n".join(lines)
