"""
Tests for the board view model: column partition, drag-and-drop, stats.
"""
import asyncio

import pytest

from pkg.issueboard.board import Board, partition
from pkg.issueboard.issues import IssueStore
from pkg.issueboard.schema import Issue, IssueStatus


def _issue(issue_id, status, **kwargs):
    return Issue(id=issue_id, title=f"Issue {issue_id}", project_id="p1",
                 reporter_id="u1", status=status, **kwargs)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Partition
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestPartition:

    def test_each_known_status_lands_in_exactly_one_column(self):
        issues = [_issue(str(n), s.value) for n, s in enumerate(IssueStatus)]
        columns = partition(issues)
        for issue in issues:
            hits = [s for s, items in columns.items() if issue in items]
            assert hits == [IssueStatus(issue.status)]

    def test_all_columns_present_even_when_empty(self):
        columns = partition([_issue("1", "todo")])
        assert list(columns) == list(IssueStatus)
        assert columns[IssueStatus.DONE] == []

    def test_unknown_status_shown_nowhere(self):
        columns = partition([_issue("1", "archived"), _issue("2", "TODO")])
        assert all(items == [] for items in columns.values())

    def test_missing_status_shown_nowhere(self, backend):
        project = backend.seed_project("Kanban Core", "KANB")
        backend.seed_issue(project["id"], "No status", status=None)
        store = IssueStore(backend)
        asyncio.run(store.bind(project["id"]))

        assert [i.title for i in store.issues] == ["No status"]
        assert all(items == [] for items in partition(store.issues).values())

    def test_order_within_column_follows_list(self):
        issues = [_issue("a", "done"), _issue("b", "todo"), _issue("c", "done")]
        assert [i.id for i in partition(issues)[IssueStatus.DONE]] == ["a", "c"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board over a live store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.fixture
def board(backend):
    project = backend.seed_project("Kanban Core", "KANB")
    backend.seed_issue(project["id"], "Write docs", status="todo")
    backend.seed_issue(project["id"], "Fix drag bug", status="todo", type="bug")
    backend.seed_issue(project["id"], "Ship it", status="done")
    store = IssueStore(backend)
    asyncio.run(store.bind(project["id"]))
    return Board(store)


def test_columns_in_display_order(board):
    columns = board.columns()
    assert [c.title for c in columns] == ["To Do", "In Progress", "In Review", "Done"]
    assert [c.can_create for c in columns] == [True, False, False, False]
    assert [len(c.issues) for c in columns] == [2, 0, 0, 1]


def test_drop_moves_issue(board, backend):
    issue = board.store.issues[0]
    order = [i.id for i in board.store.issues]

    payload = board.drag_start(issue.id)
    moved = asyncio.run(board.drop(payload, IssueStatus.IN_REVIEW))

    assert moved.status == "in_review"
    assert backend.ops("update", "issues") == [
        ("update", "issues", {"id": issue.id, "status": "in_review"})
    ]
    assert [i.id for i in board.store.issues] == order
    assert board.column(IssueStatus.IN_REVIEW).issues[0].id == issue.id


def test_any_transition_allowed(board, backend):
    done = board.column(IssueStatus.DONE).issues[0]
    moved = asyncio.run(board.drop(done.id, "todo"))
    assert moved.status == "todo"


def test_drop_on_unknown_column_ignored(board, backend):
    issue = board.store.issues[0]
    assert asyncio.run(board.drop(issue.id, "blocked")) is None
    assert backend.ops("update", "issues") == []


def test_drop_with_empty_payload_ignored(board, backend):
    assert asyncio.run(board.drop("", IssueStatus.DONE)) is None
    assert backend.ops("update", "issues") == []


def test_stats(board):
    stats = board.stats()
    assert stats["total"] == 3
    assert stats["bugs"] == 1
    assert stats["done"] == 1
    assert stats["todo"] == 2
    assert stats["in_review"] == 0


def test_render_text(board):
    text = board.render_text()
    assert text.startswith("Board (3 issues):")
    assert "To Do (2)" in text
    assert "In Progress (0)" in text
    assert "Fix drag bug [medium]" in text


def test_render_text_empty(backend):
    assert Board(IssueStore(backend)).render_text() == "No issues found."
