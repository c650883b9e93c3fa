from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union
from uuid import uuid4

logger = logging.getLogger(__name__)


class CommentKind(str, Enum):
    COMMENT = "comment"
    ISSUE = "issue"
    OBSERVATION = "observation"


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETE = "Complete"


@dataclass(frozen=True)
class TeamMember:
    id: str
    name: str
    role: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "name": self.name, "role": self.role}


@dataclass(frozen=True)
class Comment:
    id: str
    author: str
    text: str
    kind: CommentKind
    created_at: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "author": self.author,
            "text": self.text,
            "kind": self.kind.value,
            "created_at": self.created_at,
        }


@dataclass
class Task:
    id: str
    title: str
    assignee: str
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    status: TaskStatus = TaskStatus.PENDING

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "assignee": self.assignee,
            "priority": self.priority.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status.value,
        }


def _due(value: Union[date, str, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValueError(f"due date must be YYYY-MM-DD, got {value!r}") from e


class CollaborationBoard:
    """
    Team discussion and task assignments attached to one audit.

    With a roster, tasks can only go to its members; without one any
    non-empty assignee is accepted. Like the review ledger, status changes
    on an unknown task id are no-ops that return False.
    """

    def __init__(self, team: Iterable[TeamMember] = ()) -> None:
        self.team = list(team)
        self._comments: List[Comment] = []
        self._tasks: Dict[str, Task] = {}

    def _check_assignee(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("task needs an assignee")
        if self.team and name not in {m.name for m in self.team}:
            raise ValueError(f"{name!r} is not on the audit team")
        return name

    def add_comment(self, author: str, text: str, kind: Union[CommentKind, str] = CommentKind.COMMENT) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValueError("comment text is empty")
        comment = Comment(
            id=uuid4().hex,
            author=(author or "").strip() or "Anonymous",
            text=text,
            kind=CommentKind(kind),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._comments.append(comment)
        if comment.kind is CommentKind.ISSUE:
            logger.info("issue raised by %s: %s", comment.author, text)
        return comment

    def comments(self, kind: Union[CommentKind, str, None] = None) -> List[Comment]:
        if kind is None:
            return list(self._comments)
        k = CommentKind(kind)
        return [c for c in self._comments if c.kind is k]

    def assign_task(
        self,
        title: str,
        assignee: str,
        *,
        priority: Union[TaskPriority, str] = TaskPriority.MEDIUM,
        due_date: Union[date, str, None] = None,
    ) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValueError("task title is empty")
        task = Task(
            id=uuid4().hex,
            title=title,
            assignee=self._check_assignee(assignee),
            priority=TaskPriority(priority),
            due_date=_due(due_date),
        )
        self._tasks[task.id] = task
        logger.info("task %s assigned to %s (%s)", task.id, task.assignee, task.priority.value)
        return task

    def set_task_status(self, task_id: str, status: Union[TaskStatus, str]) -> bool:
        new_status = TaskStatus(status)
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.status = new_status
        return True

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def open_tasks(self) -> List[Task]:
        return [t for t in self._tasks.values() if t.status is not TaskStatus.COMPLETE]

    def to_dict(self) -> Dict[str, object]:
        return {
            "team": [m.to_dict() for m in self.team],
            "comments": [c.to_dict() for c in self._comments],
            "tasks": [t.to_dict() for t in self._tasks.values()],
            "open_tasks": len(self.open_tasks()),
            "issues": len(self.comments(CommentKind.ISSUE)),
        }
