from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .utils import new_uuid, now_utc


# === Board aggregate ===
#
# A board owns its columns, a column owns its tasks and a task owns its
# subtasks. The whole tree is loaded and saved as one document.


@dataclass
class Subtask:
    title: str = ""
    is_completed: bool = False
    id: str = field(default_factory=new_uuid)

    def to_document(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "isCompleted": self.is_completed}

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Subtask:
        return cls(
            id=doc["id"],
            title=doc.get("title") or "",
            is_completed=bool(doc.get("isCompleted", False)),
        )


@dataclass
class Task:
    status: str
    title: str = ""
    description: str = ""
    subtasks: List[Subtask] = field(default_factory=list)
    id: str = field(default_factory=new_uuid)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "subtasks": [s.to_document() for s in self.subtasks],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Task:
        return cls(
            id=doc["id"],
            title=doc.get("title") or "",
            description=doc.get("description") or "",
            status=doc.get("status") or "",
            subtasks=[Subtask.from_document(s) for s in doc.get("subtasks") or []],
        )


@dataclass
class Column:
    name: str
    tasks: List[Task] = field(default_factory=list)
    id: str = field(default_factory=new_uuid)

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tasks": [t.to_document() for t in self.tasks],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Column:
        return cls(
            id=doc["id"],
            name=doc["name"],
            tasks=[Task.from_document(t) for t in doc.get("tasks") or []],
        )


@dataclass
class Board:
    name: str
    owner: Optional[str] = None
    columns: List[Column] = field(default_factory=list)
    id: str = field(default_factory=new_uuid)
    version: int = 0
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def find_column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def to_document(self) -> Dict[str, Any]:
        """Serialize the aggregate into the JSON document the stores keep."""
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "columns": [c.to_document() for c in self.columns],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Board:
        return cls(
            id=doc["id"],
            name=doc["name"],
            owner=doc.get("owner"),
            version=int(doc.get("version", 0)),
            created_at=datetime.fromisoformat(doc["createdAt"]),
            updated_at=datetime.fromisoformat(doc["updatedAt"]),
            columns=[Column.from_document(c) for c in doc.get("columns") or []],
        )
