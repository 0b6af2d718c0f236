"""Board aggregate operations.

Each operation loads the whole board, walks down to the addressed column or
task, applies the change and writes the whole board back in one save.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .errors import BoardNotFound, ColumnNotFound, PreconditionFailed, TaskNotFound, ValidationError
from .models import Board, Column, Subtask, Task
from .utils import now_utc


logger = logging.getLogger(__name__)

SUBTASK_MERGE_FIELDS = {"title": "title", "isCompleted": "is_completed"}


class BoardRepository:
    def __init__(
        self,
        store,
        task_statuses: Sequence[str],
        optimistic_locking: bool = False,
    ) -> None:
        if not task_statuses:
            raise ValueError("at least one task status is required")
        self.store = store
        self.task_statuses = tuple(task_statuses)
        self.optimistic_locking = optimistic_locking

    # === Helpers ===

    def _check_status(self, status: Any) -> str:
        if status not in self.task_statuses:
            raise ValidationError(
                f"status must be one of: {', '.join(self.task_statuses)}",
                details={"status": status},
            )
        return status

    def _build_subtasks(self, docs: Iterable[Mapping[str, Any]]) -> List[Subtask]:
        return [
            Subtask(title=doc.get("title") or "", is_completed=bool(doc.get("isCompleted") or False))
            for doc in docs
        ]

    def _build_task(self, doc: Mapping[str, Any]) -> Task:
        status = doc.get("status")
        return Task(
            title=doc.get("title") or "",
            description=doc.get("description") or "",
            status=self._check_status(status) if status is not None else self.task_statuses[0],
            subtasks=self._build_subtasks(doc.get("subtasks") or []),
        )

    def _build_column(self, doc: Mapping[str, Any]) -> Column:
        name = (doc.get("name") or "").strip()
        if not name:
            raise ValidationError("column name is required")
        return Column(name=name, tasks=[self._build_task(t) for t in doc.get("tasks") or []])

    def _load(self, board_id: str, if_match: Optional[int] = None) -> Board:
        board = self.store.get_board(board_id)
        if board is None:
            raise BoardNotFound()
        if if_match is not None and if_match != board.version:
            raise PreconditionFailed(details={"expected": if_match, "actual": board.version})
        return board

    def _locate(self, board: Board, column_id: str, task_id: Optional[str] = None):
        column = board.find_column(column_id)
        if column is None:
            raise ColumnNotFound()
        if task_id is None:
            return column, None
        task = column.find_task(task_id)
        if task is None:
            raise TaskNotFound()
        return column, task

    def _save(self, board: Board, checked: bool = False) -> Board:
        # Last writer wins unless versions are checked on save.
        expected = board.version if (checked or self.optimistic_locking) else None
        board.version += 1
        board.updated_at = now_utc()
        return self.store.save_board(board, expected_version=expected)

    # === Boards ===

    def list_boards(self) -> List[Board]:
        return self.store.list_boards()

    def create_board(
        self,
        name: Optional[str],
        columns: Optional[Iterable[Mapping[str, Any]]] = None,
        owner: Optional[str] = None,
    ) -> Board:
        name = (name or "").strip()
        if not name:
            raise ValidationError("board name is required")
        board = Board(
            name=name,
            owner=owner,
            columns=[self._build_column(c) for c in columns or []],
            version=1,
        )
        self.store.save_board(board)
        logger.info("created board %s for %s", board.id, owner)
        return board

    def get_board(self, board_id: str) -> Board:
        return self._load(board_id)

    def update_board(
        self,
        board_id: str,
        name: Optional[str] = None,
        new_columns: Optional[Iterable[Mapping[str, Any]]] = None,
        columns_to_remove: Optional[Iterable[str]] = None,
        if_match: Optional[int] = None,
    ) -> Board:
        """Rename the board, append columns, then drop columns by id.

        A blank or missing name keeps the current one. Unknown ids in
        ``columns_to_remove`` are ignored.
        """
        board = self._load(board_id, if_match)
        if name and name.strip():
            board.name = name.strip()
        if new_columns is not None:
            board.columns.extend(self._build_column(c) for c in new_columns)
        if columns_to_remove is not None:
            remove = set(columns_to_remove)
            board.columns = [c for c in board.columns if c.id not in remove]
        return self._save(board, checked=if_match is not None)

    def delete_board(self, board_id: str, if_match: Optional[int] = None) -> str:
        board = self._load(board_id, if_match)
        if not self.store.delete_board(board.id):
            raise BoardNotFound()
        logger.info("deleted board %s", board.id)
        return board.id

    # === Tasks ===

    def add_task(
        self,
        board_id: str,
        column_id: str,
        title: str = "",
        description: str = "",
        status: Optional[str] = None,
        subtasks: Optional[Iterable[Mapping[str, Any]]] = None,
        if_match: Optional[int] = None,
    ) -> Task:
        board = self._load(board_id, if_match)
        column, _ = self._locate(board, column_id)
        task = self._build_task(
            {"title": title, "description": description, "status": status, "subtasks": subtasks}
        )
        column.tasks.append(task)
        self._save(board, checked=if_match is not None)
        return task

    def edit_task(
        self,
        board_id: str,
        column_id: str,
        task_id: str,
        patch: Mapping[str, Any],
        if_match: Optional[int] = None,
    ) -> Task:
        """Apply the keys present in ``patch`` to a task.

        ``title`` and ``description`` take any string, ``None`` clears them.
        ``subtasks`` replaces the whole list and ``subtasksToRemove`` is
        applied after that.
        """
        board = self._load(board_id, if_match)
        _, task = self._locate(board, column_id, task_id)
        if "title" in patch:
            task.title = patch["title"] or ""
        if "description" in patch:
            task.description = patch["description"] or ""
        if "status" in patch:
            task.status = self._check_status(patch["status"])
        if patch.get("subtasks") is not None:
            task.subtasks = self._build_subtasks(patch["subtasks"])
        if patch.get("subtasksToRemove") is not None:
            remove = set(patch["subtasksToRemove"])
            task.subtasks = [s for s in task.subtasks if s.id not in remove]
        self._save(board, checked=if_match is not None)
        return task

    def delete_task(
        self,
        board_id: str,
        column_id: str,
        task_id: str,
        if_match: Optional[int] = None,
    ) -> None:
        board = self._load(board_id, if_match)
        column, task = self._locate(board, column_id, task_id)
        column.tasks = [t for t in column.tasks if t.id != task.id]
        self._save(board, checked=if_match is not None)

    def edit_subtasks(
        self,
        board_id: str,
        column_id: str,
        task_id: str,
        patch: Mapping[str, Any],
        if_match: Optional[int] = None,
    ) -> Task:
        """Set the task status and merge subtask fields by position.

        ``patch["subtasks"][i]`` is merged onto the task's i-th subtask.
        Subtasks past the end of the patch are untouched, extra patch
        entries are dropped and subtask ids never change.
        """
        board = self._load(board_id, if_match)
        _, task = self._locate(board, column_id, task_id)
        if patch.get("status") is not None:
            task.status = self._check_status(patch["status"])
        merges = patch.get("subtasks")
        if merges is not None:
            for subtask, merge in zip(task.subtasks, merges):
                for key, attr in SUBTASK_MERGE_FIELDS.items():
                    if merge.get(key) is not None:
                        setattr(subtask, attr, merge[key])
        self._save(board, checked=if_match is not None)
        return task
