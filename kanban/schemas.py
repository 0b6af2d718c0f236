from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None
    requestId: Optional[str] = None


class Health(BaseModel):
    status: str = "ok"


class Version(BaseModel):
    version: str


# === Requests ===


class SubtaskIn(BaseModel):
    title: str = Field(default="", max_length=200)
    isCompleted: Optional[bool] = None


class TaskIn(BaseModel):
    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=8000)
    status: Optional[str] = None
    subtasks: Optional[List[SubtaskIn]] = None


class ColumnIn(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    tasks: List[TaskIn] = Field(default_factory=list)


class BoardIn(BaseModel):
    name: str = Field(min_length=1, max_length=140)
    columns: List[ColumnIn] = Field(default_factory=list)


class BoardUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=140)
    newColumns: Optional[List[ColumnIn]] = None
    columnsToRemove: Optional[List[str]] = None


class TaskPatch(BaseModel):
    """Partial task update.

    Only the fields the client actually sent are applied, so ``title: ""``
    and ``title: null`` both clear the title while an omitted title is left
    alone.
    """

    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    status: Optional[str] = None
    subtasks: Optional[List[SubtaskIn]] = None
    subtasksToRemove: Optional[List[str]] = None


class SubtaskMerge(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    isCompleted: Optional[bool] = None


class SubtaskPatch(BaseModel):
    """Status change plus positional subtask merge (index ``i`` patches subtask ``i``)."""

    status: Optional[str] = None
    subtasks: Optional[List[SubtaskMerge]] = None


# === Responses ===


class SubtaskOut(BaseModel):
    id: str
    title: str
    isCompleted: bool


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    status: str
    subtasks: List[SubtaskOut]


class ColumnOut(BaseModel):
    id: str
    name: str
    tasks: List[TaskOut]


class BoardOut(BaseModel):
    id: str
    name: str
    owner: Optional[str]
    columns: List[ColumnOut]
    version: int
    createdAt: datetime
    updatedAt: datetime


class BoardDeleted(BaseModel):
    id: str


class Message(BaseModel):
    message: str
