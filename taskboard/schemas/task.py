# taskboard/schemas/task.py
from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from taskboard.database import as_utc, utcnow
from taskboard.models.task import TaskPriority, TaskStatus
from taskboard.schemas.common import CamelModel, Pagination


def _blank_to_none(v):
    # The frontend sends "" for "unassigned"
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    assigned_to: Optional[int] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("assigned_to", mode="before")
    @classmethod
    def blank_assignee(cls, v):
        return _blank_to_none(v)

    @field_validator("due_date")
    @classmethod
    def due_in_future(cls, v: datetime) -> datetime:
        v = as_utc(v)
        if v <= utcnow():
            raise ValueError("dueDate must be in the future")
        return v


class TaskUpdate(CamelModel):
    """Partial update; only the fields present in the request are applied"""

    # Unknown keys are kept so the permission check sees every key that was sent
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    assigned_to: Optional[int] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("assigned_to", mode="before")
    @classmethod
    def blank_assignee(cls, v):
        return _blank_to_none(v)

    @field_validator("due_date")
    @classmethod
    def normalize_due(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v

    @model_validator(mode="after")
    def required_not_null(self):
        for name in ("title", "status", "priority", "due_date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def requested_fields(self) -> set:
        """Every key in the request body, known field or not"""
        known = {name for name in self.model_fields_set if name in type(self).model_fields}
        return known | set(self.model_extra or {})

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set if name in type(self).model_fields}


class TaskOut(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    assigned_to_username: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime
    created_by: int
    created_by_username: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class TaskSummary(CamelModel):
    id: int
    title: str
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime
    assigned_to: Optional[int] = None


class TaskEnvelope(CamelModel):
    message: Optional[str] = None
    task: TaskOut


class TaskList(CamelModel):
    tasks: List[TaskOut]
    pagination: Pagination
