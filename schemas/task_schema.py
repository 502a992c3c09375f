# task_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime

from models.models import Priority, TaskStatus, TaskType


class TaskCreate(BaseModel):
    project_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    assignee_id: Optional[int] = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.TASK
    due_date: Optional[datetime] = None
    estimated_hours: float = Field(default=0.0, ge=0)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    assignee_id: Optional[int] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    type: Optional[TaskType] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    custom_fields: Optional[Dict[str, Any]] = None


class TaskRead(BaseModel):
    id: int
    workspace_id: int
    project_id: int
    title: str
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    reporter_id: int
    status: str
    priority: str
    type: str
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    estimated_hours: float
    logged_hours: float
    remaining_hours: float
    progress: int
    custom_fields: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WatcherAdd(BaseModel):
    user_id: int


class WatcherRead(BaseModel):
    task_id: int
    user_id: int
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskWithWatchers(TaskRead):
    watcher_ids: List[int] = []


class TaskPage(BaseModel):
    items: List[TaskRead]
    total: int
    page: int
    limit: int
    pages: int
