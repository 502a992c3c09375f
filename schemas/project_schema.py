# project_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime

from models.models import Priority, ProjectRole, ProjectStatus


class ProjectCreate(BaseModel):
    workspace_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    priority: Priority = Priority.MEDIUM
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    # owner_id is always the caller


class ProjectRead(BaseModel):
    id: int
    workspace_id: int
    name: str
    description: Optional[str] = None
    status: str
    priority: str
    progress: int
    owner_id: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectPage(BaseModel):
    items: List[ProjectRead]
    total: int
    page: int
    limit: int
    pages: int


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[ProjectStatus] = None
    priority: Optional[Priority] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectMemberAdd(BaseModel):
    user_id: int
    role: ProjectRole = ProjectRole.DEVELOPER


class ProjectMemberRead(BaseModel):
    project_id: int
    user_id: int
    role: str
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)
