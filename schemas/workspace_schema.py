# workspace_schema.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime

from models.models import SubscriptionPlan, WorkspaceRole


# ---------------------------
# Settings (typed keys + passthrough bag)
# ---------------------------
class WorkingHours(BaseModel):
    start: str = Field(default="09:00", pattern=r"^\d{2}:\d{2}$")
    end: str = Field(default="17:00", pattern=r"^\d{2}:\d{2}$")


class WorkspaceFeatures(BaseModel):
    time_tracking: bool = True
    reports: bool = True
    integrations: bool = False


class WorkspaceSettings(BaseModel):
    """Keys the server understands; anything else lives in `extra` untouched."""
    timezone: str = "UTC"
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    features: WorkspaceFeatures = Field(default_factory=WorkspaceFeatures)
    extra: Dict[str, Any] = Field(default_factory=dict)


# ---------------------------
# Workspace
# ---------------------------
class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    subscription_plan: Optional[SubscriptionPlan] = None
    settings: Optional[WorkspaceSettings] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    settings: Optional[WorkspaceSettings] = None


class WorkspaceRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    slug: str
    owner_id: int
    subscription_plan: str
    member_limit: int
    project_limit: int
    settings: WorkspaceSettings
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkspaceWithRole(WorkspaceRead):
    role: str


# ---------------------------
# Membership & invites
# ---------------------------
class MemberRead(BaseModel):
    id: int
    workspace_id: int
    user_id: Optional[int] = None
    role: str
    permissions: List[str] = []
    status: str
    joined_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InviteCreate(BaseModel):
    email: Optional[EmailStr] = None
    role: WorkspaceRole = WorkspaceRole.TEAM_MEMBER


class InviteRead(BaseModel):
    invite_token: str
    invite_link: str
    role: str
    invite_expires: datetime


class JoinRequest(BaseModel):
    token: str = Field(..., min_length=1)
