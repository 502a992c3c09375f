from typing import Optional, List
from datetime import datetime
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, Index, JSON, UniqueConstraint, text
from pydantic import EmailStr

from core.utils import utcnow


# ============================================================
# ENUMS
# ============================================================
class WorkspaceRole(str, Enum):
    WORKSPACE_ADMIN = "workspace_admin"
    PROJECT_MANAGER = "project_manager"
    TEAM_MEMBER = "team_member"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class SubscriptionPlan(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class WorkspacePermission(str, Enum):
    CREATE_PROJECTS = "create_projects"
    DELETE_PROJECTS = "delete_projects"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_WORKSPACE_SETTINGS = "manage_workspace_settings"
    VIEW_REPORTS = "view_reports"
    EXPORT_DATA = "export_data"
    MANAGE_BILLING = "manage_billing"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProjectRole(str, Enum):
    PROJECT_LEAD = "project_lead"
    DEVELOPER = "developer"
    DESIGNER = "designer"
    TESTER = "tester"
    VIEWER = "viewer"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskType(str, Enum):
    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    STORY = "story"
    EPIC = "epic"


ROLE_PERMISSIONS = {
    WorkspaceRole.WORKSPACE_ADMIN.value: [p.value for p in WorkspacePermission],
    WorkspaceRole.PROJECT_MANAGER.value: [
        WorkspacePermission.CREATE_PROJECTS.value,
        WorkspacePermission.VIEW_REPORTS.value,
        WorkspacePermission.EXPORT_DATA.value,
    ],
    WorkspaceRole.TEAM_MEMBER.value: [],
}


def permissions_for_role(role: str) -> List[str]:
    """Permission set derived from a workspace role."""
    return list(ROLE_PERMISSIONS.get(role, []))


# ============================================================
# USER
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str = Field(max_length=100)
    email: EmailStr = Field(index=True, unique=True, max_length=100, nullable=False)
    password_hash: str = Field(nullable=False)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================
# WORKSPACE (tenant)
# ============================================================
class Workspace(SQLModel, table=True):
    __tablename__ = "workspace"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    slug: str = Field(max_length=60, unique=True, index=True)
    owner_id: int = Field(foreign_key="user.id", index=True)

    subscription_plan: str = Field(default=SubscriptionPlan.FREE.value, max_length=20, index=True)
    member_limit: int = Field(default=5, ge=0)
    project_limit: int = Field(default=3, ge=0)

    # Typed on the way in/out by schemas.workspace_schema.WorkspaceSettings
    settings: dict = Field(default_factory=dict, sa_column=Column(JSON))

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    members: List["WorkspaceMember"] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    projects: List["Project"] = Relationship(back_populates="workspace")


# ============================================================
# WORKSPACE MEMBERSHIP
# ============================================================
class WorkspaceMember(SQLModel, table=True):
    __tablename__ = "workspace_member"
    __table_args__ = (
        # Pending invites carry no user, so uniqueness only binds active rows
        Index(
            "uq_workspace_member_active",
            "workspace_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("ix_workspace_member_ws_status", "workspace_id", "status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    role: str = Field(default=WorkspaceRole.TEAM_MEMBER.value, max_length=30)
    permissions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    status: str = Field(default=MembershipStatus.PENDING.value, max_length=20, index=True)

    invited_by_id: int = Field(foreign_key="user.id", nullable=False)
    invited_at: datetime = Field(default_factory=utcnow)
    joined_at: Optional[datetime] = None

    invite_token: Optional[str] = Field(default=None, max_length=255, index=True)
    invite_expires: Optional[datetime] = Field(default=None, index=True)

    workspace: Optional["Workspace"] = Relationship(back_populates="members")

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    @property
    def is_active_member(self) -> bool:
        return self.status == MembershipStatus.ACTIVE.value and self.user_id is not None

    def is_invite_expired(self, now: Optional[datetime] = None) -> bool:
        if self.invite_expires is None:
            return True
        return (now or utcnow()) >= self.invite_expires


# ============================================================
# PROJECT
# ============================================================
class Project(SQLModel, table=True):
    __tablename__ = "project"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_project_workspace_name"),
        Index("ix_project_workspace_status", "workspace_id", "status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)

    status: str = Field(default=ProjectStatus.PLANNING.value, max_length=20)
    priority: str = Field(default=Priority.MEDIUM.value, max_length=20)
    progress: int = Field(default=0, ge=0, le=100)

    owner_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    is_archived: bool = Field(default=False, index=True)
    archived_at: Optional[datetime] = None
    archived_by_id: Optional[int] = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    workspace: Optional["Workspace"] = Relationship(back_populates="projects")
    members: List["ProjectMember"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    tasks: List["Task"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


# ============================================================
# PROJECT MEMBER (link model)
# ============================================================
class ProjectMember(SQLModel, table=True):
    __tablename__ = "project_member"

    project_id: int = Field(foreign_key="project.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True)
    role: str = Field(default=ProjectRole.DEVELOPER.value, max_length=20)
    added_at: datetime = Field(default_factory=utcnow)

    project: Optional["Project"] = Relationship(back_populates="members")


# ============================================================
# TASK
# ============================================================
class Task(SQLModel, table=True):
    __tablename__ = "task"
    __table_args__ = (
        Index("ix_task_workspace_project_status", "workspace_id", "project_id", "status"),
        Index("ix_task_workspace_assignee_status", "workspace_id", "assignee_id", "status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    project_id: int = Field(foreign_key="project.id", nullable=False, index=True)

    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)

    assignee_id: Optional[int] = Field(default=None, foreign_key="user.id")
    reporter_id: int = Field(foreign_key="user.id", nullable=False)

    status: str = Field(default=TaskStatus.TODO.value, max_length=20)
    priority: str = Field(default=Priority.MEDIUM.value, max_length=20)
    type: str = Field(default=TaskType.TASK.value, max_length=20)

    due_date: Optional[datetime] = Field(default=None, index=True)
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None

    estimated_hours: float = Field(default=0.0, ge=0.0)
    logged_hours: float = Field(default=0.0, ge=0.0)
    remaining_hours: float = Field(default=0.0, ge=0.0)
    progress: int = Field(default=0, ge=0, le=100)

    # Opaque client data, never interpreted server-side
    custom_fields: dict = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    project: Optional["Project"] = Relationship(back_populates="tasks")
    watchers: List["TaskWatcher"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    time_entries: List["TimeEntry"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if not self.due_date or self.status in (TaskStatus.DONE.value, TaskStatus.CANCELLED.value):
            return False
        return (now or utcnow()) > self.due_date


# ============================================================
# TASK WATCHER (link model)
# ============================================================
class TaskWatcher(SQLModel, table=True):
    __tablename__ = "task_watcher"

    task_id: int = Field(foreign_key="task.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True)
    added_at: datetime = Field(default_factory=utcnow)

    task: Optional["Task"] = Relationship(back_populates="watchers")


# ============================================================
# TIME ENTRY
# ============================================================
class TimeEntry(SQLModel, table=True):
    __tablename__ = "time_entry"
    __table_args__ = (
        # At most one running timer per user, enforced by the database
        Index(
            "uq_time_entry_running_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_running = 1"),
            postgresql_where=text("is_running"),
        ),
        Index("ix_time_entry_workspace_date", "workspace_id", "date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    task_id: int = Field(foreign_key="task.id", nullable=False, index=True)
    project_id: int = Field(foreign_key="project.id", nullable=False, index=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)

    description: Optional[str] = Field(default=None, max_length=500)
    hours: float = Field(default=0.0, ge=0.0)
    date: datetime = Field(default_factory=utcnow, index=True)
    billable: bool = Field(default=False)

    is_running: bool = Field(default=False)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # None while pending review
    is_approved: Optional[bool] = Field(default=None)
    approved_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    approved_at: Optional[datetime] = None
    approval_comment: Optional[str] = Field(default=None, max_length=500)
    is_invoiced: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    task: Optional["Task"] = Relationship(back_populates="time_entries")

    @property
    def is_locked(self) -> bool:
        """Approved or invoiced entries are frozen."""
        return self.is_approved is True or self.is_invoiced

    @property
    def is_editable(self) -> bool:
        return not (self.is_locked or self.is_running)
