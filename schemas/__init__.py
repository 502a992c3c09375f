from .progress_schema import BulkProgressItem, BulkProgressRequest, ProgressUpdate
from .project_schema import ProjectCreate, ProjectMemberAdd, ProjectMemberRead, ProjectPage, ProjectRead, ProjectUpdate
from .task_schema import TaskCreate, TaskPage, TaskRead, TaskUpdate, TaskWithWatchers, WatcherAdd, WatcherRead
from .time_entry_schema import (
    ApprovalRequest, RunningTimerRead,
    TimeEntryRead, TimeEntryUpdate, TimeLogCreate, TimerStart,
)
from .user_schema import TokenResponse, UserCreate, UserLogin, UserRead
from .workspace_schema import (
    InviteCreate, InviteRead, JoinRequest, MemberRead,
    WorkingHours, WorkspaceCreate, WorkspaceFeatures, WorkspaceRead,
    WorkspaceSettings, WorkspaceUpdate, WorkspaceWithRole,
)

__all__ = [
    # Progress
    "ProgressUpdate", "BulkProgressItem", "BulkProgressRequest",

    # Project
    "ProjectCreate", "ProjectPage", "ProjectRead", "ProjectUpdate", "ProjectMemberAdd", "ProjectMemberRead",

    # Task
    "TaskCreate", "TaskPage", "TaskRead", "TaskUpdate", "TaskWithWatchers", "WatcherAdd", "WatcherRead",

    # Time tracking
    "TimerStart", "TimeLogCreate", "TimeEntryUpdate", "TimeEntryRead", "RunningTimerRead", "ApprovalRequest",

    # User
    "UserCreate", "UserLogin", "UserRead", "TokenResponse",

    # Workspace
    "WorkingHours", "WorkspaceFeatures", "WorkspaceSettings",
    "WorkspaceCreate", "WorkspaceUpdate", "WorkspaceRead", "WorkspaceWithRole",
    "MemberRead", "InviteCreate", "InviteRead", "JoinRequest",
]
