"""
Pytest fixtures: an isolated in-memory database per test, a small factory for
users/memberships/projects/tasks, and an API client bound to the same session.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SENDGRID_API_KEY"] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from core.database import get_session  # noqa: E402
from core.errors import unwrap  # noqa: E402
from core.security import create_token_for_user  # noqa: E402
from core.utils import utcnow  # noqa: E402
from models.models import (  # noqa: E402
    MembershipStatus, ProjectMember, ProjectRole, User, WorkspaceMember, WorkspaceRole, permissions_for_role,
)
from services import project_service, task_service, workspace_service  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


class Factory:
    """
    Builds rows through the services where a service exists, so fixtures obey
    the same rules the application does.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self._users = 0

    def user(self, full_name: str = None, email: str = None) -> User:
        self._users += 1
        user = User(
            full_name=full_name or f"User {self._users}",
            email=email or f"user{self._users}@example.com",
            password_hash="not-a-real-hash",
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def workspace(self, owner: User, name: str = "Acme", plan: str = "free"):
        return unwrap(workspace_service.create_workspace(self.session, owner.id, name, plan=plan))

    def member(self, workspace, user: User, role: str = WorkspaceRole.TEAM_MEMBER.value) -> WorkspaceMember:
        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            invited_by_id=workspace.owner_id,
            role=role,
            permissions=permissions_for_role(role),
            status=MembershipStatus.ACTIVE.value,
            joined_at=utcnow(),
        )
        self.session.add(membership)
        self.session.commit()
        self.session.refresh(membership)
        return membership

    def project(self, workspace, owner: User, name: str = "Apollo"):
        return unwrap(project_service.create_project(self.session, owner.id, workspace.id, name))

    def project_member(self, project, user: User, role: str = ProjectRole.DEVELOPER.value) -> ProjectMember:
        member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
        self.session.add(member)
        self.session.commit()
        return member

    def task(self, project, actor: User, title: str = "Task", **kwargs):
        return unwrap(task_service.create_task(self.session, actor.id, project.id, title, **kwargs))


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


@pytest.fixture
def team(factory):
    """
    A workspace owned by an admin, with a project manager, a team member on
    the project and an outsider who belongs to no workspace.
    """
    admin = factory.user("Ada Admin", "admin@example.com")
    manager = factory.user("Max Manager", "manager@example.com")
    member = factory.user("Tess Member", "member@example.com")
    outsider = factory.user("Otto Outsider", "outsider@example.com")

    workspace = factory.workspace(admin, plan="pro")
    factory.member(workspace, manager, WorkspaceRole.PROJECT_MANAGER.value)
    factory.member(workspace, member, WorkspaceRole.TEAM_MEMBER.value)

    project = factory.project(workspace, admin)
    factory.project_member(project, member)

    class Team:
        pass

    t = Team()
    t.admin, t.manager, t.member, t.outsider = admin, manager, member, outsider
    t.workspace, t.project = workspace, project
    return t


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 10, 0, 0)


# ============================================================
# API client
# ============================================================
@pytest.fixture
def client(session):
    from main import app

    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def build(user: User) -> dict:
        return {"Authorization": f"Bearer {create_token_for_user(user)}"}

    return build
