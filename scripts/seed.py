# scripts/seed.py

import os
import sys
import argparse

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import create_db_and_tables, session_scope
from core.errors import unwrap
from core.security import hash_password
from models.models import Project, User, Workspace, WorkspaceRole
from services import project_service, task_service, workspace_service

# ✅ Load environment variables
load_dotenv()


def get_or_create_user(session: Session, email: str, full_name: str, password: str) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user
    user = User(full_name=full_name, email=email, password_hash=hash_password(password), is_active=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    print(f"✅ Added user {email}")
    return user


def seed_dev_data():
    """Seed development database with a demo workspace, project and tasks."""
    print("🌱 Seeding development data...")
    create_db_and_tables()

    with session_scope() as session:
        admin = get_or_create_user(session, "admin@demo.com", "Admin User", "admin")
        members = [
            get_or_create_user(session, email, email.split("@")[0].capitalize(), "member123")
            for email in ("member1@demo.com", "member2@demo.com")
        ]

        # -----------------------------
        # 🏢 Demo Workspace
        # -----------------------------
        workspace = session.exec(select(Workspace).where(Workspace.name == "Demo Workspace")).first()
        if workspace:
            print("ℹ️ Demo Workspace already exists, skipping.")
            return
        workspace = unwrap(workspace_service.create_workspace(session, admin.id, "Demo Workspace", plan="pro"))
        print("✅ Created Demo Workspace")

        for member in members:
            invite = unwrap(
                workspace_service.create_invite(session, admin.id, workspace.id, WorkspaceRole.TEAM_MEMBER.value)
            )
            unwrap(workspace_service.join_by_invite(session, member.id, invite.invite_token))
        print("✅ Added sample members to the workspace")

        # -----------------------------
        # 📁 Demo Project + Tasks
        # -----------------------------
        project: Project = unwrap(
            project_service.create_project(session, admin.id, workspace.id, "Website Relaunch", "Demo project")
        )
        for member in members:
            unwrap(project_service.add_project_member(session, admin.id, project.id, member.id))

        for title, hours, assignee in (
            ("Design landing page", 8, members[0]),
            ("Build API endpoints", 16, members[1]),
            ("Write release notes", 2, None),
        ):
            unwrap(
                task_service.create_task(
                    session,
                    admin.id,
                    project.id,
                    title,
                    assignee_id=assignee.id if assignee else None,
                    estimated_hours=hours,
                )
            )
        print("✅ Added demo project with tasks")
        print("🌱 Development data seeding complete.")


def seed_staging_data():
    """Seed staging database with minimal safe data."""
    print("🌱 Seeding staging data...")
    create_db_and_tables()

    with session_scope() as session:
        admin = get_or_create_user(session, "staging-admin@workboard.dev", "Staging Admin", "staging123")
        workspace = session.exec(select(Workspace).where(Workspace.owner_id == admin.id)).first()
        if not workspace:
            unwrap(workspace_service.create_workspace(session, admin.id, "Staging Workspace"))
            print("✅ Created Staging Workspace")

        print("🌱 Staging data seeding complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the WorkBoard database.")
    parser.add_argument(
        "--env",
        choices=["dev", "staging"],
        default="dev",
        help="Select environment to seed (dev or staging)",
    )
    args = parser.parse_args()

    if args.env == "dev":
        seed_dev_data()
    elif args.env == "staging":
        seed_staging_data()
