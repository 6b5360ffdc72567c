"""
Create a branch and its first admin account.
Run after migrations, once per branch.
Usage: python scripts/seed_branch.py MAIN "Main Branch" admin 'S3cret-pass' --name "Shop Admin"
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from washboard.core.config import settings
from washboard.core.security import get_password_hash
from washboard.db.models import Branch, User, UserRole
from washboard.db.session import SessionLocal, engine
from washboard.services.magic_link_service import normalize_branch_code


def seed_branch(
    db: Session,
    code: str,
    name: str,
    username: str,
    password: str,
    admin_name: str,
    avg_service_minutes: int | None = None,
) -> tuple[Branch, User]:
    branch_code = normalize_branch_code(code)
    branch = db.get(Branch, branch_code)
    if branch is None:
        branch = Branch(
            code=branch_code,
            name=name,
            avg_service_minutes=avg_service_minutes or settings.default_avg_service_minutes,
        )
        db.add(branch)
        db.flush()

    user = db.scalar(select(User).where(User.branch_code == branch_code, User.username == username))
    if user is None:
        user = User(
            branch_code=branch_code,
            username=username,
            hashed_password=get_password_hash(password),
            name=admin_name,
            role=UserRole.ADMIN.value,
        )
        db.add(user)
    db.commit()
    db.refresh(branch)
    db.refresh(user)
    return branch, user


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a branch with an admin account")
    parser.add_argument("code")
    parser.add_argument("branch_name")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--avg-service-minutes", type=int, default=None)
    args = parser.parse_args()

    print(f"Database: {engine.url.render_as_string(hide_password=True)}")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        print(f"Cannot connect to database: {exc}")
        print("Run the migrations first: alembic upgrade head")
        sys.exit(1)

    db = SessionLocal()
    try:
        branch, user = seed_branch(
            db,
            code=args.code,
            name=args.branch_name,
            username=args.username,
            password=args.password,
            admin_name=args.name,
            avg_service_minutes=args.avg_service_minutes,
        )
    finally:
        db.close()

    print(f"Branch {branch.code} ready, admin '{user.username}' (id={user.id})")


if __name__ == "__main__":
    main()
