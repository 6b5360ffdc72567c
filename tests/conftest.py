import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
sys.path.append(str(Path(__file__).resolve().parents[1]))

from washboard.core.rate_limiter import rate_limiter
from washboard.core.security import Identity, create_access_token, get_password_hash
from washboard.db.base import Base
from washboard.db.models import Branch, MagicLink, User, UserRole  # noqa: F401
from washboard.db.session import get_db
from washboard.main import app
from washboard.services.token_generator import generate_secure_token

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
TEST_PASSWORD = "StrongPass123"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture()
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def seed_branch(db: Session, code: str = "MAIN", avg_service_minutes: int = 20) -> Branch:
    branch = Branch(code=code, name=f"{code.title()} Branch", avg_service_minutes=avg_service_minutes)
    db.add(branch)
    db.commit()
    return branch


def seed_user(
    db: Session,
    branch_code: str = "MAIN",
    username: str = "front-desk",
    role: UserRole = UserRole.RECEPTIONIST,
) -> User:
    user = User(
        branch_code=branch_code,
        username=username,
        hashed_password=get_password_hash(TEST_PASSWORD),
        name="Front Desk",
        role=role.value,
    )
    db.add(user)
    db.commit()
    return user


def identity_for(user: User) -> Identity:
    return Identity(user_id=user.id, branch_code=user.branch_code, role=user.role)


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity_for(user))}"}


def seed_link(
    db: Session,
    user: User,
    expires_in: timedelta = timedelta(hours=24),
    used: bool = False,
    customer_name: str | None = None,
) -> MagicLink:
    now = datetime.now(UTC)
    link = MagicLink(
        branch_code=user.branch_code,
        token=generate_secure_token(),
        customer_name=customer_name,
        expires_at=now + expires_in,
        used_at=now if used else None,
        created_by=user.id,
    )
    db.add(link)
    db.commit()
    return link


@pytest.fixture()
def branch(db_session) -> Branch:
    return seed_branch(db_session)


@pytest.fixture()
def receptionist(db_session, branch) -> User:
    return seed_user(db_session, branch_code=branch.code)


@pytest.fixture()
def identity(receptionist) -> Identity:
    return identity_for(receptionist)


@pytest.fixture()
def auth_headers(receptionist) -> dict[str, str]:
    return auth_headers_for(receptionist)
