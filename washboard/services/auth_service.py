from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from washboard.core.errors import InvalidBranch, InvalidCredentials, UsernameTaken
from washboard.core.security import Identity, create_access_token, get_password_hash, verify_password
from washboard.db.models import Branch, User, UserRole
from washboard.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from washboard.services.magic_link_service import normalize_branch_code


def register_user(payload: RegisterRequest, db: Session) -> User:
    branch_code = normalize_branch_code(payload.branch_code)
    branch = db.get(Branch, branch_code)
    if branch is None or not branch.is_active:
        raise InvalidBranch()

    existing_user = db.scalar(
        select(User).where(User.branch_code == branch_code, User.username == payload.username)
    )
    if existing_user:
        raise UsernameTaken()

    user = User(
        branch_code=branch_code,
        username=payload.username,
        hashed_password=get_password_hash(payload.password),
        name=payload.name.strip(),
        email=payload.email.lower() if payload.email else None,
        role=UserRole.RECEPTIONIST.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UsernameTaken() from None
    db.refresh(user)
    return user


def login_user(payload: LoginRequest, db: Session) -> TokenResponse:
    branch_code = normalize_branch_code(payload.branch_code)
    user = db.scalar(
        select(User).where(User.branch_code == branch_code, User.username == payload.username)
    )
    if not user or not verify_password(payload.password, user.hashed_password):
        raise InvalidCredentials()

    identity = Identity(user_id=user.id, branch_code=user.branch_code, role=user.role)
    token = create_access_token(identity, extra_claims={"username": user.username})
    return TokenResponse(access_token=token)
