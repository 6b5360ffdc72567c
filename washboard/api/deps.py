from typing import Callable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from washboard.core.errors import Forbidden, NotAuthenticated
from washboard.core.security import Identity, decode_access_token
from washboard.db.models.user import User, UserRole
from washboard.db.session import get_db

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_current_identity(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    unauthorized_exc = NotAuthenticated(headers={"WWW-Authenticate": "Bearer"})
    if not token:
        raise unauthorized_exc
    try:
        identity = decode_access_token(token)
    except ValueError:
        raise unauthorized_exc from None

    user = db.get(User, identity.user_id)
    if not user or user.branch_code != identity.branch_code:
        raise unauthorized_exc
    return Identity(user_id=user.id, branch_code=user.branch_code, role=user.role)


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, identity.user_id)
    if user is None:
        raise NotAuthenticated(headers={"WWW-Authenticate": "Bearer"})
    return user


def require_roles(*roles: UserRole | str) -> Callable[[Identity], Identity]:
    allowed_roles = {role.value if isinstance(role, UserRole) else role for role in roles}

    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed_roles:
            raise Forbidden("Not enough permissions")
        return identity

    return checker


require_staff = require_roles(UserRole.RECEPTIONIST, UserRole.ADMIN)
