from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from washboard.core.config import settings
from washboard.core.errors import RateLimited
from washboard.core.rate_limiter import rate_limiter
from washboard.db.session import get_db
from washboard.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from washboard.schemas.user import UserResponse
from washboard.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limit_or_raise(endpoint: str, request: Request) -> None:
    client_ip = request.client.host if request.client else "unknown"
    key = f"{endpoint}:{client_ip}"
    if endpoint == "register":
        limit = settings.auth_register_max_attempts
    else:
        limit = settings.auth_login_max_attempts

    allowed, retry_after = rate_limiter.allow(
        key=key,
        limit=limit,
        window_seconds=settings.auth_rate_limit_window_seconds,
    )
    if not allowed:
        raise RateLimited(headers={"Retry-After": str(retry_after)})


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> UserResponse:
    _rate_limit_or_raise(endpoint="register", request=request)
    user = register_user(payload=payload, db=db)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    _rate_limit_or_raise(endpoint="login", request=request)
    return login_user(payload=payload, db=db)
