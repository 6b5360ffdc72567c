from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from washboard.api.deps import require_staff
from washboard.api.pagination import LimitParam, LinkStatusParam
from washboard.core.config import settings
from washboard.core.errors import InvalidToken, RateLimited
from washboard.core.metrics import MAGIC_LINKS_ISSUED
from washboard.core.rate_limiter import rate_limiter
from washboard.core.security import Identity
from washboard.db.session import get_db
from washboard.schemas.magic_link import (
    MagicLinkCreateRequest,
    MagicLinkListResponse,
    MagicLinkResponse,
    MagicLinkSummaryResponse,
    MagicLinkValidateRequest,
    MagicLinkValidationLink,
    MagicLinkValidationResponse,
)
from washboard.services.magic_link_service import (
    build_booking_url,
    issue_magic_link,
    link_state,
    list_magic_links,
    validate_magic_link,
)
from washboard.services.token_generator import is_well_formed_token

router = APIRouter(prefix="/magic-links", tags=["magic-links"])


def _public_base_url(request: Request) -> str:
    return settings.public_base_url or str(request.base_url)


@router.post("", response_model=MagicLinkResponse, status_code=status.HTTP_201_CREATED)
def create_magic_link(
    payload: MagicLinkCreateRequest,
    request: Request,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> MagicLinkResponse:
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = rate_limiter.allow(
        key=f"magic_link:{identity.user_id}:{client_ip}",
        limit=settings.magic_link_issue_max_attempts,
        window_seconds=settings.magic_link_issue_window_seconds,
    )
    if not allowed:
        raise RateLimited(headers={"Retry-After": str(retry_after)})

    link = issue_magic_link(
        db=db,
        identity=identity,
        branch_code=payload.branch_code or identity.branch_code,
        customer_name=payload.customer_name,
        customer_messenger=payload.customer_messenger,
    )
    MAGIC_LINKS_ISSUED.labels(branch_code=link.branch_code).inc()
    return MagicLinkResponse(
        id=link.id,
        branch_code=link.branch_code,
        token=link.token,
        url=build_booking_url(_public_base_url(request), link),
        expires_at=link.expires_at,
    )


@router.post("/validate", response_model=MagicLinkValidationResponse, status_code=status.HTTP_200_OK)
def validate(payload: MagicLinkValidateRequest, db: Session = Depends(get_db)) -> MagicLinkValidationResponse:
    if not is_well_formed_token(payload.token):
        raise InvalidToken()

    result = validate_magic_link(db=db, token=payload.token)
    if not result.valid or result.link is None:
        return MagicLinkValidationResponse(valid=False, code=result.reason)
    return MagicLinkValidationResponse(
        valid=True,
        link=MagicLinkValidationLink(
            id=result.link.id,
            branch_code=result.link.branch_code,
            customer_name=result.link.customer_name,
            customer_messenger=result.link.customer_messenger,
        ),
    )


@router.get("", response_model=MagicLinkListResponse, status_code=status.HTTP_200_OK)
def list_links(
    request: Request,
    status_filter: LinkStatusParam = "active",
    limit: LimitParam = 50,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> MagicLinkListResponse:
    base_url = _public_base_url(request)
    rows = list_magic_links(db=db, branch_code=identity.branch_code, status_filter=status_filter, limit=limit)
    items = [
        MagicLinkSummaryResponse(
            id=link.id,
            branch_code=link.branch_code,
            token=link.token,
            customer_name=link.customer_name,
            customer_messenger=link.customer_messenger,
            expires_at=link.expires_at,
            used_at=link.used_at,
            booking_id=link.booking_id,
            booking_plate=plate,
            created_at=link.created_at,
            status=link_state(link).value,
            booking_url=build_booking_url(base_url, link),
        )
        for link, plate in rows
    ]
    return MagicLinkListResponse(magic_links=items, count=len(items))
