from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from washboard.api.deps import require_staff
from washboard.core.errors import InvalidBranch, MissingFields
from washboard.core.security import Identity
from washboard.db.models import Branch
from washboard.db.session import get_db
from washboard.schemas.shop_status import ShopStatusResponse, ShopStatusUpdateRequest
from washboard.services.magic_link_service import normalize_branch_code
from washboard.services.shop_status_service import get_shop_status, set_shop_status

router = APIRouter(prefix="/shop-status", tags=["shop-status"])


@router.get("", response_model=ShopStatusResponse, status_code=status.HTTP_200_OK)
def read_shop_status(branch_code: str | None = None, db: Session = Depends(get_db)) -> ShopStatusResponse:
    code = normalize_branch_code(branch_code)
    if not code:
        raise MissingFields("Missing required field: branch_code")
    if db.get(Branch, code) is None:
        raise InvalidBranch()

    shop_status = get_shop_status(db, code)
    if shop_status is None:
        return ShopStatusResponse(branch_code=code, is_open=True, reason=None, updated_at=None)
    return ShopStatusResponse(
        branch_code=code,
        is_open=shop_status.is_open,
        reason=shop_status.reason,
        updated_at=shop_status.updated_at,
    )


@router.post("", response_model=ShopStatusResponse, status_code=status.HTTP_200_OK)
def update_shop_status(
    payload: ShopStatusUpdateRequest,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> ShopStatusResponse:
    shop_status = set_shop_status(db=db, identity=identity, is_open=payload.is_open, reason=payload.reason)
    return ShopStatusResponse(
        branch_code=shop_status.branch_code,
        is_open=shop_status.is_open,
        reason=shop_status.reason,
        updated_at=shop_status.updated_at,
    )
