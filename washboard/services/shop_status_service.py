import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from washboard.core.errors import InvalidBranch, MissingFields
from washboard.core.security import Identity
from washboard.db.models import Branch, ShopStatus

logger = logging.getLogger("washboard.shop_status")


def get_shop_status(db: Session, branch_code: str) -> ShopStatus | None:
    return db.scalar(
        select(ShopStatus)
        .where(ShopStatus.branch_code == branch_code)
        .execution_options(populate_existing=True)
    )


def is_shop_open(db: Session, branch_code: str) -> tuple[bool, str | None]:
    shop_status = get_shop_status(db, branch_code)
    if shop_status is None:
        return True, None
    return shop_status.is_open, shop_status.reason


def set_shop_status(db: Session, identity: Identity, is_open: bool, reason: str | None = None) -> ShopStatus:
    cleaned_reason = (reason or "").strip() or None
    if not is_open and not cleaned_reason:
        raise MissingFields("Closure reason required when closing shop")
    if db.get(Branch, identity.branch_code) is None:
        raise InvalidBranch()

    shop_status = get_shop_status(db, identity.branch_code)
    if shop_status is None:
        shop_status = ShopStatus(branch_code=identity.branch_code)
        db.add(shop_status)
    shop_status.is_open = is_open
    shop_status.reason = None if is_open else cleaned_reason
    shop_status.updated_by = identity.user_id
    db.commit()
    db.refresh(shop_status)
    logger.info("shop_status_changed branch=%s is_open=%s", identity.branch_code, is_open)
    return shop_status
