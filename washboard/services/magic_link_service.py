import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from washboard.core.config import settings
from washboard.core.errors import (
    Forbidden,
    InvalidBranch,
    LinkAlreadyUsed,
    LinkError,
    LinkExpired,
    LinkNotFound,
    MissingFields,
)
from washboard.core.security import Identity
from washboard.db.models import Booking, Branch, MagicLink, MagicLinkState
from washboard.services.token_generator import generate_secure_token

logger = logging.getLogger("washboard.magic_links")

MAX_ISSUE_ATTEMPTS = 3

NOT_FOUND = "NOT_FOUND"
EXPIRED = "EXPIRED"
ALREADY_USED = "ALREADY_USED"

_REASON_ERRORS: dict[str, type[LinkError]] = {
    NOT_FOUND: LinkNotFound,
    EXPIRED: LinkExpired,
    ALREADY_USED: LinkAlreadyUsed,
}

LINK_STATUS_FILTERS = ("active", "expired", "used", "all")


@dataclass(frozen=True)
class LinkValidation:
    valid: bool
    reason: str | None = None
    link: MagicLink | None = None

    def raise_if_invalid(self) -> MagicLink:
        if not self.valid or self.link is None:
            raise _REASON_ERRORS.get(self.reason or NOT_FOUND, LinkNotFound)()
        return self.link


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_branch_code(branch_code: str | None) -> str:
    return (branch_code or "").strip().upper()


def link_state(link: MagicLink, now: datetime | None = None) -> MagicLinkState:
    current_time = now or datetime.now(UTC)
    if link.used_at is not None:
        return MagicLinkState.USED
    if as_utc(link.expires_at) <= current_time:
        return MagicLinkState.EXPIRED
    return MagicLinkState.ACTIVE


def _evaluate(link: MagicLink | None, now: datetime) -> LinkValidation:
    # existence, then used, then expired
    if link is None:
        return LinkValidation(valid=False, reason=NOT_FOUND)
    state = link_state(link, now)
    if state is MagicLinkState.USED:
        return LinkValidation(valid=False, reason=ALREADY_USED)
    if state is MagicLinkState.EXPIRED:
        return LinkValidation(valid=False, reason=EXPIRED)
    return LinkValidation(valid=True, link=link)


def build_booking_url(base_url: str, link: MagicLink) -> str:
    return f"{base_url.rstrip('/')}/book/{link.branch_code}/{link.token}"


def issue_magic_link(
    db: Session,
    identity: Identity,
    branch_code: str,
    customer_name: str | None = None,
    customer_messenger: str | None = None,
    now: datetime | None = None,
) -> MagicLink:
    code = normalize_branch_code(branch_code)
    if not code:
        raise MissingFields("Missing required field: branch_code")
    if code != identity.branch_code:
        raise Forbidden("Cannot issue links for a different branch")
    if db.get(Branch, code) is None:
        raise InvalidBranch()

    issued_at = now or datetime.now(UTC)
    expires_at = issued_at + timedelta(hours=settings.magic_link_ttl_hours)
    for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
        link = MagicLink(
            branch_code=code,
            token=generate_secure_token(),
            customer_name=(customer_name or "").strip() or None,
            customer_messenger=(customer_messenger or "").strip() or None,
            expires_at=expires_at,
            created_by=identity.user_id,
        )
        db.add(link)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt == MAX_ISSUE_ATTEMPTS:
                raise
            logger.warning("magic_link_insert_conflict branch=%s attempt=%s", code, attempt)
            continue
        db.refresh(link)
        logger.info("magic_link_issued branch=%s link_id=%s created_by=%s", code, link.id, identity.user_id)
        return link

    raise RuntimeError("unreachable")


def validate_magic_link(db: Session, token: str, now: datetime | None = None) -> LinkValidation:
    """Read-only check of a token.

    Never raises: a storage failure is reported as ``NOT_FOUND`` so that a
    broken database can never be mistaken for a valid link.
    """
    current_time = now or datetime.now(UTC)
    try:
        link = db.scalar(select(MagicLink).where(MagicLink.token == token))
    except Exception:
        db.rollback()
        logger.exception("magic_link_validation_failed")
        return LinkValidation(valid=False, reason=NOT_FOUND)
    return _evaluate(link, current_time)


def lock_magic_link(db: Session, token: str, now: datetime | None = None) -> LinkValidation:
    """Re-validate a token inside the caller's transaction, holding its row lock."""
    current_time = now or datetime.now(UTC)
    link = db.scalar(
        select(MagicLink)
        .where(MagicLink.token == token)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return _evaluate(link, current_time)


def consume_magic_link(db: Session, token: str, booking_id: int, now: datetime | None = None) -> None:
    """Mark a link used inside the caller's unit of work.

    Only an unused link is updated, so a second consumer can never re-point
    ``booking_id``; it gets ``LinkAlreadyUsed`` and must roll back.
    """
    used_at = now or datetime.now(UTC)
    result = db.execute(
        update(MagicLink)
        .where(MagicLink.token == token, MagicLink.used_at.is_(None))
        .values(used_at=used_at, booking_id=booking_id)
    )
    if result.rowcount != 1:
        raise LinkAlreadyUsed()


def list_magic_links(
    db: Session,
    branch_code: str,
    status_filter: str = "active",
    limit: int = 50,
    now: datetime | None = None,
) -> list[tuple[MagicLink, str | None]]:
    current_time = now or datetime.now(UTC)
    query = (
        select(MagicLink, Booking.plate)
        .outerjoin(Booking, Booking.id == MagicLink.booking_id)
        .where(MagicLink.branch_code == branch_code)
    )
    if status_filter == MagicLinkState.ACTIVE.value:
        query = query.where(MagicLink.used_at.is_(None), MagicLink.expires_at > current_time)
    elif status_filter == MagicLinkState.EXPIRED.value:
        query = query.where(MagicLink.used_at.is_(None), MagicLink.expires_at <= current_time)
    elif status_filter == MagicLinkState.USED.value:
        query = query.where(MagicLink.used_at.is_not(None))

    rows = db.execute(query.order_by(MagicLink.created_at.desc(), MagicLink.id.desc()).limit(limit)).all()
    return [(link, plate) for link, plate in rows]
