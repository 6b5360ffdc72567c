import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from washboard.core.errors import (
    BookingNotFound,
    Forbidden,
    InvalidBookingId,
    InvalidBranch,
    InvalidPosition,
    InvalidStatus,
    InvalidToken,
    MissingFields,
    ShopClosed,
)
from washboard.core.metrics import BOOKINGS_SUBMITTED
from washboard.core.security import Identity
from washboard.db.models import ACTIVE_STATUSES, Booking, BookingStatus, Branch
from washboard.db.transactions import unit_of_work
from washboard.services.magic_link_service import (
    consume_magic_link,
    lock_magic_link,
    normalize_branch_code,
    validate_magic_link,
)
from washboard.services.queue_service import (
    load_booking_for_update,
    lock_branch_queue,
    move_booking,
    next_position,
    transition_booking,
)
from washboard.services.shop_status_service import is_shop_open
from washboard.services.token_generator import is_well_formed_token

logger = logging.getLogger("washboard.bookings")

BOOKING_STATUSES = tuple(item.value for item in BookingStatus)
_BOOKING_ID_RE = re.compile(r"^[1-9][0-9]{0,17}$")


@dataclass
class BookingSubmission:
    plate: str | None
    vehicle_make: str | None
    vehicle_model: str | None
    customer_name: str | None = None
    customer_messenger: str | None = None
    preferred_time: datetime | None = None
    notes: str | None = None


@dataclass
class QueuePage:
    bookings: list[Booking]
    total: int
    limit: int
    offset: int
    queue_revision: int
    avg_service_minutes: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def parse_booking_id(raw_id: Any) -> int:
    if isinstance(raw_id, bool):
        raise InvalidBookingId()
    if isinstance(raw_id, int):
        if raw_id <= 0:
            raise InvalidBookingId()
        return raw_id
    text = str(raw_id).strip() if raw_id is not None else ""
    if not _BOOKING_ID_RE.match(text):
        raise InvalidBookingId()
    return int(text)


def estimate_wait_minutes(position: int, avg_service_minutes: int) -> int:
    return max(position - 1, 0) * avg_service_minutes


def submit_booking(
    db: Session,
    token: str | None,
    submission: BookingSubmission,
    now: datetime | None = None,
) -> Booking:
    if not is_well_formed_token(token):
        raise InvalidToken()

    link = validate_magic_link(db, token, now=now).raise_if_invalid()
    branch_code = link.branch_code

    is_open, closure_reason = is_shop_open(db, branch_code)
    if not is_open:
        message = f"The shop is currently closed: {closure_reason}" if closure_reason else None
        raise ShopClosed(message)

    plate = _clean(submission.plate)
    vehicle_make = _clean(submission.vehicle_make)
    vehicle_model = _clean(submission.vehicle_model)
    if not (plate and vehicle_make and vehicle_model):
        raise MissingFields()

    with unit_of_work(db):
        lock_branch_queue(db, branch_code)
        link = lock_magic_link(db, token, now=now).raise_if_invalid()
        position = next_position(db, branch_code)
        booking = Booking(
            branch_code=branch_code,
            magic_link_id=link.id,
            plate=plate,
            vehicle_make=vehicle_make,
            vehicle_model=vehicle_model,
            customer_name=_clean(submission.customer_name) or link.customer_name,
            customer_messenger=_clean(submission.customer_messenger) or link.customer_messenger,
            preferred_time=submission.preferred_time,
            notes=_clean(submission.notes),
            status=BookingStatus.QUEUED.value,
            position=position,
        )
        db.add(booking)
        db.flush()
        consume_magic_link(db, token, booking.id, now=now)

    db.refresh(booking)
    BOOKINGS_SUBMITTED.labels(branch_code=branch_code).inc()
    logger.info(
        "booking_submitted booking_id=%s branch=%s position=%s",
        booking.id,
        branch_code,
        booking.position,
    )
    return booking


def query_booking_status(db: Session, raw_id: Any) -> dict[str, Any]:
    booking_id = parse_booking_id(raw_id)
    row = db.execute(
        select(Booking, Branch.avg_service_minutes)
        .join(Branch, Booking.branch_code == Branch.code)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    ).first()
    if row is None:
        raise BookingNotFound()

    booking, avg_service_minutes = row
    if booking.status == BookingStatus.QUEUED.value:
        return {
            "status": booking.status,
            "position": booking.position,
            "in_service": False,
            "estimated_wait_minutes": estimate_wait_minutes(booking.position, avg_service_minutes),
            "queued_at": booking.created_at,
        }
    if booking.status == BookingStatus.IN_SERVICE.value:
        return {
            "status": booking.status,
            "position": None,
            "in_service": True,
            "estimated_wait_minutes": 0,
        }
    if booking.status == BookingStatus.DONE.value:
        return {"status": booking.status, "position": None, "in_service": False, "completed": True}
    return {"status": booking.status, "position": None, "in_service": False, "cancelled": True}


def _get_branch_booking(db: Session, identity: Identity, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFound()
    if booking.branch_code != identity.branch_code:
        raise Forbidden()
    return booking


def get_booking(db: Session, identity: Identity, raw_id: Any) -> Booking:
    return _get_branch_booking(db, identity, parse_booking_id(raw_id))


def _change_status(
    db: Session,
    identity: Identity,
    booking_id: int,
    new_status: str,
    reason: str | None,
) -> Booking:
    with unit_of_work(db):
        booking = _get_branch_booking(db, identity, booking_id)
        lock_branch_queue(db, booking.branch_code)
        booking = load_booking_for_update(db, booking_id)
        transition_booking(db, booking, new_status, actor_id=identity.user_id, reason=reason)
    db.refresh(booking)
    return booking


def update_booking_status(
    db: Session,
    identity: Identity,
    raw_id: Any,
    new_status: str,
    reason: str | None = None,
) -> Booking:
    booking_id = parse_booking_id(raw_id)
    if new_status not in BOOKING_STATUSES:
        raise InvalidStatus()
    return _change_status(db, identity, booking_id, new_status, reason)


def cancel_booking(db: Session, identity: Identity, raw_id: Any, reason: str | None) -> Booking:
    booking_id = parse_booking_id(raw_id)
    return _change_status(db, identity, booking_id, BookingStatus.CANCELLED.value, reason)


def reorder_booking(db: Session, identity: Identity, raw_id: Any, new_position: Any) -> Booking:
    booking_id = parse_booking_id(raw_id)
    if isinstance(new_position, bool) or not isinstance(new_position, int) or new_position < 1:
        raise InvalidPosition("Position must be a positive integer")

    with unit_of_work(db):
        booking = _get_branch_booking(db, identity, booking_id)
        lock_branch_queue(db, booking.branch_code)
        booking = load_booking_for_update(db, booking_id)
        move_booking(db, booking, new_position)
    db.refresh(booking)
    return booking


def list_queue(
    db: Session,
    identity: Identity,
    branch_code: str | None = None,
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> QueuePage:
    code = normalize_branch_code(branch_code) or identity.branch_code
    if code != identity.branch_code:
        raise Forbidden("Access denied to other branches")
    if status_filter and status_filter not in BOOKING_STATUSES:
        raise InvalidStatus("Invalid status parameter")

    branch = db.get(Branch, code, populate_existing=True)
    if branch is None:
        raise InvalidBranch()

    criteria = [Booking.branch_code == code]
    if status_filter:
        criteria.append(Booking.status == status_filter)

    is_active = Booking.status.in_(ACTIVE_STATUSES)
    query = (
        select(Booking)
        .where(*criteria)
        .order_by(
            case((is_active, 0), else_=1),
            case((is_active, Booking.position), else_=0),
            case((is_active, None), else_=Booking.created_at).desc(),
            case((is_active, Booking.id), else_=-Booking.id),
        )
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    bookings = list(db.scalars(query).all())
    total = db.scalar(select(func.count()).select_from(Booking).where(*criteria)) or 0
    return QueuePage(
        bookings=bookings,
        total=total,
        limit=limit,
        offset=offset,
        queue_revision=branch.queue_revision,
        avg_service_minutes=branch.avg_service_minutes,
    )
