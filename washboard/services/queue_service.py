"""Queue position engine.

Positions are derived from the booking rows themselves; nothing here keeps a
separate counter. Every function expects to run inside the caller's unit of
work after ``lock_branch_queue`` and only flushes.

Position rules per branch:

* queued bookings hold positions >= 1, unique and in FIFO order;
* the in-service booking (at most one) holds position 0 but still occupies a
  slot when a new booking is numbered, so while it is in service the queued
  positions cover ``1..N+1`` minus that slot;
* done/cancelled bookings keep their last position for history.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from washboard.core.errors import InvalidBranch, InvalidPosition, InvalidTransition, MissingCancelReason
from washboard.db.models import ACTIVE_STATUSES, Booking, BookingStatus, Branch
from washboard.db.transactions import apply_lock_timeout

logger = logging.getLogger("washboard.queue")

IN_SERVICE_POSITION = 0

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.QUEUED.value: frozenset(
        {BookingStatus.IN_SERVICE.value, BookingStatus.DONE.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.IN_SERVICE.value: frozenset({BookingStatus.DONE.value, BookingStatus.CANCELLED.value}),
}


def lock_branch_queue(db: Session, branch_code: str) -> Branch:
    """Serialize queue mutations for one branch until the transaction ends.

    The revision bump is an UPDATE, so it takes the branch row lock on
    PostgreSQL and the database write lock on SQLite. The active booking rows
    are then locked in their own statement; counting happens separately
    because row locks cannot be combined with aggregates.
    """
    apply_lock_timeout(db)
    result = db.execute(
        update(Branch)
        .where(Branch.code == branch_code)
        .values(queue_revision=Branch.queue_revision + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidBranch()

    db.scalars(
        select(Booking.id)
        .where(Booking.branch_code == branch_code, Booking.status.in_(ACTIVE_STATUSES))
        .with_for_update()
    ).all()
    return db.get(Branch, branch_code, populate_existing=True)


def count_active_bookings(db: Session, branch_code: str) -> int:
    return db.scalar(
        select(func.count())
        .select_from(Booking)
        .where(Booking.branch_code == branch_code, Booking.status.in_(ACTIVE_STATUSES))
    ) or 0


def next_position(db: Session, branch_code: str) -> int:
    return count_active_bookings(db, branch_code) + 1


def load_booking_for_update(db: Session, booking_id: int) -> Booking | None:
    return db.scalar(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _shift_queued(
    db: Session,
    branch_code: str,
    delta: int,
    lower: int,
    upper: int | None = None,
    exclude_id: int | None = None,
) -> None:
    criteria = [
        Booking.branch_code == branch_code,
        Booking.status == BookingStatus.QUEUED.value,
        Booking.position >= lower,
    ]
    if upper is not None:
        criteria.append(Booking.position <= upper)
    if exclude_id is not None:
        criteria.append(Booking.id != exclude_id)

    db.execute(
        update(Booking)
        .where(*criteria)
        .values(position=Booking.position + delta)
        .execution_options(synchronize_session="fetch")
    )


def close_gap(db: Session, branch_code: str, vacated_position: int) -> None:
    _shift_queued(db, branch_code, delta=-1, lower=vacated_position + 1)


def compact_queue(db: Session, branch_code: str) -> None:
    queued = db.scalars(
        select(Booking)
        .where(Booking.branch_code == branch_code, Booking.status == BookingStatus.QUEUED.value)
        .order_by(Booking.position, Booking.created_at, Booking.id)
    ).all()
    for rank, booking in enumerate(queued, start=1):
        if booking.position != rank:
            booking.position = rank
    db.flush()


def move_booking(db: Session, booking: Booking, new_position: int) -> None:
    """Move a queued booking to ``new_position``, shifting the ones in between.

    P < Q: queued positions in (P, Q] move down by one.
    P > Q: queued positions in [Q, P) move up by one.
    """
    if booking.status != BookingStatus.QUEUED.value:
        raise InvalidTransition("Only queued bookings can be reordered")

    upper_bound = count_active_bookings(db, booking.branch_code)
    if new_position < 1 or new_position > upper_bound:
        raise InvalidPosition(f"Position must be between 1 and {upper_bound}")

    old_position = booking.position
    if new_position == old_position:
        return

    if old_position < new_position:
        _shift_queued(
            db,
            booking.branch_code,
            delta=-1,
            lower=old_position + 1,
            upper=new_position,
            exclude_id=booking.id,
        )
    else:
        _shift_queued(
            db,
            booking.branch_code,
            delta=1,
            lower=new_position,
            upper=old_position - 1,
            exclude_id=booking.id,
        )
    booking.position = new_position
    db.flush()
    logger.info(
        "booking_moved booking_id=%s branch=%s from=%s to=%s",
        booking.id,
        booking.branch_code,
        old_position,
        new_position,
    )


def transition_booking(
    db: Session,
    booking: Booking,
    new_status: str,
    actor_id: int | None,
    reason: str | None = None,
) -> None:
    previous_status = booking.status
    previous_position = booking.position
    if new_status not in ALLOWED_TRANSITIONS.get(previous_status, frozenset()):
        raise InvalidTransition(f"Cannot change status from {previous_status} to {new_status}")

    if new_status == BookingStatus.IN_SERVICE.value:
        busy = db.scalar(
            select(Booking.id).where(
                Booking.branch_code == booking.branch_code,
                Booking.status == BookingStatus.IN_SERVICE.value,
                Booking.id != booking.id,
            )
        )
        if busy is not None:
            raise InvalidTransition("Another vehicle is already in service")
        booking.status = BookingStatus.IN_SERVICE.value
        booking.position = IN_SERVICE_POSITION
        db.flush()
        logger.info("booking_in_service booking_id=%s branch=%s", booking.id, booking.branch_code)
        return

    if new_status == BookingStatus.CANCELLED.value:
        cleaned_reason = (reason or "").strip()
        if not cleaned_reason:
            raise MissingCancelReason()
        booking.cancel(reason=cleaned_reason, cancelled_by=actor_id)
    else:
        booking.status = new_status
    db.flush()

    if previous_status == BookingStatus.QUEUED.value:
        close_gap(db, booking.branch_code, previous_position)
    else:
        # the slot held by the in-service vehicle is released
        compact_queue(db, booking.branch_code)

    logger.info(
        "booking_status_changed booking_id=%s branch=%s from=%s to=%s",
        booking.id,
        booking.branch_code,
        previous_status,
        new_status,
    )
