from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from washboard.api.deps import require_staff
from washboard.api.pagination import BookingStatusParam, LimitParam, OffsetParam
from washboard.core.errors import ServiceError
from washboard.core.metrics import BOOKING_REJECTIONS
from washboard.core.security import Identity
from washboard.db.models import BookingStatus
from washboard.db.session import get_db
from washboard.schemas.booking import (
    BookingCancelRequest,
    BookingReorderRequest,
    BookingResponse,
    BookingStatusResponse,
    BookingStatusUpdateRequest,
    BookingSubmitRequest,
    BookingSubmitResponse,
    PaginationResponse,
    QueueBookingResponse,
    QueueResponse,
    SubmittedBooking,
)
from washboard.services.booking_service import (
    BookingSubmission,
    cancel_booking,
    estimate_wait_minutes,
    get_booking,
    list_queue,
    query_booking_status,
    reorder_booking,
    submit_booking,
    update_booking_status,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/submit", response_model=BookingSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit(payload: BookingSubmitRequest, db: Session = Depends(get_db)) -> BookingSubmitResponse:
    submission = BookingSubmission(
        plate=payload.plate,
        vehicle_make=payload.vehicle_make,
        vehicle_model=payload.vehicle_model,
        customer_name=payload.customer_name,
        customer_messenger=payload.customer_messenger,
        preferred_time=payload.preferred_time,
        notes=payload.notes,
    )
    try:
        booking = submit_booking(db=db, token=payload.token, submission=submission)
    except ServiceError as exc:
        BOOKING_REJECTIONS.labels(code=exc.code).inc()
        raise
    return BookingSubmitResponse(booking=SubmittedBooking.model_validate(booking))


@router.get(
    "/{booking_id}/status",
    response_model=BookingStatusResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
)
def booking_status(booking_id: str, db: Session = Depends(get_db)) -> dict:
    return {"success": True, **query_booking_status(db=db, raw_id=booking_id)}


@router.get("", response_model=QueueResponse, status_code=status.HTTP_200_OK)
def list_bookings(
    branch_code: str | None = None,
    status_filter: BookingStatusParam = None,
    limit: LimitParam = 50,
    offset: OffsetParam = 0,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> QueueResponse:
    page = list_queue(
        db=db,
        identity=identity,
        branch_code=branch_code,
        status_filter=status_filter,
        limit=limit,
        offset=offset,
    )
    items = []
    for booking in page.bookings:
        item = QueueBookingResponse.model_validate(booking)
        if booking.status == BookingStatus.QUEUED.value:
            item.estimated_wait_minutes = estimate_wait_minutes(booking.position, page.avg_service_minutes)
        items.append(item)
    return QueueResponse(
        bookings=items,
        pagination=PaginationResponse(
            total=page.total,
            limit=page.limit,
            offset=page.offset,
            has_more=page.has_more,
        ),
        queue_revision=page.queue_revision,
    )


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def read_booking(
    booking_id: str,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = get_booking(db=db, identity=identity, raw_id=booking_id)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def change_status(
    booking_id: str,
    payload: BookingStatusUpdateRequest,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = update_booking_status(
        db=db,
        identity=identity,
        raw_id=booking_id,
        new_status=payload.status,
        reason=payload.cancelled_reason,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def cancel(
    booking_id: str,
    payload: BookingCancelRequest,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = cancel_booking(db=db, identity=identity, raw_id=booking_id, reason=payload.reason)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}/position", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def reorder(
    booking_id: str,
    payload: BookingReorderRequest,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = reorder_booking(db=db, identity=identity, raw_id=booking_id, new_position=payload.position)
    return BookingResponse.model_validate(booking)
