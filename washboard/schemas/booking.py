from datetime import datetime

from pydantic import BaseModel, Field


class BookingSubmitRequest(BaseModel):
    token: str | None = None
    plate: str | None = Field(default=None, max_length=20)
    vehicle_make: str | None = Field(default=None, max_length=50)
    vehicle_model: str | None = Field(default=None, max_length=50)
    customer_name: str | None = Field(default=None, max_length=100)
    customer_messenger: str | None = Field(default=None, max_length=255)
    preferred_time: datetime | None = None
    notes: str | None = Field(default=None, max_length=1000)


class SubmittedBooking(BaseModel):
    id: int
    position: int
    status: str
    branch_code: str

    model_config = {"from_attributes": True}


class BookingSubmitResponse(BaseModel):
    success: bool = True
    booking: SubmittedBooking


class BookingStatusResponse(BaseModel):
    success: bool = True
    status: str
    position: int | None
    in_service: bool
    estimated_wait_minutes: int | None = None
    queued_at: datetime | None = None
    completed: bool | None = None
    cancelled: bool | None = None


class BookingStatusUpdateRequest(BaseModel):
    status: str | None = None
    cancelled_reason: str | None = None


class BookingCancelRequest(BaseModel):
    reason: str | None = None


class BookingReorderRequest(BaseModel):
    position: int | None = None


class BookingResponse(BaseModel):
    id: int
    branch_code: str
    magic_link_id: int | None
    plate: str
    vehicle_make: str
    vehicle_model: str
    customer_name: str | None
    customer_messenger: str | None
    preferred_time: datetime | None
    notes: str | None
    status: str
    position: int
    cancelled_reason: str | None
    cancelled_by: int | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class QueueBookingResponse(BookingResponse):
    estimated_wait_minutes: int | None = None


class PaginationResponse(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class QueueResponse(BaseModel):
    success: bool = True
    bookings: list[QueueBookingResponse]
    pagination: PaginationResponse
    queue_revision: int
