from datetime import datetime

from pydantic import BaseModel, Field


class MagicLinkCreateRequest(BaseModel):
    branch_code: str | None = None
    customer_name: str | None = Field(default=None, max_length=100)
    customer_messenger: str | None = Field(default=None, max_length=255)


class MagicLinkValidateRequest(BaseModel):
    token: str | None = None


class MagicLinkResponse(BaseModel):
    id: int
    branch_code: str
    token: str
    url: str
    expires_at: datetime


class MagicLinkValidationLink(BaseModel):
    id: int
    branch_code: str
    customer_name: str | None
    customer_messenger: str | None


class MagicLinkValidationResponse(BaseModel):
    success: bool = True
    valid: bool
    code: str | None = None
    link: MagicLinkValidationLink | None = None


class MagicLinkSummaryResponse(BaseModel):
    id: int
    branch_code: str
    token: str
    customer_name: str | None
    customer_messenger: str | None
    expires_at: datetime
    used_at: datetime | None
    booking_id: int | None
    booking_plate: str | None
    created_at: datetime
    status: str
    booking_url: str


class MagicLinkListResponse(BaseModel):
    magic_links: list[MagicLinkSummaryResponse]
    count: int
