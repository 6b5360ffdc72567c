from datetime import datetime

from pydantic import BaseModel, Field


class ShopStatusUpdateRequest(BaseModel):
    is_open: bool
    reason: str | None = Field(default=None, max_length=255)


class ShopStatusResponse(BaseModel):
    branch_code: str
    is_open: bool
    reason: str | None
    updated_at: datetime | None
