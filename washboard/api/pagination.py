from typing import Annotated, Literal

from fastapi import Query

LimitParam = Annotated[int, Query(ge=1, le=100)]
OffsetParam = Annotated[int, Query(ge=0)]
LinkStatusParam = Annotated[Literal["active", "expired", "used", "all"], Query(alias="status")]
BookingStatusParam = Annotated[str | None, Query(alias="status")]
