from datetime import datetime

from pydantic import BaseModel

from washboard.db.models.user import UserRole


class UserResponse(BaseModel):
    id: int
    branch_code: str
    username: str
    name: str
    email: str | None
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}
