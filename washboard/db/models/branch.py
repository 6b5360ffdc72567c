from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from washboard.db.base import Base


class Branch(Base):
    __tablename__ = "branches"

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avg_service_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=20, server_default="20")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    # Bumped by every queue mutation; the UPDATE doubles as the per-branch queue lock.
    queue_revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    shop_status = relationship("ShopStatus", back_populates="branch", uselist=False)
    users = relationship("User", back_populates="branch")
