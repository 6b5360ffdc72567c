from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from washboard.db.base import Base


class BookingStatus(str, Enum):
    QUEUED = "queued"
    IN_SERVICE = "in_service"
    DONE = "done"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (BookingStatus.QUEUED.value, BookingStatus.IN_SERVICE.value)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'in_service', 'done', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("position >= 0", name="ck_bookings_position"),
        Index("ix_bookings_branch_status_position", "branch_code", "status", "position"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    branch_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("branches.code", ondelete="CASCADE"), nullable=False
    )
    magic_link_id: Mapped[int | None] = mapped_column(
        ForeignKey("magic_links.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    plate: Mapped[str] = mapped_column(String(20), nullable=False)
    vehicle_make: Mapped[str] = mapped_column(String(50), nullable=False)
    vehicle_model: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_messenger: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preferred_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BookingStatus.QUEUED.value)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    cancelled_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    branch = relationship("Branch")
    magic_link = relationship("MagicLink", foreign_keys=[magic_link_id])

    def cancel(self, reason: str, cancelled_by: int | None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = datetime.now(UTC)
