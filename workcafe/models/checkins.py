from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workcafe.db.base import Base
from workcafe.models.enums import CheckInStatus


class CheckIn(Base):
    __tablename__ = "check_ins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="CASCADE"), nullable=False, index=True)
    check_in_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CheckInStatus.active.value)
    occupancy_report: Mapped[int | None] = mapped_column(Integer, nullable=True)

    venue: Mapped["Venue"] = relationship()
    user: Mapped["UserAuth"] = relationship()

    __table_args__ = (
        CheckConstraint("occupancy_report IS NULL OR (occupancy_report >= 0 AND occupancy_report <= 100)", name="ck_check_ins_occupancy"),
        # At most one open check-in per user.
        Index(
            "uq_check_ins_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("check_out_time IS NULL"),
            postgresql_where=text("check_out_time IS NULL"),
        ),
    )
