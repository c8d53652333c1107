from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workcafe.db.base import Base

RATING_COLUMNS = ("wifi_rating", "power_rating", "comfort_rating", "noise_rating", "coffee_rating", "food_rating")


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="CASCADE"), nullable=False, index=True)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    wifi_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    power_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comfort_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    noise_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coffee_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    food_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    venue: Mapped["Venue"] = relationship(back_populates="reviews")
    author: Mapped["UserAuth"] = relationship()

    __table_args__ = (
        UniqueConstraint("venue_id", "user_id", name="uq_reviews_venue_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )


Index("ix_reviews_venue_created_at", Review.venue_id, Review.created_at)
