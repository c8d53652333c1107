from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workcafe.db.base import Base
from workcafe.models.enums import ModerationStatus, NoiseLevel, PowerOutlets, PriceRange, SeatingComfort


venue_categories = Table(
    "venue_categories",
    Base.metadata,
    Column("venue_id", Integer, ForeignKey("venues.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)


class Venue(Base):
    __tablename__ = "venues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(250), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country: Mapped[str] = mapped_column(String(120), nullable=False)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    website: Mapped[str | None] = mapped_column(String(300), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    occupancy_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ModerationStatus.pending.value, index=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users_auth.id", ondelete="SET NULL"), nullable=True, index=True
    )

    is_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="SET NULL"), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)
    reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    hours: Mapped[list["VenueHours"]] = relationship(
        back_populates="venue", cascade="all, delete-orphan", passive_deletes=True, order_by="VenueHours.day_of_week"
    )
    amenities: Mapped["VenueAmenities"] = relationship(
        back_populates="venue", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    dietary: Mapped["DietaryOptions"] = relationship(
        back_populates="venue", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    photos: Mapped[list["VenuePhoto"]] = relationship(
        back_populates="venue", cascade="all, delete-orphan", passive_deletes=True, order_by="VenuePhoto.id"
    )
    categories: Mapped[list[Category]] = relationship(secondary=venue_categories, order_by=Category.name)

    reviews: Mapped[list["Review"]] = relationship(back_populates="venue", cascade="all, delete-orphan", passive_deletes=True)
    submitter: Mapped["UserAuth"] = relationship(foreign_keys=[submitted_by])

    @property
    def primary_photo(self) -> str | None:
        for photo in self.photos:
            if photo.is_primary:
                return photo.url
        return None


Index("ix_venues_status_city", Venue.status, Venue.city)


class VenueHours(Base):
    __tablename__ = "venue_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    # 0 = Monday .. 6 = Sunday, same as date.weekday()
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    venue: Mapped[Venue] = relationship(back_populates="hours")

    __table_args__ = (UniqueConstraint("venue_id", "day_of_week", name="uq_venue_hours_day"),)


class VenueAmenities(Base):
    __tablename__ = "venue_amenities"

    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), primary_key=True)
    has_wifi: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    wifi_speed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    wifi_password: Mapped[str | None] = mapped_column(String(120), nullable=True)
    wifi_restrictions: Mapped[str | None] = mapped_column(String(250), nullable=True)
    power_outlets: Mapped[str] = mapped_column(String(20), nullable=False, default=PowerOutlets.none.value)
    noise_level: Mapped[str] = mapped_column(String(20), nullable=False, default=NoiseLevel.moderate.value)
    seating_comfort: Mapped[str] = mapped_column(String(20), nullable=False, default=SeatingComfort.fair.value)
    time_restrictions: Mapped[str] = mapped_column(String(120), nullable=False, default="None")
    purchase_requirements: Mapped[str] = mapped_column(String(120), nullable=False, default="None")
    price_range: Mapped[str] = mapped_column(String(4), nullable=False, default=PriceRange.moderate.value)
    restrooms_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parking_options: Mapped[str] = mapped_column(String(120), nullable=False, default="None")
    special_features: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="SET NULL"), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    venue: Mapped[Venue] = relationship(back_populates="amenities")


class DietaryOptions(Base):
    __tablename__ = "venue_dietary_options"

    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), primary_key=True)
    has_vegan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_vegetarian: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_gluten_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_dairy_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    other_options: Mapped[str | None] = mapped_column(String(500), nullable=True)

    venue: Mapped[Venue] = relationship(back_populates="dietary")


class VenuePhoto(Base):
    __tablename__ = "venue_photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(300), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uploaded_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    venue: Mapped[Venue] = relationship(back_populates="photos")

    __table_args__ = (
        Index(
            "uq_venue_photos_one_primary",
            "venue_id",
            unique=True,
            sqlite_where=text("is_primary = 1"),
            postgresql_where=text("is_primary"),
        ),
    )


class VenueHistory(Base):
    """Audit trail of venue changes.

    venue_id is deliberately not a foreign key: the `delete` entry must outlive the venue.
    """

    __tablename__ = "venue_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    modified_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="SET NULL"), nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    modified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Verification(Base):
    __tablename__ = "venue_verifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users_auth.id", ondelete="CASCADE"), nullable=False)
    verified_wifi: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_power: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_noise: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_seating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_hours: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
