from __future__ import annotations

from datetime import datetime, time
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator

from workcafe.models.enums import NoiseLevel, PowerOutlets, PriceRange, SeatingComfort
from workcafe.schemas.common import PatchModel
from workcafe.schemas.reviews import ReviewResponse

MAX_PHOTOS_PER_REQUEST = 10


class HoursIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 = Monday .. 6 = Sunday")
    open_time: time | None = None
    close_time: time | None = None
    is_closed: bool = False


class HoursOut(HoursIn):
    model_config = ConfigDict(from_attributes=True)


class AmenitiesIn(PatchModel):
    not_nullable = frozenset(
        {
            "has_wifi",
            "power_outlets",
            "noise_level",
            "seating_comfort",
            "time_restrictions",
            "purchase_requirements",
            "price_range",
            "restrooms_available",
            "parking_options",
        }
    )

    has_wifi: bool | None = None
    wifi_speed: int | None = Field(default=None, ge=0, le=10_000)
    wifi_password: str | None = Field(default=None, max_length=120)
    wifi_restrictions: str | None = Field(default=None, max_length=250)
    power_outlets: PowerOutlets | None = None
    noise_level: NoiseLevel | None = None
    seating_comfort: SeatingComfort | None = None
    time_restrictions: str | None = Field(default=None, max_length=120)
    purchase_requirements: str | None = Field(default=None, max_length=120)
    price_range: PriceRange | None = None
    restrooms_available: bool | None = None
    parking_options: str | None = Field(default=None, max_length=120)
    special_features: str | None = Field(default=None, max_length=1000)


class AmenitiesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    has_wifi: bool
    wifi_speed: int | None
    wifi_password: str | None
    wifi_restrictions: str | None
    power_outlets: str
    noise_level: str
    seating_comfort: str
    time_restrictions: str
    purchase_requirements: str
    price_range: str
    restrooms_available: bool
    parking_options: str
    special_features: str | None
    last_updated: datetime


class DietaryIn(PatchModel):
    not_nullable = frozenset({"has_vegan", "has_vegetarian", "has_gluten_free", "has_dairy_free"})

    has_vegan: bool | None = None
    has_vegetarian: bool | None = None
    has_gluten_free: bool | None = None
    has_dairy_free: bool | None = None
    other_options: str | None = Field(default=None, max_length=500)


class DietaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    has_vegan: bool
    has_vegetarian: bool
    has_gluten_free: bool
    has_dairy_free: bool
    other_options: str | None


class PhotoIn(BaseModel):
    url: str = Field(min_length=1, max_length=500)
    caption: str | None = Field(default=None, max_length=300)


class PhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    caption: str | None
    is_primary: bool
    created_at: datetime


def _check_hours(hours: list[HoursIn]) -> list[HoursIn]:
    days = [h.day_of_week for h in hours]
    if len(days) != len(set(days)):
        raise ValueError("Each day_of_week may appear only once")
    return hours


def _clean_categories(names: list[str]) -> list[str]:
    return sorted({n.strip().lower() for n in names if n and n.strip()})


HoursList = Annotated[list[HoursIn], AfterValidator(_check_hours)]
CategoryList = Annotated[list[str], AfterValidator(_clean_categories)]


class VenueCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    address: str = Field(min_length=1, max_length=250)
    city: str = Field(min_length=1, max_length=120)
    state: str | None = Field(default=None, max_length=120)
    country: str = Field(min_length=1, max_length=120)
    zip_code: str | None = Field(default=None, max_length=20)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    phone: str | None = Field(default=None, max_length=40)
    website: str | None = Field(default=None, max_length=300)
    email: EmailStr | None = None
    occupancy_limit: int | None = Field(default=None, ge=0)

    hours: HoursList = Field(default_factory=list)
    amenities: AmenitiesIn = Field(default_factory=AmenitiesIn)
    dietary: DietaryIn = Field(default_factory=DietaryIn)
    photos: list[PhotoIn] = Field(default_factory=list, max_length=MAX_PHOTOS_PER_REQUEST)
    categories: CategoryList = Field(default_factory=list)

    @model_validator(mode="after")
    def _both_coordinates_or_none(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class VenueUpdate(PatchModel):
    not_nullable = frozenset({"name", "address", "city", "country", "hours", "amenities", "dietary", "photos", "categories"})

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    address: str | None = Field(default=None, min_length=1, max_length=250)
    city: str | None = Field(default=None, min_length=1, max_length=120)
    state: str | None = Field(default=None, max_length=120)
    country: str | None = Field(default=None, min_length=1, max_length=120)
    zip_code: str | None = Field(default=None, max_length=20)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    phone: str | None = Field(default=None, max_length=40)
    website: str | None = Field(default=None, max_length=300)
    email: EmailStr | None = None
    occupancy_limit: int | None = Field(default=None, ge=0)

    hours: HoursList | None = None
    amenities: AmenitiesIn | None = None
    dietary: DietaryIn | None = None
    photos: list[PhotoIn] | None = Field(default=None, max_length=MAX_PHOTOS_PER_REQUEST)
    categories: CategoryList | None = None
    update_reason: str | None = Field(default=None, max_length=1000)


class ApproveRequest(BaseModel):
    admin_notes: str | None = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rejection_reason: str = Field(min_length=1, max_length=1000)


class VerificationCreate(BaseModel):
    verified_wifi: bool = False
    verified_power: bool = False
    verified_noise: bool = False
    verified_seating: bool = False
    verified_hours: bool = False
    notes: str | None = Field(default=None, max_length=1000)


class VerificationResponse(VerificationCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    venue_id: int
    user_id: str
    created_at: datetime


class HistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    venue_id: int
    modified_by: str | None
    action: str
    reason: str | None
    modified_at: datetime


class VenueSummary(BaseModel):
    id: int
    name: str
    description: str | None
    address: str
    city: str
    state: str | None
    country: str
    latitude: float | None
    longitude: float | None
    status: str
    avg_rating: float
    reviews_count: int
    primary_photo: str | None
    has_wifi: bool
    wifi_speed: int | None
    power_outlets: str | None
    noise_level: str | None
    price_range: str | None
    categories: list[str]
    created_at: datetime
    distance_km: float | None = None


class VenueDetail(VenueSummary):
    zip_code: str | None
    phone: str | None
    website: str | None
    email: str | None
    occupancy_limit: int | None
    submitted_by: str | None
    rejection_reason: str | None
    is_claimed: bool
    claimed_by: str | None
    claimed_at: datetime | None
    view_count: int
    updated_at: datetime
    hours: list[HoursOut]
    amenities: AmenitiesOut | None
    dietary: DietaryOut | None
    photos: list[PhotoOut]
    top_reviews: list[ReviewResponse] = Field(default_factory=list)
    rating_breakdown: dict[str, float | None] = Field(default_factory=dict)
    active_users: int = 0
    occupancy_percentage: int = 0
    is_favorite: bool | None = None


class VenueListResponse(BaseModel):
    items: list[VenueSummary]
    total: int
    page: int
    limit: int
    total_pages: int


class PendingVenueResponse(VenueSummary):
    submitted_by: str | None
    submitted_by_name: str | None


class PhotoUploadResponse(BaseModel):
    photos: list[PhotoOut]
    failed: list[str]
