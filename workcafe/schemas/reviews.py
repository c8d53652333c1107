from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from workcafe.schemas.common import PatchModel

Stars = Annotated[int, Field(ge=1, le=5)]


class ReviewCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: Stars
    comment: str | None = Field(default=None, max_length=2000)
    wifi_rating: Stars | None = None
    power_rating: Stars | None = None
    comfort_rating: Stars | None = None
    noise_rating: Stars | None = None
    coffee_rating: Stars | None = None
    food_rating: Stars | None = None


class ReviewUpdate(PatchModel):
    not_nullable = frozenset({"rating"})

    rating: Stars | None = None
    comment: str | None = Field(default=None, max_length=2000)
    wifi_rating: Stars | None = None
    power_rating: Stars | None = None
    comfort_rating: Stars | None = None
    noise_rating: Stars | None = None
    coffee_rating: Stars | None = None
    food_rating: Stars | None = None


class ReviewResponse(BaseModel):
    id: int
    venue_id: int
    venue_name: str | None = None
    user_id: str
    username: str | None
    profile_image: str | None = None
    rating: int
    comment: str | None
    wifi_rating: int | None
    power_rating: int | None
    comfort_rating: int | None
    noise_rating: int | None
    coffee_rating: int | None
    food_rating: int | None
    created_at: datetime
    updated_at: datetime


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ReviewStatsResponse(BaseModel):
    venue_id: int
    total_reviews: int
    avg_rating: float
    avg_wifi: float | None
    avg_power: float | None
    avg_comfort: float | None
    avg_noise: float | None
    avg_coffee: float | None
    avg_food: float | None
    distribution: dict[int, int] = Field(description="Number of reviews per star value, 1..5")
