from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CheckInCreate(BaseModel):
    occupancy_report: int | None = Field(default=None, ge=0, le=100, description="Reported occupancy, percent")


class OccupancyReportUpdate(BaseModel):
    occupancy_report: int = Field(ge=0, le=100)


class CheckInResponse(BaseModel):
    id: int
    venue_id: int
    venue_name: str | None = None
    venue_image: str | None = None
    user_id: str
    username: str | None = None
    check_in_time: datetime
    check_out_time: datetime | None
    status: str
    occupancy_report: int | None


class CheckInListResponse(BaseModel):
    items: list[CheckInResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class OccupancyBucket(BaseModel):
    day_of_week: int
    hour_of_day: int
    check_in_count: int


class OccupancyResponse(BaseModel):
    venue_id: int
    active_users: int
    occupancy_limit: int | None
    occupancy_percentage: int
    historical_data: list[OccupancyBucket]
