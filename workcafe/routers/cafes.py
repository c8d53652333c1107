from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from workcafe.core.deps import get_current_identity, get_optional_identity, require_admin
from workcafe.core.security import Identity
from workcafe.db.session import get_db
from workcafe.models.enums import AmenityFeature, ModerationStatus, VenueSort
from workcafe.routers.locations import _to_venue_detail, _to_venue_list
from workcafe.routers.reviews import _to_review_list, _to_review_response
from workcafe.routers.users import _to_check_in_response
from workcafe.schemas.checkins import CheckInCreate, CheckInResponse, OccupancyResponse
from workcafe.schemas.common import MessageResponse
from workcafe.schemas.reviews import ReviewCreate, ReviewListResponse, ReviewResponse, ReviewStatsResponse
from workcafe.schemas.venues import VenueCreate, VenueDetail, VenueListResponse, VenueUpdate
from workcafe.services import checkins as checkin_service
from workcafe.services import reviews as review_service
from workcafe.services import venues as venue_service
from workcafe.services.pagination import PageRequest
from workcafe.services.ratings import review_stats

router = APIRouter(prefix="/api/cafes", tags=["cafes"])


@router.get("", response_model=VenueListResponse)
def list_cafes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> VenueListResponse:
    filters = venue_service.VenueFilters(sort=VenueSort.rating.value)
    return _to_venue_list(venue_service.search_venues(db, filters, PageRequest(page=page, limit=limit)))


@router.get("/search", response_model=VenueListResponse)
def search_cafes(
    query: str | None = Query(default=None, max_length=200),
    city: str | None = Query(default=None, max_length=120),
    amenities: list[AmenityFeature] = Query(default=[]),
    categories: list[str] = Query(default=[]),
    min_rating: float | None = Query(default=None, alias="minRating", ge=0, le=5),
    max_noise: int | None = Query(default=None, alias="maxNoise", ge=1, le=5),
    min_wifi: int | None = Query(default=None, alias="minWifi", ge=0),
    open_now: bool = Query(default=False, alias="openNow"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> VenueListResponse:
    filters = venue_service.VenueFilters(
        query=query,
        city=city,
        features=list(amenities),
        categories=categories,
        min_rating=min_rating,
        max_noise=max_noise,
        min_wifi_speed=min_wifi,
        open_now=open_now,
    )
    return _to_venue_list(venue_service.search_venues(db, filters, PageRequest(page=page, limit=limit)))


@router.get("/nearby", response_model=VenueListResponse)
def nearby_cafes(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius: float = Query(default=5, ge=0.1, le=50, description="Radius in km"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> VenueListResponse:
    filters = venue_service.VenueFilters(
        latitude=latitude,
        longitude=longitude,
        radius_km=radius,
        sort=venue_service.SORT_DISTANCE,
    )
    return _to_venue_list(venue_service.search_venues(db, filters, PageRequest(page=page, limit=limit)))


@router.get("/{cafe_id}", response_model=VenueDetail)
def get_cafe(
    cafe_id: int,
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.get_venue_for_display(db, cafe_id, identity)
    return _to_venue_detail(db, venue, identity)


@router.post("", response_model=VenueDetail, status_code=201)
def create_cafe(
    payload: VenueCreate,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.create_venue(db, identity, payload, status=ModerationStatus.approved)
    return _to_venue_detail(db, venue, identity)


@router.put("/{cafe_id}", response_model=VenueDetail)
def update_cafe(
    cafe_id: int,
    payload: VenueUpdate,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.update_venue(db, identity, cafe_id, payload)
    return _to_venue_detail(db, venue, identity)


@router.delete("/{cafe_id}", response_model=MessageResponse)
def delete_cafe(
    cafe_id: int,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    venue_service.delete_venue(db, identity, cafe_id, "Cafe deleted by admin")
    return MessageResponse(message="Cafe deleted successfully")


@router.get("/{cafe_id}/reviews", response_model=ReviewListResponse)
def list_cafe_reviews(
    cafe_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    venue_service.get_visible_venue(db, cafe_id, identity)
    return _to_review_list(review_service.list_venue_reviews(db, cafe_id, PageRequest(page=page, limit=limit)))


@router.post("/{cafe_id}/reviews", response_model=ReviewResponse, status_code=201)
def create_cafe_review(
    cafe_id: int,
    payload: ReviewCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    venue_service.get_visible_venue(db, cafe_id, identity)
    return _to_review_response(review_service.create_review(db, identity, cafe_id, payload))


@router.get("/{cafe_id}/reviews/stats", response_model=ReviewStatsResponse)
def cafe_review_stats(
    cafe_id: int,
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> ReviewStatsResponse:
    venue_service.get_visible_venue(db, cafe_id, identity)
    return ReviewStatsResponse(**review_stats(db, venue_id=cafe_id))


@router.get("/{cafe_id}/check-ins", response_model=list[CheckInResponse])
def cafe_check_ins(
    cafe_id: int,
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> list[CheckInResponse]:
    venue_service.get_visible_venue(db, cafe_id, identity)
    return [_to_check_in_response(c) for c in checkin_service.list_active_for_venue(db, cafe_id)]


@router.post("/{cafe_id}/check-in", response_model=CheckInResponse, status_code=201)
def check_in(
    cafe_id: int,
    payload: CheckInCreate | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> CheckInResponse:
    venue_service.get_visible_venue(db, cafe_id, identity)
    record = checkin_service.check_in(db, identity, cafe_id, payload.occupancy_report if payload else None)
    return _to_check_in_response(record)


@router.get("/{cafe_id}/occupancy", response_model=OccupancyResponse)
def cafe_occupancy(
    cafe_id: int,
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> OccupancyResponse:
    venue = venue_service.get_visible_venue(db, cafe_id, identity)
    return OccupancyResponse(**checkin_service.occupancy(db, venue))
