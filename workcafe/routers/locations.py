from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from workcafe.core.deps import get_current_identity, get_optional_identity, require_admin
from workcafe.core.errors import BadRequestError
from workcafe.core.security import Identity
from workcafe.db.session import get_db
from workcafe.models.enums import ModerationStatus, NoiseLevel, PowerOutlets, VenueSort
from workcafe.models.venues import Venue
from workcafe.routers.reviews import _to_review_list, _to_review_response
from workcafe.schemas.common import MessageResponse
from workcafe.schemas.reviews import ReviewCreate, ReviewListResponse, ReviewResponse
from workcafe.schemas.venues import (
    MAX_PHOTOS_PER_REQUEST,
    AmenitiesOut,
    ApproveRequest,
    DietaryOut,
    HistoryResponse,
    HoursOut,
    PendingVenueResponse,
    PhotoOut,
    PhotoUploadResponse,
    RejectRequest,
    VenueCreate,
    VenueDetail,
    VenueListResponse,
    VenueSummary,
    VenueUpdate,
    VerificationCreate,
    VerificationResponse,
)
from workcafe.services import checkins as checkin_service
from workcafe.services import reviews as review_service
from workcafe.services import users as user_service
from workcafe.services import venues as venue_service
from workcafe.services.pagination import PageRequest, PageResult
from workcafe.services.ratings import rating_breakdown
from workcafe.services.uploads import LocalPhotoStorage, get_photo_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/locations", tags=["locations"])


def _summary_fields(venue: Venue, distance_km: float | None = None) -> dict:
    amenities = venue.amenities
    return dict(
        id=venue.id,
        name=venue.name,
        description=venue.description,
        address=venue.address,
        city=venue.city,
        state=venue.state,
        country=venue.country,
        latitude=venue.latitude,
        longitude=venue.longitude,
        status=venue.status,
        avg_rating=venue.avg_rating,
        reviews_count=venue.reviews_count,
        primary_photo=venue.primary_photo,
        has_wifi=bool(amenities and amenities.has_wifi),
        wifi_speed=amenities.wifi_speed if amenities else None,
        power_outlets=amenities.power_outlets if amenities else None,
        noise_level=amenities.noise_level if amenities else None,
        price_range=amenities.price_range if amenities else None,
        categories=[c.name for c in venue.categories],
        created_at=venue.created_at,
        distance_km=distance_km,
    )


def _to_venue_summary(venue: Venue, distance_km: float | None = None) -> VenueSummary:
    return VenueSummary(**_summary_fields(venue, distance_km))


def _to_venue_list(page: PageResult[venue_service.VenueHit]) -> VenueListResponse:
    return VenueListResponse(
        items=[_to_venue_summary(hit.venue, hit.distance_km) for hit in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


def _to_venue_detail(db: Session, venue: Venue, identity: Identity | None = None) -> VenueDetail:
    active = checkin_service.count_active(db, venue.id)
    return VenueDetail(
        **_summary_fields(venue),
        zip_code=venue.zip_code,
        phone=venue.phone,
        website=venue.website,
        email=venue.email,
        occupancy_limit=venue.occupancy_limit,
        submitted_by=venue.submitted_by,
        rejection_reason=venue.rejection_reason,
        is_claimed=venue.is_claimed,
        claimed_by=venue.claimed_by,
        claimed_at=venue.claimed_at,
        view_count=venue.view_count,
        updated_at=venue.updated_at,
        hours=[HoursOut.model_validate(h) for h in venue.hours],
        amenities=AmenitiesOut.model_validate(venue.amenities) if venue.amenities else None,
        dietary=DietaryOut.model_validate(venue.dietary) if venue.dietary else None,
        photos=[PhotoOut.model_validate(p) for p in venue.photos],
        top_reviews=[_to_review_response(r) for r in review_service.top_reviews(db, venue.id)],
        rating_breakdown=rating_breakdown(db, venue_id=venue.id),
        active_users=active,
        occupancy_percentage=checkin_service.occupancy_percentage(active, venue.occupancy_limit),
        is_favorite=user_service.is_favorite(db, identity.id, venue.id) if identity else None,
    )


@router.get("", response_model=VenueListResponse)
def list_locations(
    db: Session = Depends(get_db),
    city: str | None = Query(default=None, max_length=120),
    wifi: bool | None = Query(default=None),
    power: PowerOutlets | None = Query(default=None),
    noise: NoiseLevel | None = Query(default=None),
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    distance: float | None = Query(default=None, gt=0, le=20000, description="Radius in km"),
    sort: VenueSort = Query(default=VenueSort.rating),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> VenueListResponse:
    filters = venue_service.VenueFilters(
        city=city,
        city_exact=True,
        has_wifi=wifi,
        power_outlets=power.value if power else None,
        noise_level=noise.value if noise else None,
        latitude=lat,
        longitude=lng,
        radius_km=distance,
        sort=sort.value,
    )
    result = venue_service.search_venues(db, filters, PageRequest(page=page, limit=limit))
    return _to_venue_list(result)


@router.get("/admin/pending", response_model=list[PendingVenueResponse])
def pending_locations(
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[PendingVenueResponse]:
    out = []
    for venue in venue_service.list_pending(db):
        submitter = venue.submitter
        name = None
        if submitter is not None:
            name = (submitter.profile.display_name if submitter.profile else None) or submitter.username
        out.append(PendingVenueResponse(**_summary_fields(venue), submitted_by=venue.submitted_by, submitted_by_name=name))
    return out


@router.put("/admin/{location_id}/approve", response_model=MessageResponse)
def approve_location(
    location_id: int,
    payload: ApproveRequest | None = None,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    venue_service.approve_venue(db, identity, location_id, payload.admin_notes if payload else None)
    return MessageResponse(message="Location approved successfully")


@router.put("/admin/{location_id}/reject", response_model=MessageResponse)
def reject_location(
    location_id: int,
    payload: RejectRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    venue_service.reject_venue(db, identity, location_id, payload.rejection_reason)
    return MessageResponse(message="Location rejected successfully")


@router.get("/user/submissions", response_model=list[VenueSummary])
def my_submissions(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[VenueSummary]:
    return [_to_venue_summary(v) for v in venue_service.list_submissions(db, identity)]


@router.post("", response_model=VenueDetail, status_code=201)
def create_location(
    payload: VenueCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.create_venue(db, identity, payload, status=ModerationStatus.pending)
    return _to_venue_detail(db, venue, identity)


@router.get("/{location_id}", response_model=VenueDetail)
def get_location(
    location_id: int,
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.get_venue_for_display(db, location_id, identity)
    return _to_venue_detail(db, venue, identity)


@router.put("/{location_id}", response_model=VenueDetail)
def update_location(
    location_id: int,
    payload: VenueUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> VenueDetail:
    venue = venue_service.update_venue(db, identity, location_id, payload)
    return _to_venue_detail(db, venue, identity)


@router.delete("/{location_id}", response_model=MessageResponse)
def delete_location(
    location_id: int,
    reason: str | None = Query(default=None, max_length=1000),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    venue_service.delete_venue(db, identity, location_id, reason)
    return MessageResponse(message="Location deleted successfully")


@router.post("/{location_id}/claim", response_model=MessageResponse)
def claim_location(
    location_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> MessageResponse:
    venue_service.claim_venue(db, identity, location_id)
    return MessageResponse(message="Location claimed successfully")


@router.get("/{location_id}/reviews", response_model=ReviewListResponse)
def list_location_reviews(
    location_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    venue_service.get_visible_venue(db, location_id, identity)
    return _to_review_list(review_service.list_venue_reviews(db, location_id, PageRequest(page=page, limit=limit)))


@router.post("/{location_id}/reviews", response_model=ReviewResponse, status_code=201)
def create_location_review(
    location_id: int,
    payload: ReviewCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    venue_service.get_visible_venue(db, location_id, identity)
    review = review_service.create_review(db, identity, location_id, payload)
    return _to_review_response(review)


@router.post("/{location_id}/photos", response_model=PhotoUploadResponse, status_code=201)
def upload_location_photos(
    location_id: int,
    photos: list[UploadFile] = File(...),
    identity: Identity = Depends(get_current_identity),
    storage: LocalPhotoStorage = Depends(get_photo_storage),
    db: Session = Depends(get_db),
) -> PhotoUploadResponse:
    if len(photos) > MAX_PHOTOS_PER_REQUEST:
        raise BadRequestError(f"At most {MAX_PHOTOS_PER_REQUEST} photos per upload")

    stored, failed = venue_service.add_uploaded_photos(db, identity, location_id, photos, storage)
    return PhotoUploadResponse(photos=[PhotoOut.model_validate(p) for p in stored], failed=failed)


@router.post("/{location_id}/verify", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
def verify_location(
    location_id: int,
    payload: VerificationCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> VerificationResponse:
    verification = venue_service.verify_venue(db, identity, location_id, payload)
    return VerificationResponse.model_validate(verification)


@router.get("/{location_id}/history", response_model=list[HistoryResponse])
def location_history(
    location_id: int,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[HistoryResponse]:
    return [HistoryResponse.model_validate(h) for h in venue_service.list_history(db, location_id)]
