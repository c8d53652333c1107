from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from workcafe.core.deps import get_current_identity
from workcafe.core.security import Identity
from workcafe.db.session import get_db
from workcafe.models.reviews import Review
from workcafe.schemas.common import MessageResponse
from workcafe.schemas.reviews import ReviewListResponse, ReviewResponse, ReviewUpdate
from workcafe.services import reviews as review_service
from workcafe.services.pagination import PageResult

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


def _to_review_response(r: Review) -> ReviewResponse:
    author = r.author
    profile = author.profile if author else None
    return ReviewResponse(
        id=r.id,
        venue_id=r.venue_id,
        venue_name=r.venue.name if r.venue else None,
        user_id=r.user_id,
        username=author.username if author else None,
        profile_image=profile.profile_image if profile else None,
        rating=r.rating,
        comment=r.comment,
        wifi_rating=r.wifi_rating,
        power_rating=r.power_rating,
        comfort_rating=r.comfort_rating,
        noise_rating=r.noise_rating,
        coffee_rating=r.coffee_rating,
        food_rating=r.food_rating,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def _to_review_list(page: PageResult[Review]) -> ReviewListResponse:
    return ReviewListResponse(
        items=[_to_review_response(r) for r in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(review_id: int, db: Session = Depends(get_db)) -> ReviewResponse:
    return _to_review_response(review_service.get_review(db, review_id))


@router.put("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review = review_service.update_review(db, identity, review_id, payload)
    return _to_review_response(review)


@router.delete("/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> MessageResponse:
    review_service.delete_review(db, identity, review_id)
    return MessageResponse(message="Review deleted successfully")
