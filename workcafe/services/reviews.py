from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from workcafe.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from workcafe.core.security import Identity
from workcafe.db.session import transaction
from workcafe.models.reviews import Review
from workcafe.models.users import UserAuth
from workcafe.schemas.reviews import ReviewCreate, ReviewUpdate
from workcafe.services.pagination import PageRequest, PageResult, count_rows
from workcafe.services.ratings import recompute_venue_rating

logger = logging.getLogger(__name__)


def _with_author(stmt):
    return stmt.options(selectinload(Review.author).selectinload(UserAuth.profile), selectinload(Review.venue))


def list_venue_reviews(db: Session, venue_id: int, page: PageRequest) -> PageResult[Review]:
    stmt = select(Review).where(Review.venue_id == venue_id)
    total = count_rows(db, stmt)
    items = db.scalars(
        _with_author(stmt.order_by(Review.created_at.desc(), Review.id.desc()).limit(page.limit).offset(page.offset))
    ).all()
    return PageResult(items=list(items), total=total, page=page.page, limit=page.limit)


def top_reviews(db: Session, venue_id: int, *, limit: int = 3) -> list[Review]:
    stmt = select(Review).where(Review.venue_id == venue_id).order_by(Review.created_at.desc(), Review.id.desc()).limit(limit)
    return list(db.scalars(_with_author(stmt)).all())


def list_user_reviews(db: Session, user_id: str, page: PageRequest) -> PageResult[Review]:
    stmt = select(Review).where(Review.user_id == user_id)
    total = count_rows(db, stmt)
    items = db.scalars(
        _with_author(stmt.order_by(Review.created_at.desc(), Review.id.desc()).limit(page.limit).offset(page.offset))
    ).all()
    return PageResult(items=list(items), total=total, page=page.page, limit=page.limit)


def get_review(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise NotFoundError("Review not found")
    return review


def create_review(db: Session, identity: Identity, venue_id: int, payload: ReviewCreate) -> Review:
    """Insert a review and refresh the venue aggregates in the same transaction.

    One review per (venue, user) is enforced by the unique constraint alone.
    """
    review = Review(venue_id=venue_id, user_id=identity.id, **payload.model_dump())
    review.comment = (review.comment or "").strip() or None
    try:
        with transaction(db):
            db.add(review)
            db.flush()
            recompute_venue_rating(db, venue_id=venue_id)
    except IntegrityError as exc:
        raise ConflictError("You have already reviewed this venue") from exc

    logger.info("Review %s by %s on venue %s", review.id, identity.id, venue_id)
    return review


def update_review(db: Session, identity: Identity, review_id: int, payload: ReviewUpdate) -> Review:
    with transaction(db):
        review = get_review(db, review_id)
        if review.user_id != identity.id:
            raise PermissionDeniedError("Not authorized to update this review")

        for key, value in payload.changes().items():
            setattr(review, key, value)
        db.flush()
        recompute_venue_rating(db, venue_id=review.venue_id)

    return review


def delete_review(db: Session, identity: Identity, review_id: int) -> None:
    with transaction(db):
        review = get_review(db, review_id)
        if review.user_id != identity.id and not identity.is_admin:
            raise PermissionDeniedError("Not authorized to delete this review")

        venue_id = review.venue_id
        db.delete(review)
        db.flush()
        recompute_venue_rating(db, venue_id=venue_id)

    logger.info("Review %s deleted by %s", review_id, identity.id)
