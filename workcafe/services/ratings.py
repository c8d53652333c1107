from __future__ import annotations

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from workcafe.models.reviews import RATING_COLUMNS, Review
from workcafe.models.venues import Venue


def recompute_venue_rating(db: Session, *, venue_id: int) -> None:
    """Recompute aggregated rating fields for a venue.

    Aggregates are stored in-place (avg_rating, reviews_count) and are always
    derived from the reviews table, never patched incrementally. Does not
    commit: call it inside the transaction that changed the reviews.
    """

    stmt = select(func.count(Review.id), func.avg(Review.rating)).where(Review.venue_id == venue_id)
    cnt, avg = db.execute(stmt).one()

    db.execute(
        update(Venue)
        .where(Venue.id == venue_id)
        .values(reviews_count=int(cnt or 0), avg_rating=round(float(avg or 0.0), 2))
        .execution_options(synchronize_session=False)
    )


def _avg(value) -> float | None:
    return None if value is None else round(float(value), 1)


def rating_breakdown(db: Session, *, venue_id: int) -> dict[str, float | None]:
    """Average of every per-attribute score (wifi, power, ...) for a venue."""
    cols = [func.avg(getattr(Review, name)) for name in RATING_COLUMNS]
    row = db.execute(select(*cols).where(Review.venue_id == venue_id)).one()
    return {name.removesuffix("_rating"): _avg(value) for name, value in zip(RATING_COLUMNS, row)}


def review_stats(db: Session, *, venue_id: int) -> dict:
    stars = [func.sum(case((Review.rating == n, 1), else_=0)) for n in range(1, 6)]
    total, avg, *counts = db.execute(
        select(func.count(Review.id), func.avg(Review.rating), *stars).where(Review.venue_id == venue_id)
    ).one()

    stats = {
        "venue_id": venue_id,
        "total_reviews": int(total or 0),
        "avg_rating": round(float(avg or 0.0), 1),
        "distribution": {n: int(c or 0) for n, c in zip(range(1, 6), counts)},
    }
    for name, value in rating_breakdown(db, venue_id=venue_id).items():
        stats[f"avg_{name}"] = value
    return stats
