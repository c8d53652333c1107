from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from workcafe.core.errors import BadRequestError, ConflictError
from workcafe.core.security import Identity
from workcafe.db.session import transaction
from workcafe.models.checkins import CheckIn
from workcafe.models.enums import CheckInStatus
from workcafe.models.users import UserAuth
from workcafe.models.venues import Venue
from workcafe.services.pagination import PageRequest, PageResult, count_rows

logger = logging.getLogger(__name__)

HISTORY_WINDOW = timedelta(days=7)


def _with_relations(stmt):
    return stmt.options(
        selectinload(CheckIn.venue).selectinload(Venue.photos),
        selectinload(CheckIn.user).selectinload(UserAuth.profile),
    )


def get_active_check_in(db: Session, user_id: str) -> CheckIn | None:
    stmt = select(CheckIn).where(CheckIn.user_id == user_id, CheckIn.check_out_time.is_(None))
    return db.scalars(_with_relations(stmt)).first()


def check_in(db: Session, identity: Identity, venue_id: int, occupancy_report: int | None = None) -> CheckIn:
    """Close the caller's open check-in, if any, and open a new one at `venue_id`.

    The partial unique index on open check-ins backs the one-active-per-user
    rule; losing a race against a concurrent check-in surfaces as 400.
    """
    now = datetime.utcnow()
    record = CheckIn(
        venue_id=venue_id,
        user_id=identity.id,
        check_in_time=now,
        status=CheckInStatus.active.value,
        occupancy_report=occupancy_report,
    )
    try:
        with transaction(db):
            db.execute(
                update(CheckIn)
                .where(CheckIn.user_id == identity.id, CheckIn.check_out_time.is_(None))
                .values(check_out_time=now, status=CheckInStatus.completed.value)
                .execution_options(synchronize_session=False)
            )
            db.add(record)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError("You already have an active check-in") from exc

    logger.info("User %s checked in at venue %s", identity.id, venue_id)
    return record


def check_out(db: Session, identity: Identity) -> CheckIn:
    with transaction(db):
        active = get_active_check_in(db, identity.id)
        if active is None:
            raise BadRequestError("No active check-in found")
        active.check_out_time = datetime.utcnow()
        active.status = CheckInStatus.completed.value
        db.flush()

    logger.info("User %s checked out of venue %s", identity.id, active.venue_id)
    return active


def update_occupancy_report(db: Session, identity: Identity, occupancy_report: int) -> CheckIn:
    with transaction(db):
        active = get_active_check_in(db, identity.id)
        if active is None:
            raise BadRequestError("No active check-in found")
        active.occupancy_report = occupancy_report
        db.flush()
    return active


def list_active_for_venue(db: Session, venue_id: int) -> list[CheckIn]:
    stmt = (
        select(CheckIn)
        .where(CheckIn.venue_id == venue_id, CheckIn.check_out_time.is_(None))
        .order_by(CheckIn.check_in_time.desc(), CheckIn.id.desc())
    )
    return list(db.scalars(_with_relations(stmt)).all())


def list_user_check_ins(db: Session, user_id: str, page: PageRequest) -> PageResult[CheckIn]:
    stmt = select(CheckIn).where(CheckIn.user_id == user_id)
    total = count_rows(db, stmt)
    stmt = stmt.order_by(CheckIn.check_in_time.desc(), CheckIn.id.desc()).limit(page.limit).offset(page.offset)
    return PageResult(items=list(db.scalars(_with_relations(stmt)).all()), total=total, page=page.page, limit=page.limit)


def occupancy_percentage(active_users: int, occupancy_limit: int | None) -> int:
    """Share of the limit in use, rounded half up; 0 when the venue has no limit."""
    if not occupancy_limit:
        return 0
    return int(math.floor(active_users * 100 / occupancy_limit + 0.5))


def count_active(db: Session, venue_id: int) -> int:
    stmt = select(func.count(CheckIn.id)).where(CheckIn.venue_id == venue_id, CheckIn.check_out_time.is_(None))
    return int(db.scalar(stmt) or 0)


def occupancy(db: Session, venue: Venue, *, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    active = count_active(db, venue.id)

    times = db.scalars(
        select(CheckIn.check_in_time).where(CheckIn.venue_id == venue.id, CheckIn.check_in_time >= now - HISTORY_WINDOW)
    ).all()
    buckets = Counter((t.weekday(), t.hour) for t in times)

    return {
        "venue_id": venue.id,
        "active_users": active,
        "occupancy_limit": venue.occupancy_limit,
        "occupancy_percentage": occupancy_percentage(active, venue.occupancy_limit),
        "historical_data": [
            {"day_of_week": day, "hour_of_day": hour, "check_in_count": count}
            for (day, hour), count in sorted(buckets.items())
        ],
    }
