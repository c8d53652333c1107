from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from fastapi import UploadFile
from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from workcafe.core.errors import BadRequestError, ConflictError, NotFoundError, PermissionDeniedError
from workcafe.core.security import Identity
from workcafe.db.crud import insert_ignoring_conflicts
from workcafe.db.session import transaction
from workcafe.models.enums import AmenityFeature, HistoryAction, ModerationStatus, NoiseLevel, PowerOutlets, VenueSort
from workcafe.models.venues import (
    Category,
    DietaryOptions,
    Venue,
    VenueAmenities,
    VenueHistory,
    VenueHours,
    VenuePhoto,
    Verification,
)
from workcafe.schemas.venues import HoursIn, PhotoIn, VenueCreate, VenueUpdate, VerificationCreate
from workcafe.services.geo import distance_km_expr
from workcafe.services.pagination import PageRequest, PageResult, count_rows
from workcafe.services.uploads import LocalPhotoStorage, PhotoStorageError

logger = logging.getLogger(__name__)

VENUE_COLUMNS = frozenset(
    {
        "name",
        "description",
        "address",
        "city",
        "state",
        "country",
        "zip_code",
        "latitude",
        "longitude",
        "phone",
        "website",
        "email",
        "occupancy_limit",
    }
)

SORT_DISTANCE = "distance"

_FEATURE_CLAUSES = {
    AmenityFeature.wifi: VenueAmenities.has_wifi.is_(True),
    AmenityFeature.power: VenueAmenities.power_outlets != PowerOutlets.none.value,
    AmenityFeature.restrooms: VenueAmenities.restrooms_available.is_(True),
    AmenityFeature.parking: VenueAmenities.parking_options != "None",
    AmenityFeature.vegan: DietaryOptions.has_vegan.is_(True),
    AmenityFeature.vegetarian: DietaryOptions.has_vegetarian.is_(True),
    AmenityFeature.gluten_free: DietaryOptions.has_gluten_free.is_(True),
    AmenityFeature.dairy_free: DietaryOptions.has_dairy_free.is_(True),
}


@dataclass
class VenueFilters:
    query: str | None = None
    city: str | None = None
    city_exact: bool = False
    has_wifi: bool | None = None
    power_outlets: str | None = None
    noise_level: str | None = None
    max_noise: int | None = None
    min_wifi_speed: int | None = None
    min_rating: float | None = None
    features: list[AmenityFeature] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    open_now: bool = False
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    sort: str = VenueSort.rating.value

    @property
    def is_geo(self) -> bool:
        return self.latitude is not None and self.longitude is not None and self.radius_km is not None


@dataclass
class VenueHit:
    venue: Venue
    distance_km: float | None = None


def _list_options():
    return (selectinload(Venue.photos), selectinload(Venue.categories), selectinload(Venue.amenities))


def _open_now_clause(now: datetime):
    """Venue has an hours row for today that covers `now`.

    A row with close_time earlier than open_time runs past midnight
    (e.g. 18:00-02:00) and matches both the evening and the early hours.
    """
    t = now.time().replace(microsecond=0)
    h = VenueHours
    same_day = and_(h.open_time <= h.close_time, h.open_time <= t, h.close_time >= t)
    overnight = and_(h.open_time > h.close_time, or_(h.open_time <= t, h.close_time >= t))
    return Venue.hours.any(
        and_(
            h.day_of_week == now.weekday(),
            h.is_closed.is_(False),
            h.open_time.is_not(None),
            h.close_time.is_not(None),
            or_(same_day, overnight),
        )
    )


def _apply_filters(stmt: Select, f: VenueFilters, *, now: datetime) -> Select:
    if f.query:
        pattern = f"%{f.query.strip()}%"
        stmt = stmt.where(or_(Venue.name.ilike(pattern), Venue.description.ilike(pattern)))
    if f.city:
        if f.city_exact:
            stmt = stmt.where(func.lower(Venue.city) == f.city.strip().lower())
        else:
            stmt = stmt.where(Venue.city.ilike(f"%{f.city.strip()}%"))
    if f.has_wifi:
        stmt = stmt.where(VenueAmenities.has_wifi.is_(True))
    if f.power_outlets:
        stmt = stmt.where(VenueAmenities.power_outlets == f.power_outlets)
    if f.noise_level:
        stmt = stmt.where(VenueAmenities.noise_level == f.noise_level)
    if f.max_noise is not None and f.max_noise < len(NoiseLevel):
        stmt = stmt.where(VenueAmenities.noise_level.in_([lvl.value for lvl in NoiseLevel.at_most(f.max_noise)]))
    if f.min_wifi_speed:
        stmt = stmt.where(VenueAmenities.wifi_speed >= f.min_wifi_speed)
    if f.min_rating:
        stmt = stmt.where(Venue.avg_rating >= f.min_rating)
    for feature in f.features:
        stmt = stmt.where(_FEATURE_CLAUSES[AmenityFeature(feature)])
    if f.categories:
        names = [c.strip().lower() for c in f.categories if c.strip()]
        if names:
            stmt = stmt.where(Venue.categories.any(Category.name.in_(names)))
    if f.open_now:
        stmt = stmt.where(_open_now_clause(now))
    return stmt


def _order_by(sort: str, distance=None) -> list:
    if sort == SORT_DISTANCE and distance is not None:
        return [distance.asc(), Venue.avg_rating.desc(), Venue.id]
    if sort == VenueSort.reviews.value:
        return [Venue.reviews_count.desc(), Venue.avg_rating.desc(), Venue.id]
    if sort == VenueSort.newest.value:
        return [Venue.created_at.desc(), Venue.id.desc()]
    return [Venue.avg_rating.desc(), Venue.name, Venue.id]


def search_venues(
    db: Session,
    filters: VenueFilters,
    page: PageRequest,
    *,
    now: datetime | None = None,
) -> PageResult[VenueHit]:
    """Approved venues matching `filters`, one page at a time."""
    now = now or datetime.now()

    distance = None
    if filters.is_geo:
        distance = distance_km_expr(Venue.latitude, Venue.longitude, filters.latitude, filters.longitude)
        stmt = select(Venue, distance.label("distance_km"))
    else:
        stmt = select(Venue)

    stmt = (
        stmt.outerjoin(VenueAmenities, VenueAmenities.venue_id == Venue.id)
        .outerjoin(DietaryOptions, DietaryOptions.venue_id == Venue.id)
        .where(Venue.status == ModerationStatus.approved.value)
    )
    stmt = _apply_filters(stmt, filters, now=now)
    if distance is not None:
        stmt = stmt.where(Venue.latitude.is_not(None), Venue.longitude.is_not(None), distance <= filters.radius_km)

    total = count_rows(db, stmt)

    stmt = stmt.order_by(*_order_by(filters.sort, distance)).limit(page.limit).offset(page.offset).options(*_list_options())
    if distance is not None:
        hits = [VenueHit(venue=v, distance_km=round(float(d), 2)) for v, d in db.execute(stmt).all()]
    else:
        hits = [VenueHit(venue=v) for v in db.scalars(stmt).unique().all()]

    return PageResult(items=hits, total=total, page=page.page, limit=page.limit)


def can_see(venue: Venue, identity: Identity | None) -> bool:
    if venue.status == ModerationStatus.approved.value:
        return True
    if identity is None:
        return False
    return identity.is_admin or venue.submitted_by == identity.id


def get_visible_venue(db: Session, venue_id: int, identity: Identity | None) -> Venue:
    """Approved venues are public; pending/rejected ones only for their submitter and admins."""
    venue = db.get(Venue, venue_id)
    if venue is None or not can_see(venue, identity):
        raise NotFoundError("Location not found")
    return venue


def get_venue_for_display(db: Session, venue_id: int, identity: Identity | None) -> Venue:
    venue = get_visible_venue(db, venue_id, identity)
    with transaction(db):
        db.execute(
            update(Venue)
            .where(Venue.id == venue_id)
            .values(view_count=Venue.view_count + 1, updated_at=Venue.updated_at)
            .execution_options(synchronize_session=False)
        )
    db.refresh(venue)
    return venue


def _require_venue(db: Session, venue_id: int) -> Venue:
    venue = db.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Location not found")
    return venue


def _log_history(db: Session, venue_id: int, user_id: str | None, action: HistoryAction, reason: str | None) -> None:
    db.add(VenueHistory(venue_id=venue_id, modified_by=user_id, action=action.value, reason=reason))
    db.flush()


def _replace_hours(db: Session, venue_id: int, hours: list[HoursIn]) -> None:
    db.execute(delete(VenueHours).where(VenueHours.venue_id == venue_id).execution_options(synchronize_session=False))
    for h in hours:
        db.add(
            VenueHours(
                venue_id=venue_id,
                day_of_week=h.day_of_week,
                open_time=h.open_time,
                close_time=h.close_time,
                is_closed=h.is_closed,
            )
        )
    db.flush()


def _write_amenities(db: Session, venue_id: int, changes: dict, user_id: str | None) -> None:
    row = db.get(VenueAmenities, venue_id)
    if row is None:
        row = VenueAmenities(venue_id=venue_id)
        db.add(row)
    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_by = user_id
    row.last_updated = datetime.utcnow()
    db.flush()


def _write_dietary(db: Session, venue_id: int, changes: dict) -> None:
    row = db.get(DietaryOptions, venue_id)
    if row is None:
        row = DietaryOptions(venue_id=venue_id)
        db.add(row)
    for key, value in changes.items():
        setattr(row, key, value)
    db.flush()


def _set_categories(db: Session, venue: Venue, names: list[str]) -> None:
    if names:
        insert_ignoring_conflicts(db, Category, [{"name": n} for n in names], index_elements=["name"])
        venue.categories = list(db.scalars(select(Category).where(Category.name.in_(names))).all())
    else:
        venue.categories = []
    db.flush()


def _append_photos(db: Session, venue_id: int, photos: list[PhotoIn], user_id: str | None) -> list[VenuePhoto]:
    """Append photos; the first one becomes primary only if the venue has no primary yet."""
    has_primary = bool(
        db.scalar(
            select(func.count())
            .select_from(VenuePhoto)
            .where(VenuePhoto.venue_id == venue_id, VenuePhoto.is_primary.is_(True))
        )
    )
    added = []
    for p in photos:
        photo = VenuePhoto(venue_id=venue_id, url=p.url, caption=p.caption, uploaded_by=user_id, is_primary=not has_primary)
        has_primary = True
        db.add(photo)
        added.append(photo)
    db.flush()
    return added


def create_venue(
    db: Session,
    identity: Identity,
    payload: VenueCreate,
    *,
    status: ModerationStatus = ModerationStatus.pending,
) -> Venue:
    """Insert a venue with all of its dependent rows as one unit."""
    with transaction(db):
        venue = Venue(
            **payload.model_dump(include=set(VENUE_COLUMNS)),
            status=status.value,
            submitted_by=identity.id,
        )
        db.add(venue)
        db.flush()

        _replace_hours(db, venue.id, payload.hours)
        _write_amenities(db, venue.id, payload.amenities.changes(), identity.id)
        _write_dietary(db, venue.id, payload.dietary.changes())
        _append_photos(db, venue.id, payload.photos, identity.id)
        _set_categories(db, venue, payload.categories)
        _log_history(db, venue.id, identity.id, HistoryAction.create, "Initial submission")

    logger.info("Venue %s created by %s with status %s", venue.id, identity.id, status.value)
    return venue


def update_venue(db: Session, identity: Identity, venue_id: int, payload: VenueUpdate) -> Venue:
    with transaction(db):
        venue = _require_venue(db, venue_id)
        if venue.submitted_by != identity.id and not identity.is_admin:
            raise PermissionDeniedError("Not authorized to update this location")

        for key, value in payload.changes(include=VENUE_COLUMNS).items():
            setattr(venue, key, value)
        if (venue.latitude is None) != (venue.longitude is None):
            raise BadRequestError("latitude and longitude must be provided together")
        venue.updated_at = datetime.utcnow()
        db.flush()

        sent = payload.model_fields_set
        if "hours" in sent:
            _replace_hours(db, venue.id, payload.hours)
        if "amenities" in sent:
            _write_amenities(db, venue.id, payload.amenities.changes() if payload.amenities else {}, identity.id)
        if "dietary" in sent:
            _write_dietary(db, venue.id, payload.dietary.changes() if payload.dietary else {})
        if "categories" in sent:
            _set_categories(db, venue, payload.categories)
        if payload.photos:
            _append_photos(db, venue.id, payload.photos, identity.id)

        _log_history(db, venue.id, identity.id, HistoryAction.update, payload.update_reason or "Information updated")

    logger.info("Venue %s updated by %s", venue_id, identity.id)
    return venue


def _moderate(db: Session, identity: Identity, venue_id: int, action: HistoryAction, values: dict, reason: str) -> None:
    """Move a pending venue to its final state.

    The status check and the write are a single conditional UPDATE, so a venue
    that is not pending (or no longer pending) yields 404 and no audit row.
    """
    with transaction(db):
        res = db.execute(
            update(Venue)
            .where(Venue.id == venue_id, Venue.status == ModerationStatus.pending.value)
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            raise NotFoundError("Pending location not found")
        _log_history(db, venue_id, identity.id, action, reason)

    logger.info("Venue %s: %s by admin %s", venue_id, action.value, identity.id)


def approve_venue(db: Session, identity: Identity, venue_id: int, admin_notes: str | None = None) -> None:
    _moderate(
        db,
        identity,
        venue_id,
        HistoryAction.approve,
        {"status": ModerationStatus.approved.value},
        admin_notes or "Location approved by admin",
    )


def reject_venue(db: Session, identity: Identity, venue_id: int, rejection_reason: str) -> None:
    _moderate(
        db,
        identity,
        venue_id,
        HistoryAction.reject,
        {"status": ModerationStatus.rejected.value, "rejection_reason": rejection_reason},
        rejection_reason,
    )


def claim_venue(db: Session, identity: Identity, venue_id: int) -> None:
    with transaction(db):
        _require_venue(db, venue_id)
        res = db.execute(
            update(Venue)
            .where(Venue.id == venue_id, Venue.is_claimed.is_(False))
            .values(is_claimed=True, claimed_by=identity.id, claimed_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            raise ConflictError("Location is already claimed")
        _log_history(db, venue_id, identity.id, HistoryAction.claim, "Location claimed by business owner")

    logger.info("Venue %s claimed by %s", venue_id, identity.id)


def delete_venue(db: Session, identity: Identity, venue_id: int, reason: str | None = None) -> None:
    with transaction(db):
        venue = _require_venue(db, venue_id)
        _log_history(db, venue_id, identity.id, HistoryAction.delete, reason or "Location deleted by admin")
        db.delete(venue)
        db.flush()

    logger.info("Venue %s deleted by %s", venue_id, identity.id)


def list_pending(db: Session) -> list[Venue]:
    stmt = (
        select(Venue)
        .where(Venue.status == ModerationStatus.pending.value)
        .order_by(Venue.created_at.desc(), Venue.id.desc())
        .options(*_list_options(), selectinload(Venue.submitter))
    )
    return list(db.scalars(stmt).all())


def list_submissions(db: Session, identity: Identity) -> list[Venue]:
    stmt = (
        select(Venue)
        .where(Venue.submitted_by == identity.id)
        .order_by(Venue.created_at.desc(), Venue.id.desc())
        .options(*_list_options())
    )
    return list(db.scalars(stmt).all())


def list_history(db: Session, venue_id: int) -> list[VenueHistory]:
    stmt = select(VenueHistory).where(VenueHistory.venue_id == venue_id).order_by(VenueHistory.id)
    return list(db.scalars(stmt).all())


def add_uploaded_photos(
    db: Session,
    identity: Identity,
    venue_id: int,
    files: list[UploadFile],
    storage: LocalPhotoStorage,
) -> tuple[list[VenuePhoto], list[str]]:
    """Store and attach uploaded photos one by one.

    Each photo is committed on its own: a file that cannot be stored or
    inserted is logged and reported back, the others are kept.
    """
    _require_venue(db, venue_id)

    stored: list[VenuePhoto] = []
    failed: list[str] = []
    for upload in files:
        try:
            url = storage.save(upload, folder="locations")
            with transaction(db):
                stored.extend(_append_photos(db, venue_id, [PhotoIn(url=url)], identity.id))
        except (PhotoStorageError, SQLAlchemyError) as exc:
            logger.warning("Photo %r for venue %s skipped: %s", upload.filename, venue_id, exc)
            failed.append(upload.filename or "")

    logger.info("Venue %s: %d photo(s) stored, %d failed", venue_id, len(stored), len(failed))
    return stored, failed


def verify_venue(db: Session, identity: Identity, venue_id: int, payload: VerificationCreate) -> Verification:
    with transaction(db):
        _require_venue(db, venue_id)
        verification = Verification(venue_id=venue_id, user_id=identity.id, **payload.model_dump())
        db.add(verification)
        db.flush()
    return verification
