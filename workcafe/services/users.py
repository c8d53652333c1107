from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from workcafe.core.errors import AuthenticationError, ConflictError, NotFoundError
from workcafe.core.security import Identity, create_access_token, get_password_hash, verify_password
from workcafe.db.crud import insert_ignoring_conflicts
from workcafe.db.session import transaction
from workcafe.models.enums import UserRole
from workcafe.models.favorites import Favorite
from workcafe.models.reviews import Review
from workcafe.models.users import UserAuth, UserProfile
from workcafe.models.venues import Venue
from workcafe.schemas.auth import RegisterRequest
from workcafe.schemas.users import UserUpdate
from workcafe.services.pagination import PageRequest, PageResult, count_rows
from workcafe.services.ratings import recompute_venue_rating

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"first_name", "last_name", "profile_image", "bio"})


def get_user(db: Session, user_id: str) -> UserAuth:
    user = db.scalars(select(UserAuth).where(UserAuth.id == user_id).options(selectinload(UserAuth.profile))).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def issue_token(user: UserAuth) -> str:
    return create_access_token(user.id, username=user.username, email=user.email, role=user.role)


def _ensure_unique(db: Session, *, username: str | None, email: str | None, exclude_id: str | None = None) -> None:
    conds = []
    if username is not None:
        conds.append(UserAuth.username == username)
    if email is not None:
        conds.append(UserAuth.email == email)
    if not conds:
        return

    stmt = select(UserAuth.id).where(or_(*conds))
    if exclude_id is not None:
        stmt = stmt.where(UserAuth.id != exclude_id)
    if db.scalar(stmt.limit(1)) is not None:
        raise ConflictError("Username or email already exists")


def register_user(db: Session, payload: RegisterRequest) -> UserAuth:
    _ensure_unique(db, username=payload.username, email=payload.email)

    user = UserAuth(
        username=payload.username,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=UserRole.user.value,
    )
    user.profile = UserProfile(**payload.model_dump(include=set(PROFILE_FIELDS)))
    try:
        with transaction(db):
            db.add(user)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError("Username or email already exists") from exc

    logger.info("Registered user %s (%s)", user.id, user.username)
    return user


def authenticate(db: Session, email: str, password: str) -> UserAuth:
    user = db.scalars(select(UserAuth).where(UserAuth.email == email.lower())).first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return user


def update_user(db: Session, identity: Identity, payload: UserUpdate) -> UserAuth:
    changes = payload.changes()
    try:
        with transaction(db):
            user = get_user(db, identity.id)
            _ensure_unique(
                db,
                username=changes.get("username"),
                email=changes.get("email"),
                exclude_id=user.id,
            )
            if "username" in changes:
                user.username = changes["username"]
            if "email" in changes:
                user.email = changes["email"]

            if user.profile is None:
                user.profile = UserProfile()
            for key in PROFILE_FIELDS & changes.keys():
                setattr(user.profile, key, changes[key])
            db.flush()
    except IntegrityError as exc:
        raise ConflictError("Username or email already exists") from exc

    return user


def change_password(db: Session, identity: Identity, current_password: str, new_password: str) -> None:
    with transaction(db):
        user = get_user(db, identity.id)
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        user.password_hash = get_password_hash(new_password)

    logger.info("User %s changed password", identity.id)


def delete_user(db: Session, identity: Identity, user_id: str) -> None:
    """Remove a user and everything they own, then refresh the ratings their reviews fed."""
    with transaction(db):
        user = get_user(db, user_id)
        venue_ids = list(db.scalars(select(Review.venue_id).where(Review.user_id == user_id).distinct()).all())
        db.delete(user)
        db.flush()
        for venue_id in venue_ids:
            recompute_venue_rating(db, venue_id=venue_id)

    logger.info("User %s deleted by admin %s", user_id, identity.id)


def add_favorite(db: Session, identity: Identity, venue_id: int) -> None:
    with transaction(db):
        if db.get(Venue, venue_id) is None:
            raise NotFoundError("Cafe not found")
        insert_ignoring_conflicts(
            db,
            Favorite,
            [{"user_id": identity.id, "venue_id": venue_id}],
            index_elements=["user_id", "venue_id"],
        )


def remove_favorite(db: Session, identity: Identity, venue_id: int) -> None:
    with transaction(db):
        db.execute(delete(Favorite).where(Favorite.user_id == identity.id, Favorite.venue_id == venue_id))


def is_favorite(db: Session, user_id: str, venue_id: int) -> bool:
    return db.get(Favorite, (user_id, venue_id)) is not None


def list_favorites(db: Session, identity: Identity, page: PageRequest) -> PageResult[Venue]:
    stmt = select(Venue).join(Favorite, Favorite.venue_id == Venue.id).where(Favorite.user_id == identity.id)
    total = count_rows(db, stmt)
    items = db.scalars(
        stmt.order_by(Favorite.created_at.desc(), Venue.id)
        .limit(page.limit)
        .offset(page.offset)
        .options(selectinload(Venue.photos), selectinload(Venue.categories), selectinload(Venue.amenities))
    ).all()
    return PageResult(items=list(items), total=total, page=page.page, limit=page.limit)
