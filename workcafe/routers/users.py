from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from workcafe.core.deps import get_current_identity, require_admin
from workcafe.core.rate_limit import rate_limit
from workcafe.core.security import Identity
from workcafe.db.session import get_db
from workcafe.models.checkins import CheckIn
from workcafe.models.users import UserAuth
from workcafe.routers.locations import _to_venue_summary
from workcafe.routers.reviews import _to_review_list
from workcafe.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, TokenResponse
from workcafe.schemas.checkins import CheckInListResponse, CheckInResponse, OccupancyReportUpdate
from workcafe.schemas.common import MessageResponse
from workcafe.schemas.reviews import ReviewListResponse
from workcafe.schemas.users import PasswordChange, UserMeResponse, UserPublic, UserUpdate
from workcafe.schemas.venues import VenueListResponse
from workcafe.services import checkins as checkin_service
from workcafe.services import reviews as review_service
from workcafe.services import users as user_service
from workcafe.services.pagination import PageRequest

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


def _to_check_in_response(c: CheckIn) -> CheckInResponse:
    return CheckInResponse(
        id=c.id,
        venue_id=c.venue_id,
        venue_name=c.venue.name if c.venue else None,
        venue_image=c.venue.primary_photo if c.venue else None,
        user_id=c.user_id,
        username=c.user.username if c.user else None,
        check_in_time=c.check_in_time,
        check_out_time=c.check_out_time,
        status=c.status,
        occupancy_report=c.occupancy_report,
    )


def _to_user_public(user: UserAuth) -> UserPublic:
    profile = user.profile
    return UserPublic(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        first_name=profile.first_name if profile else None,
        last_name=profile.last_name if profile else None,
        profile_image=profile.profile_image if profile else None,
    )


def _to_user_me(db: Session, user: UserAuth) -> UserMeResponse:
    active = checkin_service.get_active_check_in(db, user.id)
    return UserMeResponse(
        **_to_user_public(user).model_dump(),
        bio=user.profile.bio if user.profile else None,
        is_verified=user.is_verified,
        is_active=user.is_active,
        created_at=user.created_at,
        active_check_in=_to_check_in_response(active) if active else None,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    dependencies=[rate_limit("register", limit=20, window_seconds=60)],
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    user = user_service.register_user(db, payload)
    return AuthResponse(access_token=user_service.issue_token(user), user=_to_user_public(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[rate_limit("login", limit=10, window_seconds=60)],
)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    user = user_service.authenticate(db, payload.email, payload.password)
    logger.info("User %s logged in", user.id)
    return AuthResponse(access_token=user_service.issue_token(user), user=_to_user_public(user))


@router.post(
    "/token",
    response_model=TokenResponse,
    dependencies=[rate_limit("login", limit=10, window_seconds=60)],
)
def token(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> TokenResponse:
    # OAuth2 forms call the login field "username"; we log in by email.
    user = user_service.authenticate(db, form.username, form.password)
    return TokenResponse(access_token=user_service.issue_token(user))


@router.get("/me", response_model=UserMeResponse)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)) -> UserMeResponse:
    return _to_user_me(db, user_service.get_user(db, identity.id))


@router.put("/me", response_model=UserMeResponse)
def update_me(
    payload: UserUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> UserMeResponse:
    user = user_service.update_user(db, identity, payload)
    return _to_user_me(db, user)


@router.put("/me/password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> MessageResponse:
    user_service.change_password(db, identity, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/me/favorites", response_model=VenueListResponse)
def my_favorites(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> VenueListResponse:
    result = user_service.list_favorites(db, identity, PageRequest(page=page, limit=limit))
    return VenueListResponse(
        items=[_to_venue_summary(v) for v in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.post("/me/favorites/{cafe_id}", response_model=MessageResponse, status_code=201)
def add_favorite(
    cafe_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> MessageResponse:
    user_service.add_favorite(db, identity, cafe_id)
    return MessageResponse(message="Cafe added to favorites")


@router.delete("/me/favorites/{cafe_id}", response_model=MessageResponse)
def remove_favorite(
    cafe_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> MessageResponse:
    user_service.remove_favorite(db, identity, cafe_id)
    return MessageResponse(message="Cafe removed from favorites")


@router.get("/me/check-ins", response_model=CheckInListResponse)
def my_check_ins(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> CheckInListResponse:
    result = checkin_service.list_user_check_ins(db, identity.id, PageRequest(page=page, limit=limit))
    return CheckInListResponse(
        items=[_to_check_in_response(c) for c in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.post("/me/check-out", response_model=CheckInResponse)
def check_out(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)) -> CheckInResponse:
    return _to_check_in_response(checkin_service.check_out(db, identity))


@router.patch("/me/check-in", response_model=CheckInResponse)
def update_check_in(
    payload: OccupancyReportUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> CheckInResponse:
    record = checkin_service.update_occupancy_report(db, identity, payload.occupancy_report)
    return _to_check_in_response(record)


@router.get("/me/reviews", response_model=ReviewListResponse)
def my_reviews(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    return _to_review_list(review_service.list_user_reviews(db, identity.id, PageRequest(page=page, limit=limit)))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    user_service.delete_user(db, identity, user_id)
    return MessageResponse(message="User deleted successfully")
