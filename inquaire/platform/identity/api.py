from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.rbac import require_system_admin
from inquaire.platform.identity.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdate,
    RefreshTokenRequest,
    SignupRequest,
    TokenResponse,
    UserCreate,
    UserDetail,
    UserListResponse,
    UserRead,
    UserRoleUpdate,
    UserStats,
    UserUpdate,
)
from inquaire.platform.identity.service import auth_service, users_service


router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)) -> TokenResponse:
    return auth_service.signup(db, payload)


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    return auth_service.login(db, payload)


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshTokenRequest, db: Session = Depends(get_db)) -> TokenResponse:
    return auth_service.refresh(db, payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(payload: RefreshTokenRequest, db: Session = Depends(get_db)) -> MessageResponse:
    return auth_service.logout(db, payload.refresh_token)


@router.get("/profile", response_model=UserRead)
def get_profile(
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> UserRead:
    return auth_service.profile(db, user.user_id)


@router.patch("/profile", response_model=UserRead)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> UserRead:
    return auth_service.update_profile(db, user.user_id, payload)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    return auth_service.change_password(db, user.user_id, payload)


@users_router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> UserRead:
    return users_service.create_user(db, payload)


@users_router.get("", response_model=UserListResponse)
def list_users(
    search: str | None = Query(default=None),
    role: str | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> UserListResponse:
    return users_service.list_users(
        db,
        search=search,
        role=role,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )


@users_router.get("/stats", response_model=UserStats)
def user_stats(db: Session = Depends(get_db), _: AuthUser = Depends(require_system_admin)) -> UserStats:
    return users_service.stats(db)


@users_router.get("/{user_id}", response_model=UserDetail)
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> UserDetail:
    return users_service.get_user(db, user_id)


@users_router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> UserRead:
    return users_service.update_user(db, user_id, payload)


@users_router.patch("/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> UserRead:
    return users_service.update_role(db, user_id, payload)


@users_router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> MessageResponse:
    return users_service.delete_user(db, user_id)
