from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.api.identity import get_current_user
from tumi.domain.users import schemas, service
from tumi.domain.users.db_models import User
from tumi.domain.users.statuses import UserRole
from tumi.infra.db import get_db_session

router = APIRouter(tags=["members"])


@router.get("/v1/members", response_model=schemas.UserListResponse)
async def list_members(
    _user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.UserListResponse:
    members = await service.list_members(session)
    return schemas.UserListResponse(items=[schemas.UserResponse.model_validate(m) for m in members])


@router.get("/v1/users", response_model=schemas.UserListResponse)
async def list_users_by_id(
    ids: str = Query(default="", description="Comma separated user ids"),
    _user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.UserListResponse:
    requested = [part.strip() for part in ids.split(",") if part.strip()]
    users = await service.get_users(session, requested)
    return schemas.UserListResponse(items=[schemas.UserResponse.model_validate(u) for u in users])


@router.get("/v1/users/{user_id}", response_model=schemas.UserResponse)
async def get_user(
    user_id: str,
    _user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.UserResponse:
    user = await service.get_user(session, user_id)
    return schemas.UserResponse.model_validate(user)


@router.patch("/v1/users/{user_id}", response_model=schemas.UserResponse)
async def update_user(
    user_id: str,
    payload: schemas.UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.UserResponse:
    is_admin = current_user.role == UserRole.ADMIN
    if not is_admin and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    changes = payload.model_dump(exclude_unset=True)
    if not is_admin and set(changes) - service.SELF_EDITABLE_FIELDS:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can change status or role")
    user = await service.update_user(session, user_id, changes)
    await session.commit()
    return schemas.UserResponse.model_validate(user)
