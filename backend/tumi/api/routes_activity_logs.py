from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.api.identity import require_admin
from tumi.domain.activity_log import service
from tumi.domain.activity_log.statuses import LogSeverity
from tumi.domain.users.db_models import User
from tumi.infra.db import get_db_session
from tumi.settings import settings

router = APIRouter(tags=["activity-logs"])


class ActivityLogResponse(BaseModel):
    id: str
    created_at: datetime
    message: str
    severity: LogSeverity
    category: str
    data: Any = None
    old_data: Any = None
    involved_user_id: str | None = None

    class Config:
        from_attributes = True


class ActivityLogListResponse(BaseModel):
    items: list[ActivityLogResponse]


@router.get("/v1/activity-logs", response_model=ActivityLogListResponse)
async def list_activity_logs(
    category: str | None = Query(default=None),
    severity: LogSeverity | None = Query(default=None),
    limit: int = Query(default=100, ge=1),
    _admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> ActivityLogListResponse:
    logs = await service.list_logs(
        session,
        category=category,
        severity=severity,
        limit=min(limit, settings.activity_log_page_limit),
    )
    return ActivityLogListResponse(items=[ActivityLogResponse.model_validate(entry) for entry in logs])
