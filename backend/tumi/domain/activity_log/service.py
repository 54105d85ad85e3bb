from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.activity_log.db_models import ActivityLog
from tumi.domain.activity_log.statuses import LogSeverity

logger = logging.getLogger(__name__)


def to_json_payload(value: Any) -> Any:
    """Coerce Stripe objects, ORM rows and exceptions into plain JSON data."""
    if value is None:
        return None
    if isinstance(value, BaseException):
        return {"error_type": type(value).__name__, "message": str(value)}
    mapper = getattr(type(value), "__mapper__", None)
    if mapper is not None:
        state = sa_inspect(value)
        value = {attr.key: state.dict.get(attr.key) for attr in mapper.column_attrs}
    to_dict = getattr(value, "to_dict_recursive", None) or getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, dict):
        value = to_dict()
    return json.loads(json.dumps(value, default=str))


async def record(
    session: AsyncSession,
    *,
    message: str,
    severity: LogSeverity = LogSeverity.INFO,
    category: str = "general",
    data: Any = None,
    old_data: Any = None,
    involved_user_id: str | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        message=message,
        severity=severity,
        category=category,
        data=to_json_payload(data),
        old_data=to_json_payload(old_data),
        involved_user_id=involved_user_id,
    )
    session.add(entry)
    logger.log(
        severity.log_level,
        "activity_logged",
        extra={"extra": {"category": category, "severity": severity.value, "activity_message": message}},
    )
    return entry


async def list_logs(
    session: AsyncSession,
    *,
    category: str | None = None,
    severity: LogSeverity | None = None,
    limit: int = 100,
) -> list[ActivityLog]:
    stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    if category:
        stmt = stmt.where(ActivityLog.category == category)
    if severity:
        stmt = stmt.where(ActivityLog.severity == severity)
    result = await session.execute(stmt.limit(max(1, limit)))
    return list(result.scalars().all())
