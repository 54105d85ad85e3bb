from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from tumi.domain.activity_log.statuses import LogSeverity
from tumi.infra.db import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    severity: Mapped[LogSeverity] = mapped_column(
        sa.Enum(LogSeverity, name="log_severity"),
        nullable=False,
        default=LogSeverity.INFO,
    )
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    old_data: Mapped[Any] = mapped_column(JSON, nullable=True)
    involved_user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )

    __table_args__ = (
        Index("ix_activity_logs_category_created", "category", "created_at"),
        Index("ix_activity_logs_severity", "severity"),
    )
