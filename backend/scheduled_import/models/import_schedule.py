from __future__ import annotations

import uuid
from datetime import datetime, time

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text, Time, func, text
from sqlalchemy.orm import Mapped, mapped_column

from scheduled_import.db.base import Base


class ImportSchedule(Base):
    __tablename__ = "import_schedules"

    __table_args__ = (
        CheckConstraint("current_offset >= 0", name="ck_import_schedules_offset_non_negative"),
        CheckConstraint(
            "status in ('idle','running','importing','converting','completed','failed')",
            name="ck_import_schedules_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"), default=False)
    scheduled_time: Mapped[time] = mapped_column(Time, nullable=False)
    auto_convert_images: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )

    # idle/running/importing/converting/completed/failed
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="idle", default="idle")
    current_offset: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    total_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    heartbeat_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency counter for run-state writes.
    revision: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
