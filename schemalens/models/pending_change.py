"""Pending change model for reviewable schema deltas."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from schemalens.models.base import Base, CreatedAtMixin, IdMixin


class PendingChange(Base, IdMixin, CreatedAtMixin):
    """One detected schema delta awaiting (or exempt from) review."""

    __tablename__ = "pending_changes"

    project_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    change_type: Mapped[str] = mapped_column(String(32), nullable=False)
    change_source: Mapped[str] = mapped_column(String(32), nullable=False)
    table_name: Mapped[str] = mapped_column(String(511), nullable=False)
    column_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_value_json: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)
    new_value_json: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)
    suggested_action: Mapped[str | None] = mapped_column(String(64), nullable=True)
    suggested_payload_json: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True, nullable=False)
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
