"""User layout override model — per-user deviation from a dashboard template."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserLayoutOverrideRecord(Base):
    __tablename__ = "user_layout_overrides"
    __table_args__ = (
        UniqueConstraint("user_id", "template_id", name="uq_user_layout_override"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    template_id: Mapped[str] = mapped_column(String(100), nullable=False)
    template_version: Mapped[int] = mapped_column(Integer, nullable=False)
    widget_positions_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    widget_visibility_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    override_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
