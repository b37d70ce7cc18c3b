"""Dashboard template model — append-only history of published template versions."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DashboardTemplateRecord(Base):
    __tablename__ = "dashboard_templates"
    __table_args__ = (
        UniqueConstraint("template_id", "version", name="uq_dashboard_template_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document_json: Mapped[str] = mapped_column(Text, nullable=False)
    published_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
