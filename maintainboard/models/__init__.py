"""SQLAlchemy models package."""

from .base import Base
from .dashboard_template import DashboardTemplateRecord
from .user_layout_override import UserLayoutOverrideRecord

__all__ = [
    "Base",
    "DashboardTemplateRecord",
    "UserLayoutOverrideRecord",
]
