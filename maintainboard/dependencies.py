"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import MaintainboardConfig, get_config
from .database import get_session_factory
from .utils.logging import get_logger
from .utils.security import decode_access_token

_dep_logger = get_logger("dependencies")

security_scheme = HTTPBearer(auto_error=False)

_config_instance: MaintainboardConfig | None = None

# Engine singletons
_template_store = None
_override_store = None
_autosave_scheduler = None
_widget_data_provider = None
_dashboard_service = None


def get_app_config() -> MaintainboardConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    config: MaintainboardConfig = Depends(get_app_config),
) -> dict:
    """Validate the Bearer JWT and return its claims."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials, config.secret_key, config.jwt_algorithm)
    if payload is None or not payload.get("sub"):
        _dep_logger.debug("token_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_template_store():
    """Get the Template Store singleton."""
    global _template_store
    if _template_store is None:
        from .engine.template_store import TemplateStore
        from .utils.cache import VersionedCache
        config = get_app_config()
        _template_store = TemplateStore(
            db_session_factory=get_session_factory(config),
            cache=VersionedCache(max_entries=config.template_cache_max_entries),
            max_attempts=config.persist_max_attempts,
            backoff_base=config.persist_backoff_base,
        )
    return _template_store


def get_override_store():
    """Get the Override Store singleton."""
    global _override_store
    if _override_store is None:
        from .engine.override_store import OverrideStore
        config = get_app_config()
        _override_store = OverrideStore(
            db_session_factory=get_session_factory(config),
            max_attempts=config.persist_max_attempts,
            backoff_base=config.persist_backoff_base,
        )
    return _override_store


def get_autosave_scheduler():
    """Get the Autosave Scheduler singleton."""
    global _autosave_scheduler
    if _autosave_scheduler is None:
        from .engine.autosave import AutosaveScheduler
        _autosave_scheduler = AutosaveScheduler(
            get_override_store(),
            get_template_store(),
            interval_ms=get_app_config().autosave_interval_ms,
        )
    return _autosave_scheduler


def get_widget_data_provider():
    """Get the widget data provider singleton."""
    global _widget_data_provider
    if _widget_data_provider is None:
        from .engine.widget_data import StaticWidgetDataProvider
        _widget_data_provider = StaticWidgetDataProvider()
    return _widget_data_provider


def get_dashboard_service():
    """Get the Dashboard Service singleton."""
    global _dashboard_service
    if _dashboard_service is None:
        from .engine.dashboard_service import DashboardService
        _dashboard_service = DashboardService(
            get_template_store(),
            get_override_store(),
            get_autosave_scheduler(),
            get_widget_data_provider(),
        )
    return _dashboard_service
