"""Dashboard routes — resolved layouts and per-user layout customization."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth.capabilities import VIEW_DASHBOARD
from ...auth.rbac import get_permission_set, require_permission
from ...contracts import AutosaveStatus, LayoutMutation, ResolvedLayout
from ...dependencies import get_dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/{template_id}", response_model=ResolvedLayout, response_model_by_alias=True)
async def get_dashboard(
    template_id: str,
    viewport_width: int = Query(1280, description="Client viewport width in pixels"),
    theme: Optional[str] = Query(None),
    include_data: bool = Query(True),
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    """Resolve the caller's dashboard for the given viewport."""
    service = get_dashboard_service()
    return await service.resolve_layout(
        current_user["sub"],
        template_id,
        get_permission_set(current_user),
        viewport_width,
        theme=theme,
        include_data=include_data,
    )


@router.post(
    "/{template_id}/mutations",
    status_code=202,
    response_model=AutosaveStatus,
    response_model_by_alias=True,
)
async def submit_mutations(
    template_id: str,
    body: LayoutMutation,
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    """Buffer layout edits; they are persisted when the autosave window closes."""
    service = get_dashboard_service()
    return await service.submit_mutation(
        current_user["sub"], template_id, body, get_permission_set(current_user)
    )


@router.post("/{template_id}/flush")
async def flush_mutations(
    template_id: str,
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    """Persist buffered edits now and return the stored override."""
    service = get_dashboard_service()
    override = await service.flush(current_user["sub"], template_id)
    if override is None:
        override = await service.get_override(current_user["sub"], template_id)
    return {
        "template_id": template_id,
        "override": override.model_dump(mode="json", by_alias=True) if override else None,
    }


@router.delete("/{template_id}/override")
async def reset_layout(
    template_id: str,
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    """Discard the caller's customization and pending edits."""
    service = get_dashboard_service()
    existed = await service.reset(current_user["sub"], template_id)
    return {"template_id": template_id, "reset": True, "existed": existed}
