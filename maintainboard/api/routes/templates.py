"""Template routes — read and publish versioned dashboard templates."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from ...auth.capabilities import MANAGE_DASHBOARDS, VIEW_DASHBOARD
from ...auth.rbac import require_permission
from ...dependencies import get_template_store
from ...engine.template_store import parse_template
from ...errors import InvalidTemplate
from ...utils.logging import get_logger

logger = get_logger("api.templates")

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("/{template_id}")
async def get_template(
    template_id: str,
    version: Optional[int] = Query(None, ge=1),
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    """Return a template document (latest version unless one is given)."""
    template = await get_template_store().get(template_id, version)
    return template.to_document()


@router.get("/{template_id}/versions")
async def list_versions(
    template_id: str,
    current_user: dict = Depends(require_permission(VIEW_DASHBOARD)),
):
    versions = await get_template_store().versions(template_id)
    return {"template_id": template_id, "versions": versions, "latest": versions[-1]}


@router.put("/{template_id}", status_code=201)
async def publish_template(
    template_id: str,
    document: dict[str, Any] = Body(...),
    current_user: dict = Depends(require_permission(MANAGE_DASHBOARDS)),
):
    """Publish ``document`` as the next version of ``template_id``."""
    if document.get("id", template_id) != template_id:
        raise InvalidTemplate(template_id, [f"id: body id '{document['id']}' does not match path"])
    template = parse_template({**document, "id": template_id})
    published = await get_template_store().put(template)
    logger.info("template_publish_requested", template_id=template_id,
                version=published.version, user_id=current_user.get("sub"))
    return published.to_document()
