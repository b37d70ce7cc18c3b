"""Role-Based Access Control — capability checks on the verified token claims."""

from fastapi import Depends, HTTPException, status

from ..dependencies import get_current_user
from ..utils.logging import get_logger

logger = get_logger("auth.rbac")


def get_permission_set(user: dict) -> frozenset[str]:
    """The caller's PermissionSet, taken from the token's ``permissions`` claim."""
    raw = user.get("permissions") or []
    if isinstance(raw, str):
        raw = raw.split()
    return frozenset(str(p) for p in raw)


def require_permission(*required_perms: str):
    """FastAPI dependency factory that checks user has required permissions."""
    async def _check(current_user: dict = Depends(get_current_user)) -> dict:
        user_perms = get_permission_set(current_user)

        for perm in required_perms:
            if perm not in user_perms:
                logger.info("permission_denied", user_id=current_user.get("sub"), permission=perm)
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission required: {perm}",
                )

        return current_user

    return _check
