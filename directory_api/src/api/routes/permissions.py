from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.core.deps import get_current_user, get_permission_service
from src.core.roles import Role
from src.schemas.permissions import EffectivePermission, PermissionRequest
from src.services.permissions import PermissionService

router = APIRouter(prefix="/me", tags=["Permissions"])


# PUBLIC_INTERFACE
@router.get(
    "/permissions",
    response_model=EffectivePermission,
    summary="Check permission",
    description="Evaluate the current user's effective permission for an action and optional site/place scope.",
)
async def check_my_permission(
    action: str = Query(..., min_length=1),
    required_role: Role = Query(..., description="Minimum role, e.g. 'editor'"),
    site_id: Optional[str] = Query(default=None),
    place_id: Optional[str] = Query(default=None),
    user=Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service),
) -> EffectivePermission:
    request = PermissionRequest(
        action=action, required_role=required_role.value, site_id=site_id, place_id=place_id
    )
    return await service.check_permission(user.id, user.global_role, request)
