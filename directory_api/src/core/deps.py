from __future__ import annotations

import logging
from functools import lru_cache
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.roles import Role
from src.core.security import get_token_subject
from src.core.settings import get_app_settings
from src.db.session import get_async_session
from src.repositories.security import MembershipRepository
from src.repositories.slugs import SlugRepository
from src.schemas.permissions import EffectivePermission, PermissionRequest
from src.services.permissions import PermissionService
from src.services.routing import ResolutionCache, RoutingGateway
from src.services.slug_resolver import SlugResolver

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession for the request."""
    async for session in get_async_session():
        yield session


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_resolution_cache() -> ResolutionCache:
    """Process-wide resolution cache sized from AppSettings."""
    settings = get_app_settings()
    return ResolutionCache(
        ttl_seconds=settings.RESOLUTION_CACHE_TTL_SECONDS,
        maxsize=settings.RESOLUTION_CACHE_MAXSIZE,
    )


# PUBLIC_INTERFACE
async def get_slug_repository(session: AsyncSession = Depends(get_session)) -> SlugRepository:
    """Slug repository bound to the request session."""
    return SlugRepository(session)


# PUBLIC_INTERFACE
async def get_slug_resolver(slugs: SlugRepository = Depends(get_slug_repository)) -> SlugResolver:
    """Slug resolver reading through the request session."""
    return SlugResolver(slugs)


# PUBLIC_INTERFACE
async def get_routing_gateway(
    resolver: SlugResolver = Depends(get_slug_resolver),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> RoutingGateway:
    """Routing gateway resolving through the request session and the shared cache."""
    return RoutingGateway(resolver, cache)


# PUBLIC_INTERFACE
async def get_membership_repository(session: AsyncSession = Depends(get_session)) -> MembershipRepository:
    """Membership repository bound to the request session."""
    return MembershipRepository(session)


# PUBLIC_INTERFACE
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    repo: MembershipRepository = Depends(get_membership_repository),
):
    """
    Resolve and return the current user from the Authorization bearer token.

    Raises:
        HTTPException: 401 for a missing/invalid token or unknown user, 403 for inactive users.
    """
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    subject = get_token_subject(credentials.credentials)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user_id = UUID(subject)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await repo.get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
async def get_permission_service(
    repo: MembershipRepository = Depends(get_membership_repository),
) -> PermissionService:
    """Permission service loading memberships through the request session."""
    return PermissionService(repo)


# PUBLIC_INTERFACE
def require_permission(
    action: str,
    required_role: Role,
    site_param: Optional[str] = "site_id",
    place_param: Optional[str] = "place_id",
):
    """
    Create a dependency that requires the current user to hold `required_role`
    for `action`, scoped by the site/place ids found in the path or query.

    Returns the EffectivePermission so handlers can record the winning grant.
    """

    async def _dep(
        request: Request,
        user=Depends(get_current_user),
        service: PermissionService = Depends(get_permission_service),
    ) -> EffectivePermission:
        def _param(name: Optional[str]) -> Optional[str]:
            if not name:
                return None
            return request.path_params.get(name) or request.query_params.get(name)

        decision = await service.check_permission(
            user.id,
            user.global_role,
            PermissionRequest(
                action=action,
                required_role=Role(required_role).value,
                site_id=_param(site_param),
                place_id=_param(place_param),
            ),
        )
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {Role(required_role).value}",
            )
        return decision

    return _dep
