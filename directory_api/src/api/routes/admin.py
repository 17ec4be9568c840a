from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from src.core.deps import (
    get_current_user,
    get_membership_repository,
    get_permission_service,
    get_resolution_cache,
    get_slug_repository,
    get_slug_resolver,
    require_permission,
)
from src.core.errors import NotFoundError
from src.core.roles import Role
from src.repositories.security import MembershipRepository
from src.repositories.slugs import SlugRepository
from src.schemas.permissions import MembershipRead, PermissionRequest
from src.schemas.common import MessageResponse
from src.schemas.resolution import EntityRef, EntityType, Lang, SlugPublish, SlugTriple
from src.services.permissions import PermissionService
from src.services.routing import ResolutionCache
from src.services.slug_resolver import SlugResolver

router = APIRouter(prefix="/admin", tags=["Admin"])


# PUBLIC_INTERFACE
@router.get(
    "/sites/{site_id}/memberships",
    response_model=List[MembershipRead],
    summary="List site memberships",
    dependencies=[Depends(require_permission("listSiteMemberships", Role.SITEADMIN, place_param=None))],
)
async def list_site_memberships(
    site_id: str = Path(...),
    repo: MembershipRepository = Depends(get_membership_repository),
) -> List[MembershipRead]:
    return await repo.list_site_memberships(site_id)


# PUBLIC_INTERFACE
@router.get(
    "/places/{place_id}/memberships",
    response_model=List[MembershipRead],
    summary="List place memberships",
    dependencies=[Depends(require_permission("listPlaceMemberships", Role.PLACEOWNER, site_param=None))],
)
async def list_place_memberships(
    place_id: str = Path(...),
    repo: MembershipRepository = Depends(get_membership_repository),
) -> List[MembershipRead]:
    return await repo.list_place_memberships(place_id)


async def _authorize_entity_edit(
    user,
    service: PermissionService,
    slugs: SlugRepository,
    action: str,
    site_id: str,
    entity: EntityRef,
) -> None:
    """
    Require editor rights on the site that owns `entity`.

    The site comes from the resolved site key and the place scope from the
    entity itself, so a membership on one site never reaches another site's
    entities.
    """
    owners = await slugs.entity_site_ids(entity)
    if owners - {site_id}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Entity belongs to another site",
        )
    decision = await service.check_permission(
        user.id,
        user.global_role,
        PermissionRequest(
            action=action,
            required_role=Role.EDITOR.value,
            site_id=site_id,
            place_id=entity.entity_id if entity.entity_type is EntityType.PLACE else None,
        ),
    )
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions. Required: {Role.EDITOR.value}",
        )


# PUBLIC_INTERFACE
@router.post(
    "/slugs",
    response_model=List[SlugTriple],
    status_code=status.HTTP_201_CREATED,
    summary="Publish slug",
    description=(
        "Make a slug the canonical address of an entity. The previous canonical slug "
        "keeps working as a redirect. Returns the addresses whose resolution changed."
    ),
)
async def publish_slug(
    payload: SlugPublish,
    user=Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service),
    resolver: SlugResolver = Depends(get_slug_resolver),
    repo: SlugRepository = Depends(get_slug_repository),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> List[SlugTriple]:
    site = await resolver.resolve_site(payload.lang, payload.site_key)
    entity = EntityRef(entity_type=payload.entity_type, entity_id=payload.entity_id)
    await _authorize_entity_edit(user, service, repo, "publishSlug", site.site_id, entity)

    changed = await repo.publish_slug(payload.lang, site.site_id, payload.slug, entity)
    # Every alias of the entity now points at a new canonical address.
    cache.invalidate_entity(entity)
    return [SlugTriple(lang=payload.lang, site_key=site.canonical_key, slug=b.slug) for b in changed]


# PUBLIC_INTERFACE
@router.delete(
    "/slugs/{lang}/{site_key}/{slug}",
    response_model=MessageResponse,
    summary="Deactivate slug",
    description="Stop a slug from resolving. The binding is kept and can be published again.",
)
async def deactivate_slug(
    lang: Lang,
    site_key: str = Path(..., min_length=1),
    slug: str = Path(..., min_length=1),
    user=Depends(get_current_user),
    service: PermissionService = Depends(get_permission_service),
    resolver: SlugResolver = Depends(get_slug_resolver),
    repo: SlugRepository = Depends(get_slug_repository),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> MessageResponse:
    site = await resolver.resolve_site(lang, site_key)
    binding = await repo.find_binding(lang, site.site_id, slug)
    if binding is None:
        raise NotFoundError("Slug not found", details={"lang": lang.value, "site_key": site_key, "slug": slug})
    await _authorize_entity_edit(user, service, repo, "deactivateSlug", site.site_id, binding.entity)

    await repo.deactivate_slug(lang, site.site_id, slug)
    cache.invalidate_entity(binding.entity)
    return MessageResponse(message="Slug deactivated")
