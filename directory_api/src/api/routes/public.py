from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import RedirectResponse

from src.core.deps import get_routing_gateway
from src.schemas.resolution import Lang, RedirectTo, RequestTarget, ResolutionResult
from src.services.routing import ENTITY_PATH_SEGMENTS, RoutingGateway

PUBLIC_PREFIX = "/public"

router = APIRouter(prefix=PUBLIC_PREFIX, tags=["Public"])

_SEGMENTS = set(ENTITY_PATH_SEGMENTS.values())


# PUBLIC_INTERFACE
@router.get(
    "/{lang}/{site_key}/resolve/{slug}",
    response_model=ResolutionResult,
    summary="Resolve slug",
    description="Resolve a public slug to its entity and canonical address without redirecting.",
)
async def resolve_slug(
    lang: Lang,
    site_key: str = Path(..., min_length=1),
    slug: str = Path(..., min_length=1),
    gateway: RoutingGateway = Depends(get_routing_gateway),
) -> ResolutionResult:
    return await gateway.resolve(lang, site_key, slug)


# PUBLIC_INTERFACE
@router.get(
    "/{lang}/{site_key}/{segment}/{slug}",
    response_model=ResolutionResult,
    summary="Open entity",
    description=(
        "Resolve the entity at a public path. Non-canonical paths answer with a 301 "
        "to the canonical path; the query string is preserved."
    ),
    responses={301: {"description": "Redirect to the canonical path"}},
)
async def open_entity(
    request: Request,
    lang: Lang,
    site_key: str = Path(..., min_length=1),
    segment: str = Path(...),
    slug: str = Path(..., min_length=1),
    gateway: RoutingGateway = Depends(get_routing_gateway),
):
    if segment not in _SEGMENTS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown entity path")

    current = RequestTarget(
        lang=lang,
        site_key=site_key,
        slug=slug,
        path=f"/{lang.value}/{site_key}/{segment}/{slug}",
        query=request.url.query,
    )
    decision = await gateway.navigate(current)
    if isinstance(decision, RedirectTo):
        # Mount prefix in front of /{lang}/{site_key}/{segment}/{slug}
        prefix = request.url.path.rsplit("/", 4)[0]
        return RedirectResponse(
            url=f"{prefix}{decision.location}",
            status_code=status.HTTP_301_MOVED_PERMANENTLY,
        )
    return decision.resolution
