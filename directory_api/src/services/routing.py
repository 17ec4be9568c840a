from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

from cachetools import TTLCache

from src.schemas.resolution import (
    EntityRef,
    EntityType,
    Lang,
    RedirectTo,
    RequestTarget,
    ResolutionResult,
    Serve,
    SlugTriple,
)
from src.services.slug_resolver import SlugResolver

logger = logging.getLogger(__name__)

MAX_CACHE_TTL_SECONDS = 60.0

# URL segment used for each entity type in public paths
ENTITY_PATH_SEGMENTS = {
    EntityType.PLACE: "place",
    EntityType.EVENT: "event",
    EntityType.STATIC_PAGE: "static-page",
    EntityType.LEGAL_PAGE: "legal",
}

NavigationDecision = Union[Serve, RedirectTo]


# PUBLIC_INTERFACE
def build_public_path(triple: SlugTriple, entity_type: EntityType) -> str:
    """Return the public path of an entity, e.g. /hu/site1/place/uj-nev."""
    segment = ENTITY_PATH_SEGMENTS[entity_type]
    return f"/{triple.lang.value}/{triple.site_key}/{segment}/{triple.slug}"


def compose_url(path: str, query: str = "", fragment: str = "") -> str:
    url = path
    if query:
        url += f"?{query}"
    if fragment:
        url += f"#{fragment}"
    return url


class ResolutionCache:
    """
    Short-lived cache of successful slug resolutions.

    Canonical bindings change on rename, so entries expire after at most
    MAX_CACHE_TTL_SECONDS. A TTL of 0 disables caching.
    """

    def __init__(self, ttl_seconds: float, maxsize: int = 4096) -> None:
        if ttl_seconds < 0 or ttl_seconds > MAX_CACHE_TTL_SECONDS:
            raise ValueError(f"ttl_seconds must be between 0 and {MAX_CACHE_TTL_SECONDS:g}")
        self.ttl_seconds = ttl_seconds
        self._cache: Optional[TTLCache] = (
            TTLCache(maxsize=maxsize, ttl=ttl_seconds) if ttl_seconds > 0 else None
        )

    @staticmethod
    def _key(triple: SlugTriple) -> Tuple[str, str, str]:
        return (triple.lang.value, triple.site_key, triple.slug)

    def get(self, triple: SlugTriple) -> Optional[ResolutionResult]:
        if self._cache is None:
            return None
        return self._cache.get(self._key(triple))

    def put(self, triple: SlugTriple, result: ResolutionResult) -> None:
        if self._cache is not None:
            self._cache[self._key(triple)] = result

    def invalidate(self, triple: SlugTriple) -> None:
        if self._cache is not None:
            self._cache.pop(self._key(triple), None)

    def invalidate_entity(self, entity: EntityRef) -> int:
        """Drop every cached resolution of `entity`, whichever address it was requested under."""
        if self._cache is None:
            return 0
        stale = [key for key, result in list(self._cache.items()) if result.entity == entity]
        for key in stale:
            self._cache.pop(key, None)
        return len(stale)

    def clear(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def __len__(self) -> int:
        return 0 if self._cache is None else len(self._cache)


class RoutingGateway:
    """
    Turns slug resolutions into navigation decisions.

    A redirect is only emitted when the composed target differs from the
    composed current URL; otherwise the entity is served in place. That
    comparison is the only loop guard, no hop counter is kept.
    """

    def __init__(self, resolver: SlugResolver, cache: Optional[ResolutionCache] = None) -> None:
        self.resolver = resolver
        self.cache = cache

    # PUBLIC_INTERFACE
    async def resolve(self, lang: Lang, site_key: str, slug: str) -> ResolutionResult:
        """
        Resolve a triple, reusing a cached result when one is still fresh.

        NotFoundError and UnavailableError propagate and are never cached.
        """
        triple = SlugTriple(lang=lang, site_key=site_key, slug=slug)
        if self.cache is not None:
            cached = self.cache.get(triple)
            if cached is not None:
                return cached
        result = await self.resolver.resolve(lang, site_key, slug)
        if self.cache is not None:
            self.cache.put(triple, result)
        return result

    # PUBLIC_INTERFACE
    def route(self, current: RequestTarget, result: ResolutionResult) -> NavigationDecision:
        """
        Decide between serving the current URL and redirecting to the canonical one.

        The current path is compared with the canonical public path even when
        the resolution needs no redirect, so a canonical slug requested under
        the wrong entity segment is redirected too. Query and fragment of the
        current request are carried onto the target.
        """
        target = compose_url(
            build_public_path(result.canonical, result.entity_type),
            current.query,
            current.fragment,
        )
        here = compose_url(current.path, current.query, current.fragment)
        if target == here:
            if result.needs_redirect:
                logger.warning("Redirect target equals current URL %s; serving instead", here)
            return Serve(resolution=result)

        logger.info("Redirecting %s -> %s", here, target)
        return RedirectTo(location=target, resolution=result)

    # PUBLIC_INTERFACE
    async def navigate(self, current: RequestTarget) -> NavigationDecision:
        """Resolve the current request once and route it."""
        result = await self.resolve(current.lang, current.site_key, current.slug)
        return self.route(current, result)
