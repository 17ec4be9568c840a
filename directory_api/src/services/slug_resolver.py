from __future__ import annotations

import logging
from typing import Optional, Protocol

from src.core.errors import DirectoryError, NotFoundError, UnavailableError
from src.schemas.resolution import (
    EntityRef,
    Lang,
    ResolutionResult,
    ResolvedSite,
    SiteKeyBinding,
    SlugBinding,
    SlugTriple,
)

logger = logging.getLogger(__name__)


class SlugLookup(Protocol):
    """Read-only lookup capability supplied by the persistence layer."""

    async def find_site_key(self, lang: Lang, key: str) -> Optional[SiteKeyBinding]:
        """Active site key for (lang, key), or None."""
        ...

    async def find_primary_site_key(self, lang: Lang, site_id: str) -> Optional[SiteKeyBinding]:
        """Active primary key of the site in `lang`, or None."""
        ...

    async def find_binding(self, lang: Lang, site_id: str, slug: str) -> Optional[SlugBinding]:
        """Binding for the exact slug in the site, active or not, or None."""
        ...

    async def find_canonical(self, lang: Lang, entity: EntityRef) -> Optional[SlugBinding]:
        """Active canonical binding of the entity in `lang`, or None."""
        ...


class SlugResolver:
    """
    Maps a public {lang, site_key, slug} triple to an entity and reports
    whether the triple is that entity's canonical address.

    The site key is resolved first: an alias key redirects to the explicit
    target key or to the site's primary key. The slug is then looked up
    within the resolved site. The request needs a redirect when either part
    is not canonical.

    Stateless and read-only; caching results is the caller's concern.
    """

    def __init__(self, lookup: SlugLookup) -> None:
        self.lookup = lookup

    # PUBLIC_INTERFACE
    async def resolve_site(self, lang: Lang, site_key: str) -> ResolvedSite:
        """
        Resolve a public site key to its site and canonical key.

        Raises:
            NotFoundError: no active key exists for (lang, site_key).
            UnavailableError: the lookup capability failed.
        """
        hit = await self._call_lookup("find_site_key", lang, site_key)
        if hit is None or not hit.is_active:
            raise NotFoundError("Site key not found", details={"lang": lang.value, "site_key": site_key})

        target = hit.redirect_to
        if target is not None and target.is_active:
            return ResolvedSite(site_id=target.site_id, lang=lang, canonical_key=target.key, redirected=True)

        if not hit.is_primary:
            primary = await self._call_lookup("find_primary_site_key", lang, hit.site_id)
            if primary is not None:
                return ResolvedSite(site_id=hit.site_id, lang=lang, canonical_key=primary.key, redirected=True)
            logger.warning("Site %s has no primary key in %s; serving alias %s", hit.site_id, lang.value, site_key)

        return ResolvedSite(site_id=hit.site_id, lang=lang, canonical_key=hit.key, redirected=False)

    # PUBLIC_INTERFACE
    async def resolve(self, lang: Lang, site_key: str, slug: str) -> ResolutionResult:
        """
        Resolve a slug triple.

        Parameters:
            lang: content language of the request
            site_key: public site key from the URL
            slug: public slug from the URL
        Returns:
            ResolutionResult with the canonical triple and whether to redirect.
        Raises:
            NotFoundError: the site key is unknown, or no active binding exists for the slug.
            UnavailableError: the lookup capability failed.
        """
        requested = SlugTriple(lang=lang, site_key=site_key, slug=slug)
        site = await self.resolve_site(lang, site_key)

        binding = await self._call_lookup("find_binding", lang, site.site_id, slug)
        if binding is None or not binding.is_active:
            raise NotFoundError(
                "Slug not found",
                details={"lang": lang.value, "site_key": site_key, "slug": slug},
            )

        canonical_slug = slug
        if binding.redirect_to:
            canonical_slug = binding.redirect_to
        elif not binding.is_canonical:
            canonical = await self._call_lookup("find_canonical", binding.lang, binding.entity)
            if canonical is None:
                logger.warning(
                    "No canonical binding for %s %s; serving %s as-is",
                    binding.entity.entity_type.value,
                    binding.entity.entity_id,
                    slug,
                )
            else:
                canonical_slug = canonical.slug

        target = SlugTriple(lang=lang, site_key=site.canonical_key, slug=canonical_slug)
        # Canonical state may have moved onto this very triple since the first lookup.
        if target == requested:
            return self._result(site, binding.entity, requested, needs_redirect=False)

        logger.info("Slug %s/%s/%s is not canonical; canonical is %s/%s/%s",
                    lang.value, site_key, slug, target.lang.value, target.site_key, target.slug)
        return self._result(site, binding.entity, target, needs_redirect=True)

    async def _call_lookup(self, name: str, *args):
        try:
            return await getattr(self.lookup, name)(*args)
        except DirectoryError:
            raise
        except Exception as exc:
            logger.warning("Slug lookup %s failed: %s", name, exc)
            raise UnavailableError("Slug lookup is unavailable") from exc

    @staticmethod
    def _result(site: ResolvedSite, entity: EntityRef, canonical: SlugTriple, needs_redirect: bool) -> ResolutionResult:
        return ResolutionResult(
            site_id=site.site_id,
            entity_type=entity.entity_type,
            entity_id=entity.entity_id,
            canonical=canonical,
            needs_redirect=needs_redirect,
        )
