from __future__ import annotations

import logging
from typing import List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from src.core.errors import NotFoundError, SlugConflictError
from src.db.models.slugs import SiteKeyRecord, SlugBindingRecord
from src.schemas.resolution import EntityRef, Lang, SiteKeyBinding, SlugBinding
from .base import BaseRepository

logger = logging.getLogger(__name__)


def _to_site_key(row: SiteKeyRecord, redirect_to: Optional[SiteKeyBinding] = None) -> SiteKeyBinding:
    return SiteKeyBinding(
        lang=row.lang,
        key=row.key,
        site_id=row.site_id,
        is_primary=row.is_primary,
        is_active=row.is_active,
        redirect_to=redirect_to,
    )


def _to_binding(row: SlugBindingRecord, redirect_to: Optional[str] = None) -> SlugBinding:
    return SlugBinding(
        lang=row.lang,
        site_id=row.site_id,
        slug=row.slug,
        entity=EntityRef(entity_type=row.entity_type, entity_id=row.entity_id),
        is_canonical=row.is_canonical,
        is_active=row.is_active,
        redirect_to=redirect_to,
    )


class SlugRepository(BaseRepository):
    """Site key and slug binding lookups, and the publish/rename write path."""

    # Site keys
    async def _get_site_key(self, lang: Lang, key: str) -> Optional[SiteKeyRecord]:
        stmt = select(SiteKeyRecord).where(SiteKeyRecord.lang == lang, SiteKeyRecord.key == key)
        return await self.scalar_one_or_none(stmt)

    # PUBLIC_INTERFACE
    async def find_site_key(self, lang: Lang, key: str) -> Optional[SiteKeyBinding]:
        """Return the active site key for (lang, key) with its active redirect target, or None."""
        row = await self._get_site_key(lang, key)
        if row is None or not row.is_active:
            return None
        target = None
        if row.redirect_to_id is not None:
            target_row = await self.session.get(SiteKeyRecord, row.redirect_to_id)
            if target_row is not None and target_row.is_active:
                target = _to_site_key(target_row)
        return _to_site_key(row, target)

    # PUBLIC_INTERFACE
    async def find_primary_site_key(self, lang: Lang, site_id: str) -> Optional[SiteKeyBinding]:
        """Return the active primary key of the site in `lang`, or None."""
        stmt = select(SiteKeyRecord).where(
            SiteKeyRecord.lang == lang,
            SiteKeyRecord.site_id == site_id,
            SiteKeyRecord.is_primary.is_(True),
            SiteKeyRecord.is_active.is_(True),
        )
        row = await self.scalar_one_or_none(stmt)
        return _to_site_key(row) if row else None

    async def add_site_key(
        self, lang: Lang, key: str, site_id: str, *, is_primary: bool = True, is_active: bool = True
    ) -> SiteKeyBinding:
        """
        Register a public key for a site. A new primary key demotes the previous
        one, which keeps resolving as an alias.
        """
        if await self._get_site_key(lang, key) is not None:
            raise SlugConflictError("Site key is already taken", details={"lang": lang.value, "key": key})
        if is_primary:
            await self.execute(
                update(SiteKeyRecord)
                .where(
                    SiteKeyRecord.lang == lang,
                    SiteKeyRecord.site_id == site_id,
                    SiteKeyRecord.is_primary.is_(True),
                )
                .values(is_primary=False)
                .execution_options(synchronize_session="fetch")
            )
        row = SiteKeyRecord(lang=lang, key=key, site_id=site_id, is_primary=is_primary, is_active=is_active)
        await self.add(row)
        await self.commit()
        return _to_site_key(row)

    async def redirect_site_key(self, lang: Lang, key: str, target_key: str) -> None:
        """Point an alias key explicitly at another key."""
        row = await self._get_site_key(lang, key)
        target = await self._get_site_key(lang, target_key)
        if row is None or target is None:
            raise NotFoundError("Site key not found", details={"lang": lang.value, "key": key, "target": target_key})
        row.redirect_to_id = target.id
        await self.commit()

    # Slug bindings
    async def _get_record(self, lang: Lang, site_id: str, slug: str) -> Optional[SlugBindingRecord]:
        stmt = select(SlugBindingRecord).where(
            SlugBindingRecord.site_id == site_id,
            SlugBindingRecord.lang == lang,
            SlugBindingRecord.slug == slug,
        )
        return await self.scalar_one_or_none(stmt)

    # PUBLIC_INTERFACE
    async def find_binding(self, lang: Lang, site_id: str, slug: str) -> Optional[SlugBinding]:
        """Return the binding for the exact slug in the site, in any state, or None."""
        row = await self._get_record(lang, site_id, slug)
        if row is None:
            return None
        redirect_to = None
        if row.redirect_to_id is not None:
            target = await self.session.get(SlugBindingRecord, row.redirect_to_id)
            if target is not None and target.is_active:
                redirect_to = target.slug
        return _to_binding(row, redirect_to)

    # PUBLIC_INTERFACE
    async def find_canonical(self, lang: Lang, entity: EntityRef) -> Optional[SlugBinding]:
        """Return the active canonical binding of `entity` in `lang`, or None."""
        stmt = select(SlugBindingRecord).where(
            SlugBindingRecord.lang == lang,
            SlugBindingRecord.entity_type == entity.entity_type,
            SlugBindingRecord.entity_id == entity.entity_id,
            SlugBindingRecord.is_canonical.is_(True),
            SlugBindingRecord.is_active.is_(True),
        )
        row = await self.scalar_one_or_none(stmt)
        return _to_binding(row) if row else None

    async def list_bindings(self, lang: Lang, entity: EntityRef) -> List[SlugBinding]:
        stmt = (
            select(SlugBindingRecord)
            .where(
                SlugBindingRecord.lang == lang,
                SlugBindingRecord.entity_type == entity.entity_type,
                SlugBindingRecord.entity_id == entity.entity_id,
            )
            .order_by(SlugBindingRecord.created_at)
        )
        return [_to_binding(r) for r in await self.scalars(stmt)]

    async def entity_site_ids(self, entity: EntityRef) -> Set[str]:
        """Sites that already hold a binding for `entity`, in any language."""
        stmt = select(SlugBindingRecord.site_id).where(
            SlugBindingRecord.entity_type == entity.entity_type,
            SlugBindingRecord.entity_id == entity.entity_id,
        )
        return set(await self.scalars(stmt))

    def _conflict(self, lang: Lang, site_id: str, slug: str) -> SlugConflictError:
        return SlugConflictError(
            "Slug is already used by another entity",
            details={"lang": lang.value, "site_id": site_id, "slug": slug},
        )

    # PUBLIC_INTERFACE
    async def publish_slug(self, lang: Lang, site_id: str, slug: str, entity: EntityRef) -> List[SlugBinding]:
        """
        Make (lang, site_id, slug) the canonical binding of `entity`.

        The previous canonical binding is demoted, not deleted. Re-publishing a
        historical or deactivated slug of the same entity promotes it again.

        Returns:
            The new canonical binding, followed by the demoted one if any.
        Raises:
            SlugConflictError: the slug is bound to a different entity, or a
                concurrent publish of the same entity or slug committed first.
        """
        existing = await self._get_record(lang, site_id, slug)
        if existing is not None and (
            existing.entity_type != entity.entity_type or existing.entity_id != entity.entity_id
        ):
            raise self._conflict(lang, site_id, slug)

        previous = await self.find_canonical(lang, entity)

        demote = (
            update(SlugBindingRecord)
            .where(
                SlugBindingRecord.lang == lang,
                SlugBindingRecord.entity_type == entity.entity_type,
                SlugBindingRecord.entity_id == entity.entity_id,
                SlugBindingRecord.is_canonical.is_(True),
            )
            .values(is_canonical=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(demote)

        if existing is None:
            row = SlugBindingRecord(
                lang=lang,
                site_id=site_id,
                slug=slug,
                entity_type=entity.entity_type,
                entity_id=entity.entity_id,
                is_canonical=True,
            )
            await self.add(row)
        else:
            row = existing
            row.is_canonical = True
            row.is_active = True
            row.redirect_to_id = None
        try:
            await self.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent publish of the same slug or entity
            raise self._conflict(lang, site_id, slug) from exc

        changed = [_to_binding(row)]
        if previous is not None and previous.slug != slug:
            changed.append(previous.model_copy(update={"is_canonical": False}))
            logger.info(
                "Renamed %s %s in %s on site %s: %s -> %s",
                entity.entity_type.value, entity.entity_id, lang.value, site_id, previous.slug, slug,
            )
        return changed

    # PUBLIC_INTERFACE
    async def deactivate_slug(self, lang: Lang, site_id: str, slug: str) -> SlugBinding:
        """
        Stop a slug from resolving. The row is kept; publishing it again reactivates it.

        Raises:
            NotFoundError: no binding exists for the slug.
        """
        row = await self._get_record(lang, site_id, slug)
        if row is None:
            raise NotFoundError("Slug not found", details={"lang": lang.value, "site_id": site_id, "slug": slug})
        row.is_active = False
        row.is_canonical = False
        await self.commit()
        logger.info("Deactivated slug %s/%s/%s", lang.value, site_id, slug)
        return _to_binding(row)

    async def redirect_slug(self, lang: Lang, site_id: str, slug: str, target_slug: str) -> None:
        """Point a slug explicitly at another slug of the same site and language."""
        row = await self._get_record(lang, site_id, slug)
        target = await self._get_record(lang, site_id, target_slug)
        if row is None or target is None:
            raise NotFoundError(
                "Slug not found", details={"lang": lang.value, "site_id": site_id, "slug": slug, "target": target_slug}
            )
        row.redirect_to_id = target.id
        await self.commit()
