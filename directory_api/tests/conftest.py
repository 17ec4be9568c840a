"""Shared pytest fixtures for the directory API tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.db.session import create_tables
from src.schemas.resolution import EntityRef, EntityType, Lang, SiteKeyBinding, SlugBinding


class InMemorySlugLookup:
    """
    Site key and slug lookup over in-memory lists, with call counting and fault injection.

    `add` registers `site_key` as the primary key of a site with the same id
    when that key is not known yet.
    """

    def __init__(self) -> None:
        self.site_keys: List[SiteKeyBinding] = []
        self.bindings: List[SlugBinding] = []
        self.calls: Dict[str, int] = {
            "find_site_key": 0,
            "find_primary_site_key": 0,
            "find_binding": 0,
            "find_canonical": 0,
        }
        self.fail_with: Optional[Exception] = None

    def add_site_key(
        self,
        lang: Lang,
        key: str,
        site_id: str,
        primary: bool = True,
        active: bool = True,
        redirect_to: Optional[SiteKeyBinding] = None,
    ) -> SiteKeyBinding:
        site_key = SiteKeyBinding(
            lang=lang, key=key, site_id=site_id, is_primary=primary, is_active=active, redirect_to=redirect_to
        )
        self.site_keys.append(site_key)
        return site_key

    def site_id_for(self, lang: Lang, key: str) -> str:
        for s in self.site_keys:
            if (s.lang, s.key) == (lang, key):
                return s.site_id
        return self.add_site_key(lang, key, site_id=key).site_id

    def add(
        self,
        lang: Lang,
        site_key: str,
        slug: str,
        entity: EntityRef,
        canonical: bool,
        active: bool = True,
        redirect_to: Optional[str] = None,
    ) -> SlugBinding:
        binding = SlugBinding(
            lang=lang,
            site_id=self.site_id_for(lang, site_key),
            slug=slug,
            entity=entity,
            is_canonical=canonical,
            is_active=active,
            redirect_to=redirect_to,
        )
        self.bindings.append(binding)
        return binding

    def _record(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail_with is not None:
            raise self.fail_with

    async def find_site_key(self, lang: Lang, key: str) -> Optional[SiteKeyBinding]:
        self._record("find_site_key")
        for s in self.site_keys:
            if (s.lang, s.key) == (lang, key) and s.is_active:
                return s
        return None

    async def find_primary_site_key(self, lang: Lang, site_id: str) -> Optional[SiteKeyBinding]:
        self._record("find_primary_site_key")
        for s in self.site_keys:
            if (s.lang, s.site_id) == (lang, site_id) and s.is_primary and s.is_active:
                return s
        return None

    async def find_binding(self, lang: Lang, site_id: str, slug: str) -> Optional[SlugBinding]:
        self._record("find_binding")
        for b in self.bindings:
            if (b.lang, b.site_id, b.slug) == (lang, site_id, slug):
                return b
        return None

    async def find_canonical(self, lang: Lang, entity: EntityRef) -> Optional[SlugBinding]:
        self._record("find_canonical")
        for b in self.bindings:
            if b.lang == lang and b.entity == entity and b.is_canonical and b.is_active:
                return b
        return None


PLACE = EntityRef(entity_type=EntityType.PLACE, entity_id="P1")
EVENT = EntityRef(entity_type=EntityType.EVENT, entity_id="E1")


@pytest.fixture
def renamed_place_lookup() -> InMemorySlugLookup:
    """
    Site S1 published as "site1", with the old Hungarian key "etyek" kept as an
    alias. Place P1 was renamed from 'regi-nev' to 'uj-nev' and also has an
    English canonical slug.
    """
    lookup = InMemorySlugLookup()
    lookup.add_site_key(Lang.HU, "site1", "S1")
    lookup.add_site_key(Lang.EN, "site1", "S1")
    lookup.add_site_key(Lang.HU, "etyek", "S1", primary=False)
    lookup.add(Lang.HU, "site1", "regi-nev", PLACE, canonical=False)
    lookup.add(Lang.HU, "site1", "uj-nev", PLACE, canonical=True)
    lookup.add(Lang.EN, "site1", "new-name", PLACE, canonical=True)
    lookup.add(Lang.HU, "site1", "szuret", EVENT, canonical=True)
    return lookup


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite engine with the lookup tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'directory.sqlite'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session

