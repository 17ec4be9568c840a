"""
Database seeding utilities for demo data.

Seeds:
- Site "S1" with public key "site1" in every language; in Hungarian it was
  renamed from "etyek", which keeps redirecting
- One place on site "S1" renamed once in Hungarian ("regi-nev" -> "uj-nev")
  and published in English ("new-name")
- A superadmin user and a site administrator for site "S1"

Usage:
  python -m src.db.seed
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.roles import Role
from src.db.models.security import User
from src.db.session import create_tables, get_async_session
from src.repositories.security import MembershipRepository
from src.repositories.slugs import SlugRepository
from src.schemas.resolution import EntityRef, EntityType, Lang

logger = logging.getLogger(__name__)

DEMO_SITE_ID = "S1"
DEMO_SITE_KEY = "site1"
DEMO_PLACE = EntityRef(entity_type=EntityType.PLACE, entity_id="P1")


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with demo slugs and users. Safe to run repeatedly.
    """
    await create_tables()
    async for session in get_async_session():
        await _seed_slugs(session)
        await _seed_users(session)


async def _seed_slugs(session: AsyncSession) -> None:
    repo = SlugRepository(session)
    if await repo.find_site_key(Lang.HU, DEMO_SITE_KEY) is not None:
        return
    # The Hungarian key was renamed; the old one stays as an alias.
    await repo.add_site_key(Lang.HU, "etyek", DEMO_SITE_ID)
    for lang in Lang:
        await repo.add_site_key(lang, DEMO_SITE_KEY, DEMO_SITE_ID)
    # Publishing in order leaves the first slug behind as a redirecting alias.
    await repo.publish_slug(Lang.HU, DEMO_SITE_ID, "regi-nev", DEMO_PLACE)
    await repo.publish_slug(Lang.HU, DEMO_SITE_ID, "uj-nev", DEMO_PLACE)
    await repo.publish_slug(Lang.EN, DEMO_SITE_ID, "new-name", DEMO_PLACE)
    logger.info("Seeded demo slug bindings for %s", DEMO_PLACE.entity_id)


async def _seed_users(session: AsyncSession) -> None:
    repo = MembershipRepository(session)
    existing = await repo.scalar_one_or_none(select(User).where(User.email == "superadmin@example.com"))
    if existing is not None:
        return
    await repo.create_user(email="superadmin@example.com", global_role=Role.SUPERADMIN)
    siteadmin = await repo.create_user(email="siteadmin@example.com")
    await repo.add_site_membership(siteadmin.id, DEMO_SITE_ID, Role.SITEADMIN)
    logger.info("Seeded demo users")


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
