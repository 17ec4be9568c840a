from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select

from src.db.models.security import PlaceMembershipRecord, SiteMembershipRecord, User
from src.schemas.permissions import MembershipRead, PlaceMembership, SiteMembership
from .base import BaseRepository


class MembershipRepository(BaseRepository):
    """Repository for users and their site/place memberships."""

    # Users
    async def get_user(self, user_id: UUID) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    # PUBLIC_INTERFACE
    async def load_memberships(self, user_id: UUID) -> Tuple[List[SiteMembership], List[PlaceMembership]]:
        """Return every site and place membership held by the user."""
        site_rows = await self.scalars(
            select(SiteMembershipRecord).where(SiteMembershipRecord.user_id == user_id)
        )
        place_rows = await self.scalars(
            select(PlaceMembershipRecord).where(PlaceMembershipRecord.user_id == user_id)
        )
        return (
            [SiteMembership.model_validate(r) for r in site_rows],
            [PlaceMembership.model_validate(r) for r in place_rows],
        )

    async def list_site_memberships(self, site_id: str) -> List[MembershipRead]:
        stmt = (
            select(SiteMembershipRecord)
            .where(SiteMembershipRecord.site_id == site_id)
            .order_by(SiteMembershipRecord.created_at)
        )
        return [
            MembershipRead(user_id=str(r.user_id), scope_id=r.site_id, role=r.role)
            for r in await self.scalars(stmt)
        ]

    async def list_place_memberships(self, place_id: str) -> List[MembershipRead]:
        stmt = (
            select(PlaceMembershipRecord)
            .where(PlaceMembershipRecord.place_id == place_id)
            .order_by(PlaceMembershipRecord.created_at)
        )
        return [
            MembershipRead(user_id=str(r.user_id), scope_id=r.place_id, role=r.role)
            for r in await self.scalars(stmt)
        ]

    # Writes used by seeding and administration
    async def create_user(self, *, email: str, global_role=None, is_active: bool = True) -> User:
        user = User(email=email, is_active=is_active)
        if global_role is not None:
            user.global_role = global_role
        await self.add(user)
        await self.commit()
        return user

    async def add_site_membership(self, user_id: UUID, site_id: str, role) -> None:
        await self.add(SiteMembershipRecord(user_id=user_id, site_id=site_id, role=role))
        await self.commit()

    async def add_place_membership(self, user_id: UUID, place_id: str, role) -> None:
        await self.add(PlaceMembershipRecord(user_id=user_id, place_id=place_id, role=role))
        await self.commit()
