from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Enum, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.core.roles import Role
from src.db.base import Base, TimestampMixin, UUIDPkMixin

_role_enum = Enum(Role, name="role", values_callable=lambda e: [m.value for m in e])


class User(UUIDPkMixin, TimestampMixin, Base):
    """Directory user with a global role."""
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    email: Mapped[str] = mapped_column(Text, nullable=False)
    global_role: Mapped[Role] = mapped_column(
        _role_enum, nullable=False, default=Role.VIEWER, server_default=Role.VIEWER.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class SiteMembershipRecord(UUIDPkMixin, TimestampMixin, Base):
    """Role grant of a user within one site."""
    __tablename__ = "site_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "site_id", name="uq_site_memberships_user_site"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    site_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    role: Mapped[Role] = mapped_column(_role_enum, nullable=False)


class PlaceMembershipRecord(UUIDPkMixin, TimestampMixin, Base):
    """Role grant of a user within one place."""
    __tablename__ = "place_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "place_id", name="uq_place_memberships_user_place"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    place_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    role: Mapped[Role] = mapped_column(_role_enum, nullable=False)
