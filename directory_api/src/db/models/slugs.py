from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, TimestampMixin, UUIDPkMixin
from src.schemas.resolution import EntityType, Lang

_lang_enum = Enum(Lang, name="lang", values_callable=lambda e: [m.value for m in e])


class SiteKeyRecord(UUIDPkMixin, TimestampMixin, Base):
    """
    Public key of a site in one language.

    At most one primary key per (lang, site_id); demoted keys keep resolving
    as aliases of the site.
    """
    __tablename__ = "site_keys"
    __table_args__ = (
        UniqueConstraint("lang", "key", name="uq_site_keys_lang_key"),
        Index(
            "uq_site_keys_primary",
            "lang",
            "site_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary"),
        ),
    )

    lang: Mapped[Lang] = mapped_column(_lang_enum, nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    site_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    redirect_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("site_keys.id", ondelete="SET NULL"), nullable=True
    )


class SlugBindingRecord(UUIDPkMixin, TimestampMixin, Base):
    """
    One public name of an entity in one language within one site.

    Renaming demotes the previous canonical row instead of deleting it so old
    URLs keep redirecting. The partial unique index keeps a single canonical
    row per (lang, entity) even when two renames commit concurrently.
    """
    __tablename__ = "slug_bindings"
    __table_args__ = (
        UniqueConstraint("site_id", "lang", "slug", name="uq_slug_bindings_site_lang_slug"),
        Index("ix_slug_bindings_entity", "lang", "entity_type", "entity_id"),
        Index(
            "uq_slug_bindings_canonical",
            "lang",
            "entity_type",
            "entity_id",
            unique=True,
            postgresql_where=text("is_canonical"),
            sqlite_where=text("is_canonical"),
        ),
    )

    lang: Mapped[Lang] = mapped_column(_lang_enum, nullable=False)
    site_id: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(
        Enum(EntityType, name="slug_entity_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_canonical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    redirect_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("slug_bindings.id", ondelete="SET NULL"), nullable=True
    )
