from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Lang(str, enum.Enum):
    """Languages the directory publishes content in."""

    HU = "hu"
    EN = "en"
    DE = "de"


class EntityType(str, enum.Enum):
    """Kinds of entities a public slug can name."""

    PLACE = "place"
    EVENT = "event"
    STATIC_PAGE = "static_page"
    LEGAL_PAGE = "legal_page"


class EntityRef(BaseModel):
    """Reference to a resolved entity. Immutable once resolved."""
    model_config = ConfigDict(frozen=True)

    entity_type: EntityType = Field(..., description="Kind of entity")
    entity_id: str = Field(..., description="Identifier of the entity in its own table")


class SlugTriple(BaseModel):
    """The human-facing address of an entity: language, site key and slug."""
    model_config = ConfigDict(frozen=True)

    lang: Lang = Field(..., description="Content language")
    site_key: str = Field(..., description="Public site key from the URL")
    slug: str = Field(..., description="Public slug from the URL")


class SiteKeyBinding(BaseModel):
    """
    One public key of a site in one language.

    A site has one primary key per language. Older keys stay as aliases that
    redirect to the primary one, or to `redirect_to` when that is set.
    """
    model_config = ConfigDict(frozen=True)

    lang: Lang
    key: str
    site_id: str
    is_primary: bool
    is_active: bool = True
    redirect_to: Optional["SiteKeyBinding"] = Field(
        default=None, description="Explicit redirect target, present only while it is active"
    )


class ResolvedSite(BaseModel):
    """A requested site key mapped onto its site and canonical public key."""
    model_config = ConfigDict(frozen=True)

    site_id: str
    lang: Lang
    canonical_key: str
    redirected: bool


class SlugBinding(BaseModel):
    """
    One addressable name for an entity within a site.

    An entity keeps every historical binding so old URLs keep redirecting, but
    has exactly one canonical binding per language. Inactive bindings no
    longer resolve.
    """
    model_config = ConfigDict(frozen=True)

    lang: Lang
    site_id: str
    slug: str
    entity: EntityRef
    is_canonical: bool
    is_active: bool = True
    redirect_to: Optional[str] = Field(
        default=None, description="Slug this binding explicitly redirects to, present only while it is active"
    )


# PUBLIC_INTERFACE
class ResolutionResult(BaseModel):
    """Outcome of resolving a slug triple. Derived, never stored."""
    model_config = ConfigDict(frozen=True)

    site_id: str = Field(..., description="Site the requested key belongs to")
    entity_type: EntityType = Field(..., description="Kind of the resolved entity")
    entity_id: str = Field(..., description="Identifier of the resolved entity")
    canonical: SlugTriple = Field(..., description="Canonical address of the entity")
    needs_redirect: bool = Field(..., description="True when the requested triple is not canonical")

    @property
    def entity(self) -> EntityRef:
        return EntityRef(entity_type=self.entity_type, entity_id=self.entity_id)


class RequestTarget(BaseModel):
    """
    The address a client actually requested.

    `path` is the raw request path; `query` and `fragment` are kept without
    their leading '?' / '#'.
    """
    model_config = ConfigDict(frozen=True)

    lang: Lang
    site_key: str
    slug: str
    path: str
    query: str = ""
    fragment: str = ""

    @property
    def triple(self) -> SlugTriple:
        return SlugTriple(lang=self.lang, site_key=self.site_key, slug=self.slug)

    # PUBLIC_INTERFACE
    @classmethod
    def from_path(cls, path: str, query: str = "", fragment: str = "") -> "RequestTarget":
        """
        Parse a public path of the form /{lang}/{site_key}/{segment}/{slug}.

        Raises:
            ValueError: if the path does not have that shape or the language is unknown.
        """
        parts = [p for p in path.split("/") if p]
        if len(parts) != 4:
            raise ValueError(f"Not a public entity path: {path!r}")
        lang, site_key, _segment, slug = parts
        return cls(
            lang=Lang(lang),
            site_key=site_key,
            slug=slug,
            path=path,
            query=query.lstrip("?"),
            fragment=fragment.lstrip("#"),
        )


class Serve(BaseModel):
    """Render the resolved entity at the current address."""
    model_config = ConfigDict(frozen=True)

    resolution: ResolutionResult


class RedirectTo(BaseModel):
    """Send the client to the canonical address."""
    model_config = ConfigDict(frozen=True)

    location: str = Field(..., description="Canonical path including preserved query and fragment")
    resolution: ResolutionResult


class SlugPublish(BaseModel):
    """
    Payload for making a slug the canonical address of an entity.

    The owning site is derived from `site_key`; it is never taken from the client.
    """
    lang: Lang = Field(..., description="Content language")
    site_key: str = Field(..., min_length=1, description="Public site key")
    slug: str = Field(..., min_length=1, description="New canonical slug")
    entity_type: EntityType = Field(..., description="Kind of entity")
    entity_id: str = Field(..., min_length=1, description="Entity identifier")
