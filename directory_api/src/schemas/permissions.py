from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.core.roles import Role

Scope = Literal["global", "site", "place"]


class SiteMembership(BaseModel):
    """Role grant scoped to one site."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    site_id: str = Field(..., description="Site the grant applies to")
    role: Role = Field(..., description="Role within the site")


class PlaceMembership(BaseModel):
    """Role grant scoped to one place."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    place_id: str = Field(..., description="Place the grant applies to")
    role: Role = Field(..., description="Role within the place")


class Grants(BaseModel):
    """Everything a permission check needs to know about a user."""
    model_config = ConfigDict(frozen=True)

    global_role: Role = Field(default=Role.VIEWER, description="Role stored on the user")
    site_memberships: List[SiteMembership] = Field(default_factory=list)
    place_memberships: List[PlaceMembership] = Field(default_factory=list)


class PermissionRequest(BaseModel):
    """
    An action to authorize.

    `required_role` is kept as given so an unrecognized token reaches the
    resolver and fails there as an InvalidRequestError.
    """
    model_config = ConfigDict(frozen=True)

    action: str = Field(..., description="Action label, e.g. 'editPlace' (used for audit)")
    required_role: str = Field(..., description="Minimum role required for the action")
    site_id: Optional[str] = Field(default=None)
    place_id: Optional[str] = Field(default=None)


# PUBLIC_INTERFACE
class EffectivePermission(BaseModel):
    """
    Result of a permission check.

    Recomputed on every check; memberships can change between requests.
    """
    model_config = ConfigDict(frozen=True)

    allowed: bool
    winning_scope: Scope = Field(..., description="Scope of the grant that decided the check")
    winning_role: Role = Field(..., description="Role of the grant that decided the check")


class MembershipRead(BaseModel):
    """Membership row as exposed by the admin listings."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    scope_id: str
    role: Role
