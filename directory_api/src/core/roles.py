from __future__ import annotations

import enum
from typing import Dict, Union

from src.core.errors import InvalidRequestError


class Role(str, enum.Enum):
    """
    Role lattice shared by global roles and site/place memberships.

    Privilege order:
        viewer < editor < siteadmin = placeowner < admin < superadmin

    `admin` and `superadmin` only exist as global roles on the user.
    """

    VIEWER = "viewer"
    EDITOR = "editor"
    SITEADMIN = "siteadmin"
    PLACEOWNER = "placeowner"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]

    @property
    def is_global_only(self) -> bool:
        return self in GLOBAL_ONLY_ROLES


ROLE_RANK: Dict[Role, int] = {
    Role.VIEWER: 0,
    Role.EDITOR: 1,
    Role.SITEADMIN: 2,
    Role.PLACEOWNER: 2,
    Role.ADMIN: 3,
    Role.SUPERADMIN: 4,
}

GLOBAL_ONLY_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


# PUBLIC_INTERFACE
def parse_role(value: Union[Role, str]) -> Role:
    """
    Coerce a role token into a Role.

    Raises:
        InvalidRequestError: if the token is not a recognized role.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise InvalidRequestError(f"Unknown role: {value!r}", details={"role": value})


# PUBLIC_INTERFACE
def role_at_least(role: Role, required: Role) -> bool:
    """Return True when `role` is at or above `required` in the lattice."""
    return ROLE_RANK[role] >= ROLE_RANK[required]
