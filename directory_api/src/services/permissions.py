from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Tuple

from src.core.errors import InvalidRequestError
from src.core.roles import GLOBAL_ONLY_ROLES, Role, parse_role, role_at_least
from src.schemas.permissions import (
    EffectivePermission,
    Grants,
    PermissionRequest,
    PlaceMembership,
    Scope,
    SiteMembership,
)

logger = logging.getLogger(__name__)


class MembershipLoader(Protocol):
    """Loads a user's site and place memberships from persistence."""

    async def load_memberships(self, user_id) -> Tuple[List[SiteMembership], List[PlaceMembership]]:
        ...


class PermissionResolver:
    """
    Computes the effective permission of a user for one action.

    Precedence, first match wins:
      1. global admin/superadmin at or above the required role
      2. the site membership for the requested site_id
      3. the place membership for the requested place_id
      4. the global role at a lower tier
      5. denied

    Pure: the caller assembles the grants; nothing is cached.
    """

    # PUBLIC_INTERFACE
    def check(self, grants: Grants, request: PermissionRequest) -> EffectivePermission:
        """
        Decide whether `grants` allow `request`.

        Raises:
            InvalidRequestError: the request or grants carry an unknown role, an
                empty action, or a membership with a global-only role.
        """
        if not request.action:
            raise InvalidRequestError("Permission check requires an action")
        required = parse_role(request.required_role)
        global_role = parse_role(grants.global_role)

        if global_role in GLOBAL_ONLY_ROLES and role_at_least(global_role, required):
            return EffectivePermission(allowed=True, winning_scope="global", winning_role=global_role)

        site_role = self._matching_role(
            request.site_id, ((m.site_id, m.role) for m in grants.site_memberships)
        )
        if site_role is not None and role_at_least(site_role, required):
            return EffectivePermission(allowed=True, winning_scope="site", winning_role=site_role)

        place_role = self._matching_role(
            request.place_id, ((m.place_id, m.role) for m in grants.place_memberships)
        )
        if place_role is not None and role_at_least(place_role, required):
            return EffectivePermission(allowed=True, winning_scope="place", winning_role=place_role)

        if role_at_least(global_role, required):
            return EffectivePermission(allowed=True, winning_scope="global", winning_role=global_role)

        # Denied: report the strongest grant that applied, for the audit trail.
        candidates: List[Tuple[Scope, Role]] = [("global", global_role)]
        if site_role is not None:
            candidates.append(("site", site_role))
        if place_role is not None:
            candidates.append(("place", place_role))
        scope, role = max(candidates, key=lambda c: c[1].rank)
        return EffectivePermission(allowed=False, winning_scope=scope, winning_role=role)

    @staticmethod
    def _matching_role(scope_id: Optional[str], memberships: Iterable[Tuple[str, Role]]) -> Optional[Role]:
        """Highest role among memberships for exactly `scope_id`; unrelated scopes are ignored."""
        if scope_id is None:
            return None
        best: Optional[Role] = None
        for member_scope, raw_role in memberships:
            if member_scope != scope_id:
                continue
            role = parse_role(raw_role)
            if role in GLOBAL_ONLY_ROLES:
                raise InvalidRequestError(
                    f"Role {role.value!r} cannot be granted by a membership",
                    details={"scope_id": scope_id, "role": role.value},
                )
            if best is None or role.rank > best.rank:
                best = role
        return best


class PermissionService:
    """
    Loads memberships for a user and runs the PermissionResolver over them.

    Memberships are loaded on every call; they can change concurrently.
    """

    def __init__(self, loader: MembershipLoader, resolver: Optional[PermissionResolver] = None) -> None:
        self.loader = loader
        self.resolver = resolver or PermissionResolver()

    # PUBLIC_INTERFACE
    async def check_permission(self, user_id, global_role: Role, request: PermissionRequest) -> EffectivePermission:
        """
        Check `request` for the given user.

        Parameters:
            user_id: identifier understood by the membership loader
            global_role: role stored on the user record
            request: action, required role and optional site/place scope
        Returns:
            EffectivePermission explaining which grant decided the check.
        """
        site_memberships, place_memberships = await self.loader.load_memberships(user_id)
        grants = Grants(
            global_role=global_role,
            site_memberships=site_memberships,
            place_memberships=place_memberships,
        )
        decision = self.resolver.check(grants, request)
        logger.info(
            "Permission %s for user %s action=%s required=%s site=%s place=%s via %s:%s",
            "granted" if decision.allowed else "denied",
            user_id,
            request.action,
            request.required_role,
            request.site_id or "-",
            request.place_id or "-",
            decision.winning_scope,
            decision.winning_role.value,
        )
        return decision
