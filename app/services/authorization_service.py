"""
BettsTax Practice - Authorization Gate

Decides whether an actor may act on a client's data in a functional area
at a given permission level.

Resolution order:
1. Admin / System Admin role -> allowed (role supersedes delegation)
2. Client user acting on their own client -> allowed
3. Associate -> highest active, unexpired AssociatePermission for
   (associate, client, area) must be >= the required level
4. Everyone else -> denied
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.associate_permission import AssociatePermission, PermissionArea, PermissionLevel
from app.models.base import utc_now
from app.utils.error_handling import AuthorizationException, ErrorCode
from app.utils.permissions import ActorContext

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationDecision:
    """Outcome of a gate check."""
    allowed: bool
    effective_level: Optional[PermissionLevel]
    reason: str


def _highest_level(permissions: List[AssociatePermission]) -> Optional[PermissionLevel]:
    """Most permissive level among the given grants."""
    if not permissions:
        return None
    return max((p.level for p in permissions), key=lambda level: level.rank)


class AuthorizationService:
    """Role and delegated-permission resolution. Performs no writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _active_permissions_query(self, associate_id: uuid.UUID, area: PermissionArea):
        now = utc_now()
        return select(AssociatePermission).where(
            AssociatePermission.associate_id == associate_id,
            AssociatePermission.area == area,
            AssociatePermission.is_active == True,  # noqa: E712
            or_(
                AssociatePermission.expires_at.is_(None),
                AssociatePermission.expires_at > now,
            ),
        )

    async def get_effective_level(
        self,
        associate_id: uuid.UUID,
        client_id: uuid.UUID,
        area: PermissionArea,
    ) -> Optional[PermissionLevel]:
        """
        Highest active, unexpired delegated level for (associate, client, area).

        Returns:
            The level, or None when no usable grant exists
        """
        result = await self.db.execute(
            self._active_permissions_query(associate_id, area).where(
                AssociatePermission.client_id == client_id,
            )
        )
        return _highest_level(list(result.scalars().all()))

    async def check(
        self,
        actor: ActorContext,
        client_id: uuid.UUID,
        area: PermissionArea,
        required_level: PermissionLevel,
    ) -> AuthorizationDecision:
        """Evaluate the gate without raising."""
        if actor.is_admin:
            return AuthorizationDecision(True, PermissionLevel.SUBMIT, "admin role")

        if actor.owns_client(client_id):
            return AuthorizationDecision(True, PermissionLevel.SUBMIT, "client self-service")

        if actor.is_associate:
            level = await self.get_effective_level(actor.id, client_id, area)
            if level is None:
                return AuthorizationDecision(False, None, "no active delegated permission")
            if level.satisfies(required_level):
                return AuthorizationDecision(True, level, "delegated permission")
            return AuthorizationDecision(
                False,
                level,
                f"delegated level '{level.value}' is below required '{required_level.value}'",
            )

        return AuthorizationDecision(False, None, "no access to client")

    async def require(
        self,
        actor: ActorContext,
        client_id: uuid.UUID,
        area: PermissionArea,
        required_level: PermissionLevel,
    ) -> AuthorizationDecision:
        """
        Evaluate the gate and raise when denied.

        Raises:
            AuthorizationException: If the actor may not act at this level
        """
        decision = await self.check(actor, client_id, area, required_level)
        if not decision.allowed:
            logger.warning(
                f"Authorization denied: actor={actor.id} roles={sorted(r.value for r in actor.roles)} "
                f"client={client_id} area={area.value} required={required_level.value} "
                f"reason={decision.reason}"
            )
            raise AuthorizationException(
                message=f"You do not have {required_level.value} access to this client's {area.value}",
                required_permission=f"{area.value}:{required_level.value}",
                code=ErrorCode.DELEGATION_REQUIRED if actor.is_associate else ErrorCode.FORBIDDEN,
                details={"client_id": str(client_id), "reason": decision.reason},
            )
        return decision

    def require_admin(self, actor: ActorContext, operation: str) -> None:
        """
        Raise unless the actor is Admin or System Admin.

        Raises:
            AuthorizationException: For non-admin actors
        """
        if not actor.is_admin:
            logger.warning(f"Authorization denied: actor={actor.id} attempted admin-only '{operation}'")
            raise AuthorizationException(
                message=f"Only administrators can {operation}",
                required_permission="admin",
                code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            )

    async def accessible_client_ids(
        self,
        associate_id: uuid.UUID,
        area: PermissionArea,
        minimum_level: PermissionLevel = PermissionLevel.READ,
    ) -> List[uuid.UUID]:
        """Client IDs for which the associate holds at least minimum_level."""
        result = await self.db.execute(self._active_permissions_query(associate_id, area))
        client_ids = {
            permission.client_id
            for permission in result.scalars().all()
            if permission.level.satisfies(minimum_level)
        }
        return sorted(client_ids, key=str)
