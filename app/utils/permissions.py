"""
BettsTax Practice - Permissions System

Actor context and role rules used by the authorization gate.

Access Matrix:
==============

| Operation                  | System Admin | Admin | Associate (delegated) | Client (own) |
|----------------------------|--------------|-------|-----------------------|--------------|
| view filings               | X            | X     | read                  | X            |
| create filing              | X            | X     | create                | X            |
| update draft filing        | X            | X     | update                | X            |
| save schedules             | X            | X     | update                | X            |
| submit filing              | X            | X     | submit                | X            |
| review filing              | X            | X     |                       |              |
| delete draft filing        | X            | X     |                       |              |
| administer permissions     | X            | X     |                       |              |
| submit to tax authority    | X            | X     |                       |              |

Delegated levels are ordinal: read < create < update < submit. A grant
counts only while active and unexpired.
"""

import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from app.models.user import ADMIN_ROLES, User, UserRole


@dataclass(frozen=True)
class ActorContext:
    """
    Identity of the caller, passed explicitly into every service call.

    Attributes:
        id: User ID of the actor
        roles: Roles held by the actor
        client_id: Client the actor belongs to (client users only)
        ip_address: Requester IP, recorded on on-behalf actions
        user_agent: Requester user agent, recorded on on-behalf actions
    """
    id: uuid.UUID
    roles: FrozenSet[UserRole]
    client_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = field(default=None, compare=False)
    user_agent: Optional[str] = field(default=None, compare=False)

    @classmethod
    def for_user(
        cls,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> "ActorContext":
        """Build the actor context for an authenticated user."""
        return cls(
            id=user.id,
            roles=frozenset({user.role}),
            client_id=user.client_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def has_role(self, *roles: UserRole) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        """Admin or System Admin - role supersedes delegation."""
        return has_admin_role(self.roles)

    @property
    def is_associate(self) -> bool:
        return UserRole.ASSOCIATE in self.roles

    @property
    def is_client(self) -> bool:
        return UserRole.CLIENT in self.roles

    def owns_client(self, client_id: uuid.UUID) -> bool:
        """True when the actor is the client user for client_id."""
        return self.is_client and self.client_id is not None and self.client_id == client_id

    @property
    def acts_on_behalf(self) -> bool:
        """Associate actions (without an admin role) are logged as on-behalf actions."""
        return self.is_associate and not self.is_admin


def has_admin_role(roles: Iterable[UserRole]) -> bool:
    """Check if any of the roles is Admin or System Admin."""
    return any(role in ADMIN_ROLES for role in roles)
