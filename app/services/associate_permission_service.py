"""
BettsTax Practice - Associate Permission Administration

Grant, change, renew and revoke the delegated permissions that let
associates act for clients. Administrator-only. Every change writes a
PermissionAuditLog row in the same commit.

Permissions are unique per (associate, client, area): granting again
updates the existing row, and revocation is a soft delete that a later
grant reactivates.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.associate_permission import (
    AssociatePermission,
    PermissionArea,
    PermissionAuditAction,
    PermissionAuditLog,
    PermissionLevel,
)
from app.models.base import utc_now
from app.models.user import Client, User, UserRole
from app.services.authorization_service import AuthorizationService
from app.utils.error_handling import (
    ClientNotFoundException,
    ConflictException,
    ErrorCode,
    NotFoundException,
    ValidationException,
)
from app.utils.permissions import ActorContext

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssociatePermissionService:
    """Service for administering delegated associate permissions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AuthorizationService(db)

    # ===========================================
    # HELPERS
    # ===========================================

    async def _get_associate(self, associate_id: uuid.UUID) -> User:
        user = await self.db.get(User, associate_id)
        if not user:
            raise NotFoundException("Associate", associate_id)
        if user.role != UserRole.ASSOCIATE:
            raise ValidationException("User is not an associate", field="associate_id")
        return user

    async def _get_client(self, client_id: uuid.UUID) -> Client:
        client = await self.db.get(Client, client_id)
        if not client:
            raise ClientNotFoundException(client_id)
        return client

    async def _get_permission(self, permission_id: uuid.UUID) -> AssociatePermission:
        permission = await self.db.get(AssociatePermission, permission_id)
        if not permission:
            raise NotFoundException("Permission", permission_id, code=ErrorCode.PERMISSION_NOT_FOUND)
        return permission

    @staticmethod
    def _require_future(expires_at: Optional[datetime], field: str = "expires_at") -> Optional[datetime]:
        expires_at = _as_utc(expires_at)
        if expires_at is not None and expires_at <= utc_now():
            raise ValidationException("Expiry must be in the future", field=field)
        return expires_at

    def _audit(
        self,
        actor: ActorContext,
        permission: AssociatePermission,
        action: PermissionAuditAction,
        old_level: Optional[PermissionLevel],
        new_level: Optional[PermissionLevel],
        reason: Optional[str] = None,
    ) -> PermissionAuditLog:
        entry = PermissionAuditLog(
            associate_id=permission.associate_id,
            client_id=permission.client_id,
            area=permission.area,
            action=action,
            old_level=old_level,
            new_level=new_level,
            changed_by_id=actor.id,
            changed_at=utc_now(),
            reason=reason[:500] if reason else None,
        )
        self.db.add(entry)
        return entry

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Permission change conflicted with a concurrent grant: {e.orig}")
            raise ConflictException(
                "Permission was changed concurrently. Reload and try again.",
                resource_type="Associate permission",
            ) from e

    async def _upsert(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        client_id: uuid.UUID,
        area: PermissionArea,
        level: PermissionLevel,
        expires_at: Optional[datetime],
        notes: Optional[str],
        audit_action: PermissionAuditAction,
    ) -> AssociatePermission:
        """Create or update the single row for (associate, client, area)."""
        result = await self.db.execute(
            select(AssociatePermission).where(
                AssociatePermission.associate_id == associate_id,
                AssociatePermission.client_id == client_id,
                AssociatePermission.area == area,
            )
        )
        permission = result.scalar_one_or_none()
        now = utc_now()

        if permission is None:
            permission = AssociatePermission(
                associate_id=associate_id,
                client_id=client_id,
                area=area,
                level=level,
                expires_at=expires_at,
                is_active=True,
                granted_by_id=actor.id,
                granted_at=now,
                notes=notes,
            )
            self.db.add(permission)
            self._audit(actor, permission, audit_action, None, level, notes)
            return permission

        old_level = permission.level if permission.is_active else None
        if audit_action == PermissionAuditAction.GRANT and permission.is_active:
            audit_action = PermissionAuditAction.UPDATE

        permission.level = level
        permission.expires_at = expires_at
        permission.is_active = True
        permission.granted_by_id = actor.id
        permission.granted_at = now
        if notes is not None:
            permission.notes = notes

        self._audit(actor, permission, audit_action, old_level, level, notes)
        return permission

    # ===========================================
    # GRANT
    # ===========================================

    async def grant(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        client_id: uuid.UUID,
        area: PermissionArea,
        level: PermissionLevel,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> AssociatePermission:
        """
        Grant (or change) an associate's access to a client's area.

        An existing row for the same (associate, client, area) is updated
        and reactivated instead of duplicated.

        Raises:
            AuthorizationException: If the actor is not an admin
            NotFoundException: If the associate or client does not exist
            ValidationException: If expires_at is not in the future
        """
        self.gate.require_admin(actor, "grant associate permissions")
        await self._get_associate(associate_id)
        await self._get_client(client_id)
        expires_at = self._require_future(expires_at)

        permission = await self._upsert(
            actor, associate_id, client_id, area, level, expires_at, notes,
            PermissionAuditAction.GRANT,
        )
        await self._commit()
        await self.db.refresh(permission)

        logger.info(
            f"Granted {level.value} on {area.value} for client {client_id} "
            f"to associate {associate_id} by {actor.id}"
        )
        return permission

    async def bulk_grant(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        client_ids: Iterable[uuid.UUID],
        area: PermissionArea,
        level: PermissionLevel,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> List[AssociatePermission]:
        """Grant the same area and level for several clients in one commit."""
        self.gate.require_admin(actor, "grant associate permissions")
        await self._get_associate(associate_id)
        expires_at = self._require_future(expires_at)

        unique_ids = list(dict.fromkeys(client_ids))
        if not unique_ids:
            raise ValidationException("At least one client is required", field="client_ids")

        permissions = []
        for client_id in unique_ids:
            await self._get_client(client_id)
            permissions.append(
                await self._upsert(
                    actor, associate_id, client_id, area, level, expires_at, notes,
                    PermissionAuditAction.BULK_GRANT,
                )
            )
            await self.db.flush()

        await self._commit()
        for permission in permissions:
            await self.db.refresh(permission)

        logger.info(
            f"Bulk granted {level.value} on {area.value} for {len(permissions)} clients "
            f"to associate {associate_id} by {actor.id}"
        )
        return permissions

    # ===========================================
    # REVOKE
    # ===========================================

    async def revoke(
        self,
        actor: ActorContext,
        permission_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> AssociatePermission:
        """
        Soft-revoke a permission. Revoking an inactive permission is a no-op.

        Raises:
            AuthorizationException: If the actor is not an admin
            NotFoundException: If the permission does not exist
        """
        self.gate.require_admin(actor, "revoke associate permissions")
        permission = await self._get_permission(permission_id)
        if not permission.is_active:
            return permission

        permission.is_active = False
        self._audit(actor, permission, PermissionAuditAction.REVOKE, permission.level, None, reason)
        await self._commit()
        await self.db.refresh(permission)

        logger.info(f"Revoked permission {permission_id} by {actor.id}")
        return permission

    async def bulk_revoke(
        self,
        actor: ActorContext,
        permission_ids: Iterable[uuid.UUID],
        reason: Optional[str] = None,
    ) -> int:
        """
        Soft-revoke several permissions. Unknown or inactive ids are skipped.

        Returns:
            Number of permissions revoked
        """
        self.gate.require_admin(actor, "revoke associate permissions")
        ids = list(dict.fromkeys(permission_ids))
        if not ids:
            return 0

        result = await self.db.execute(
            select(AssociatePermission).where(
                AssociatePermission.id.in_(ids),
                AssociatePermission.is_active == True,  # noqa: E712
            )
        )
        permissions = list(result.scalars().all())
        for permission in permissions:
            permission.is_active = False
            self._audit(actor, permission, PermissionAuditAction.BULK_REVOKE, permission.level, None, reason)

        await self._commit()
        logger.info(f"Bulk revoked {len(permissions)} permissions by {actor.id}")
        return len(permissions)

    # ===========================================
    # EXPIRY
    # ===========================================

    async def set_expiry(
        self,
        actor: ActorContext,
        permission_id: uuid.UUID,
        expires_at: Optional[datetime],
    ) -> AssociatePermission:
        """Set or clear (None = never expires) the expiry of an active permission."""
        self.gate.require_admin(actor, "change permission expiry")
        permission = await self._get_permission(permission_id)
        if not permission.is_active:
            raise ValidationException("Cannot change the expiry of a revoked permission")

        permission.expires_at = self._require_future(expires_at)
        self._audit(
            actor, permission, PermissionAuditAction.SET_EXPIRY, permission.level, permission.level,
            f"expires_at={permission.expires_at.isoformat() if permission.expires_at else 'never'}",
        )
        await self._commit()
        await self.db.refresh(permission)

        logger.info(f"Set expiry of permission {permission_id} to {permission.expires_at} by {actor.id}")
        return permission

    async def renew(
        self,
        actor: ActorContext,
        permission_id: uuid.UUID,
        new_expiry: datetime,
    ) -> AssociatePermission:
        """Extend an active (possibly already expired) permission to a new future expiry."""
        self.gate.require_admin(actor, "renew associate permissions")
        permission = await self._get_permission(permission_id)
        if not permission.is_active:
            raise ValidationException("Cannot renew a revoked permission; grant it again instead")

        permission.expires_at = self._require_future(new_expiry, field="new_expiry")
        self._audit(
            actor, permission, PermissionAuditAction.RENEW, permission.level, permission.level,
            f"renewed until {permission.expires_at.isoformat()}",
        )
        await self._commit()
        await self.db.refresh(permission)

        logger.info(f"Renewed permission {permission_id} until {permission.expires_at} by {actor.id}")
        return permission

    async def list_expiring_within(self, actor: ActorContext, days: int = 7) -> List[AssociatePermission]:
        """Active permissions expiring in the next `days` days, soonest first."""
        self.gate.require_admin(actor, "view expiring permissions")
        if days < 1:
            raise ValidationException("days must be at least 1", field="days")

        now = utc_now()
        result = await self.db.execute(
            select(AssociatePermission)
            .where(
                AssociatePermission.is_active == True,  # noqa: E712
                AssociatePermission.expires_at.is_not(None),
                AssociatePermission.expires_at > now,
                AssociatePermission.expires_at <= now + timedelta(days=days),
            )
            .order_by(AssociatePermission.expires_at)
        )
        return list(result.scalars().all())

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def list_for_associate(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        area: PermissionArea = PermissionArea.TAX_FILINGS,
    ) -> List[Client]:
        """Clients for which the associate holds an active, unexpired permission in area."""
        self.gate.require_admin(actor, "view associate clients")
        client_ids = await self.gate.accessible_client_ids(associate_id, area)
        if not client_ids:
            return []
        result = await self.db.execute(
            select(Client).where(Client.id.in_(client_ids)).order_by(Client.client_number)
        )
        return list(result.scalars().all())

    async def get_permissions_for_associate(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> List[AssociatePermission]:
        self.gate.require_admin(actor, "view associate permissions")
        query = select(AssociatePermission).where(AssociatePermission.associate_id == associate_id)
        if not include_inactive:
            query = query.where(AssociatePermission.is_active == True)  # noqa: E712
        result = await self.db.execute(
            query.order_by(AssociatePermission.client_id, AssociatePermission.area)
        )
        return list(result.scalars().all())

    async def get_permissions_for_client(
        self,
        actor: ActorContext,
        client_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> List[AssociatePermission]:
        self.gate.require_admin(actor, "view client permissions")
        query = select(AssociatePermission).where(AssociatePermission.client_id == client_id)
        if not include_inactive:
            query = query.where(AssociatePermission.is_active == True)  # noqa: E712
        result = await self.db.execute(
            query.order_by(AssociatePermission.associate_id, AssociatePermission.area)
        )
        return list(result.scalars().all())

    async def get_effective_level(
        self,
        actor: ActorContext,
        associate_id: uuid.UUID,
        client_id: uuid.UUID,
        area: PermissionArea,
    ) -> Optional[PermissionLevel]:
        """Highest usable level the associate holds for the client's area."""
        self.gate.require_admin(actor, "view effective permissions")
        return await self.gate.get_effective_level(associate_id, client_id, area)

    async def get_audit_log(
        self,
        actor: ActorContext,
        associate_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[PermissionAuditLog], int]:
        """
        Permission change history, newest first.

        Returns:
            Tuple of (entries, total_count)
        """
        self.gate.require_admin(actor, "view the permission audit log")
        query = select(PermissionAuditLog)
        if associate_id:
            query = query.where(PermissionAuditLog.associate_id == associate_id)
        if client_id:
            query = query.where(PermissionAuditLog.client_id == client_id)

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(PermissionAuditLog.changed_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
