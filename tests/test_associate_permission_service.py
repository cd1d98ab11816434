"""
BettsTax Practice - Associate Permission Service Tests

Grant, revoke, expiry and audit trail of delegated permissions.
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from sqlalchemy import func, select

from app.models.associate_permission import (
    AssociatePermission,
    PermissionArea,
    PermissionAuditAction,
    PermissionAuditLog,
    PermissionLevel,
)
from app.models.base import utc_now
from app.services.associate_permission_service import AssociatePermissionService
from app.utils.error_handling import (
    AuthorizationException,
    ClientNotFoundException,
    ErrorCode,
    NotFoundException,
    ValidationException,
)
from tests.factories import make_permission


async def _audit_actions(db_session):
    result = await db_session.execute(select(PermissionAuditLog).order_by(PermissionAuditLog.changed_at))
    return [entry.action for entry in result.scalars().all()]


class TestGrant:
    """Granting permissions."""

    @pytest.mark.asyncio
    async def test_grant_creates_permission_and_audit(
        self, db_session, admin_actor, associate_user, test_client_record
    ):
        service = AssociatePermissionService(db_session)

        permission = await service.grant(
            admin_actor,
            associate_id=associate_user.id,
            client_id=test_client_record.id,
            area=PermissionArea.TAX_FILINGS,
            level=PermissionLevel.UPDATE,
            notes="Covering Q4",
        )

        assert permission.is_active
        assert permission.level == PermissionLevel.UPDATE
        assert permission.granted_by_id == admin_actor.id
        assert await _audit_actions(db_session) == [PermissionAuditAction.GRANT]

    @pytest.mark.asyncio
    async def test_regrant_updates_single_row(
        self, db_session, admin_actor, associate_user, test_client_record
    ):
        """Granting the same (associate, client, area) twice keeps one row."""
        service = AssociatePermissionService(db_session)

        await service.grant(
            admin_actor, associate_user.id, test_client_record.id,
            PermissionArea.TAX_FILINGS, PermissionLevel.READ,
        )
        permission = await service.grant(
            admin_actor, associate_user.id, test_client_record.id,
            PermissionArea.TAX_FILINGS, PermissionLevel.SUBMIT,
        )

        count = await db_session.execute(select(func.count()).select_from(AssociatePermission))
        assert count.scalar() == 1
        assert permission.level == PermissionLevel.SUBMIT
        assert await _audit_actions(db_session) == [PermissionAuditAction.GRANT, PermissionAuditAction.UPDATE]

    @pytest.mark.asyncio
    async def test_grant_reactivates_revoked(
        self, db_session, admin_actor, associate_user, test_client_record
    ):
        existing = await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.READ, is_active=False
        )
        service = AssociatePermissionService(db_session)

        permission = await service.grant(
            admin_actor, associate_user.id, test_client_record.id,
            PermissionArea.TAX_FILINGS, PermissionLevel.CREATE,
        )

        assert permission.id == existing.id
        assert permission.is_active
        assert permission.level == PermissionLevel.CREATE

    @pytest.mark.asyncio
    async def test_grant_is_admin_only(
        self, db_session, associate_actor, second_associate, test_client_record
    ):
        service = AssociatePermissionService(db_session)

        with pytest.raises(AuthorizationException):
            await service.grant(
                associate_actor, second_associate.id, test_client_record.id,
                PermissionArea.TAX_FILINGS, PermissionLevel.READ,
            )

    @pytest.mark.asyncio
    async def test_grant_requires_associate_role(
        self, db_session, admin_actor, client_user, test_client_record
    ):
        service = AssociatePermissionService(db_session)

        with pytest.raises(ValidationException):
            await service.grant(
                admin_actor, client_user.id, test_client_record.id,
                PermissionArea.TAX_FILINGS, PermissionLevel.READ,
            )

    @pytest.mark.asyncio
    async def test_grant_unknown_client(self, db_session, admin_actor, associate_user):
        service = AssociatePermissionService(db_session)

        with pytest.raises(ClientNotFoundException):
            await service.grant(
                admin_actor, associate_user.id, uuid4(), PermissionArea.TAX_FILINGS, PermissionLevel.READ
            )

    @pytest.mark.asyncio
    async def test_grant_rejects_past_expiry(
        self, db_session, admin_actor, associate_user, test_client_record
    ):
        service = AssociatePermissionService(db_session)

        with pytest.raises(ValidationException):
            await service.grant(
                admin_actor, associate_user.id, test_client_record.id,
                PermissionArea.TAX_FILINGS, PermissionLevel.READ,
                expires_at=utc_now() - timedelta(hours=1),
            )

    @pytest.mark.asyncio
    async def test_bulk_grant(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record
    ):
        service = AssociatePermissionService(db_session)

        permissions = await service.bulk_grant(
            admin_actor,
            associate_id=associate_user.id,
            client_ids=[test_client_record.id, other_client_record.id, test_client_record.id],
            area=PermissionArea.DOCUMENTS,
            level=PermissionLevel.READ,
        )

        assert len(permissions) == 2
        assert await _audit_actions(db_session) == [
            PermissionAuditAction.BULK_GRANT,
            PermissionAuditAction.BULK_GRANT,
        ]

    @pytest.mark.asyncio
    async def test_bulk_grant_requires_clients(self, db_session, admin_actor, associate_user):
        service = AssociatePermissionService(db_session)

        with pytest.raises(ValidationException):
            await service.bulk_grant(
                admin_actor, associate_user.id, [], PermissionArea.TAX_FILINGS, PermissionLevel.READ
            )


class TestRevokeAndExpiry:
    """Revocation, expiry and renewal."""

    @pytest.mark.asyncio
    async def test_revoke_is_soft_and_idempotent(self, db_session, admin_actor, submit_permission):
        service = AssociatePermissionService(db_session)

        revoked = await service.revoke(admin_actor, submit_permission.id, reason="Left engagement")
        again = await service.revoke(admin_actor, submit_permission.id)

        assert revoked.is_active is False
        assert again.is_active is False
        assert await _audit_actions(db_session) == [PermissionAuditAction.REVOKE]

    @pytest.mark.asyncio
    async def test_revoke_unknown(self, db_session, admin_actor):
        service = AssociatePermissionService(db_session)

        with pytest.raises(NotFoundException) as exc_info:
            await service.revoke(admin_actor, uuid4())

        assert exc_info.value.code == ErrorCode.PERMISSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_bulk_revoke_counts_active_only(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record
    ):
        active = await make_permission(db_session, associate_user, test_client_record, PermissionLevel.READ)
        inactive = await make_permission(
            db_session, associate_user, other_client_record, PermissionLevel.READ, is_active=False
        )
        service = AssociatePermissionService(db_session)

        count = await service.bulk_revoke(admin_actor, [active.id, inactive.id, uuid4()])

        assert count == 1

    @pytest.mark.asyncio
    async def test_set_and_clear_expiry(self, db_session, admin_actor, submit_permission):
        service = AssociatePermissionService(db_session)

        permission = await service.set_expiry(admin_actor, submit_permission.id, utc_now() + timedelta(days=10))
        assert permission.expires_at is not None

        permission = await service.set_expiry(admin_actor, submit_permission.id, None)
        assert permission.expires_at is None

    @pytest.mark.asyncio
    async def test_renew_expired_permission(
        self, db_session, admin_actor, associate_user, associate_actor, test_client_record, expired_permission
    ):
        """Renewal restores access for an active grant whose expiry has passed."""
        service = AssociatePermissionService(db_session)

        await service.renew(admin_actor, expired_permission.id, utc_now() + timedelta(days=30))

        level = await service.get_effective_level(
            admin_actor, associate_user.id, test_client_record.id, PermissionArea.TAX_FILINGS
        )
        assert level == PermissionLevel.SUBMIT
        assert await _audit_actions(db_session) == [PermissionAuditAction.RENEW]

    @pytest.mark.asyncio
    async def test_renew_revoked_rejected(
        self, db_session, admin_actor, associate_user, test_client_record
    ):
        permission = await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.READ, is_active=False
        )
        service = AssociatePermissionService(db_session)

        with pytest.raises(ValidationException):
            await service.renew(admin_actor, permission.id, utc_now() + timedelta(days=30))

    @pytest.mark.asyncio
    async def test_list_expiring_within(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record
    ):
        soon = await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.READ,
            expires_at=utc_now() + timedelta(days=2),
        )
        await make_permission(
            db_session, associate_user, other_client_record, PermissionLevel.READ,
            expires_at=utc_now() + timedelta(days=60),
        )
        service = AssociatePermissionService(db_session)

        expiring = await service.list_expiring_within(admin_actor, days=7)

        assert [p.id for p in expiring] == [soon.id]


class TestLookups:
    """Read side of permission administration."""

    @pytest.mark.asyncio
    async def test_clients_for_associate(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record,
        submit_permission,
    ):
        await make_permission(
            db_session, associate_user, other_client_record, PermissionLevel.READ,
            expires_at=utc_now() - timedelta(days=1),
        )
        service = AssociatePermissionService(db_session)

        clients = await service.list_for_associate(admin_actor, associate_user.id)

        assert [c.id for c in clients] == [test_client_record.id]

    @pytest.mark.asyncio
    async def test_permissions_for_associate_and_client(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record,
        submit_permission,
    ):
        await make_permission(
            db_session, associate_user, other_client_record, PermissionLevel.READ, is_active=False
        )
        service = AssociatePermissionService(db_session)

        active = await service.get_permissions_for_associate(admin_actor, associate_user.id)
        everything = await service.get_permissions_for_associate(
            admin_actor, associate_user.id, include_inactive=True
        )
        for_client = await service.get_permissions_for_client(admin_actor, test_client_record.id)

        assert len(active) == 1
        assert len(everything) == 2
        assert [p.id for p in for_client] == [submit_permission.id]

    @pytest.mark.asyncio
    async def test_audit_log_filters(
        self, db_session, admin_actor, associate_user, test_client_record, other_client_record
    ):
        service = AssociatePermissionService(db_session)
        await service.grant(
            admin_actor, associate_user.id, test_client_record.id,
            PermissionArea.TAX_FILINGS, PermissionLevel.READ,
        )
        await service.grant(
            admin_actor, associate_user.id, other_client_record.id,
            PermissionArea.TAX_FILINGS, PermissionLevel.READ,
        )

        entries, total = await service.get_audit_log(admin_actor, client_id=other_client_record.id)
        all_entries, all_total = await service.get_audit_log(admin_actor, associate_id=associate_user.id)

        assert total == 1
        assert entries[0].client_id == other_client_record.id
        assert all_total == 2

    @pytest.mark.asyncio
    async def test_lookups_are_admin_only(self, db_session, associate_actor, associate_user):
        service = AssociatePermissionService(db_session)

        with pytest.raises(AuthorizationException):
            await service.get_permissions_for_associate(associate_actor, associate_user.id)
        with pytest.raises(AuthorizationException):
            await service.get_audit_log(associate_actor)
