"""
BettsTax Practice - Authorization Gate Tests

Role and delegated-permission resolution.
"""

import pytest
from datetime import timedelta

from app.models.associate_permission import PermissionArea, PermissionLevel
from app.models.base import utc_now
from app.services.authorization_service import AuthorizationService
from app.utils.error_handling import AuthorizationException, ErrorCode
from tests.factories import make_permission


class TestPermissionLevels:
    """Ordinal comparison of permission levels."""

    def test_levels_are_ordered(self):
        assert PermissionLevel.READ.rank < PermissionLevel.CREATE.rank
        assert PermissionLevel.CREATE.rank < PermissionLevel.UPDATE.rank
        assert PermissionLevel.UPDATE.rank < PermissionLevel.SUBMIT.rank

    def test_higher_level_satisfies_lower(self):
        assert PermissionLevel.SUBMIT.satisfies(PermissionLevel.READ)
        assert PermissionLevel.UPDATE.satisfies(PermissionLevel.UPDATE)
        assert not PermissionLevel.READ.satisfies(PermissionLevel.CREATE)

    def test_legacy_area_keys(self):
        """Legacy PascalCase area names map onto the enum."""
        assert PermissionArea.from_legacy("TaxFilings") == PermissionArea.TAX_FILINGS
        assert PermissionArea.from_legacy("payments") == PermissionArea.PAYMENTS
        with pytest.raises(ValueError):
            PermissionArea.from_legacy("Payroll")


class TestAuthorizationService:
    """Test cases for the authorization gate."""

    @pytest.mark.asyncio
    async def test_admin_always_allowed(self, db_session, admin_actor, test_client_record):
        """Admins pass at every level without any delegation."""
        gate = AuthorizationService(db_session)

        decision = await gate.check(
            admin_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.SUBMIT
        )

        assert decision.allowed
        assert decision.effective_level == PermissionLevel.SUBMIT

    @pytest.mark.asyncio
    async def test_client_user_allowed_on_own_client(self, db_session, client_actor, test_client_record):
        gate = AuthorizationService(db_session)

        decision = await gate.check(
            client_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.SUBMIT
        )

        assert decision.allowed

    @pytest.mark.asyncio
    async def test_client_user_denied_on_other_client(self, db_session, client_actor, other_client_record):
        gate = AuthorizationService(db_session)

        with pytest.raises(AuthorizationException) as exc_info:
            await gate.require(
                client_actor, other_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.READ
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_associate_without_permission_denied(self, db_session, associate_actor, test_client_record):
        gate = AuthorizationService(db_session)

        with pytest.raises(AuthorizationException) as exc_info:
            await gate.require(
                associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.READ
            )

        assert exc_info.value.code == ErrorCode.DELEGATION_REQUIRED

    @pytest.mark.asyncio
    async def test_associate_level_must_cover_required(
        self, db_session, associate_actor, test_client_record, read_permission
    ):
        """A read grant allows reading but not submitting."""
        gate = AuthorizationService(db_session)

        read = await gate.check(
            associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.READ
        )
        submit = await gate.check(
            associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.SUBMIT
        )

        assert read.allowed
        assert not submit.allowed
        assert submit.effective_level == PermissionLevel.READ

    @pytest.mark.asyncio
    @pytest.mark.parametrize("granted", list(PermissionLevel))
    @pytest.mark.parametrize("required", list(PermissionLevel))
    async def test_granted_level_covers_every_lower_level(
        self, db_session, associate_user, associate_actor, test_client_record, granted, required
    ):
        await make_permission(db_session, associate_user, test_client_record, granted)
        gate = AuthorizationService(db_session)

        decision = await gate.check(
            associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, required
        )

        assert decision.allowed == (required.rank <= granted.rank)
        assert decision.effective_level == granted

    @pytest.mark.asyncio
    async def test_expired_permission_ignored(
        self, db_session, associate_actor, test_client_record, expired_permission
    ):
        gate = AuthorizationService(db_session)

        decision = await gate.check(
            associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.READ
        )

        assert not decision.allowed
        assert decision.effective_level is None

    @pytest.mark.asyncio
    async def test_revoked_permission_ignored(
        self, db_session, associate_user, associate_actor, test_client_record
    ):
        await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.SUBMIT, is_active=False
        )
        gate = AuthorizationService(db_session)

        level = await gate.get_effective_level(
            associate_actor.id, test_client_record.id, PermissionArea.TAX_FILINGS
        )

        assert level is None

    @pytest.mark.asyncio
    async def test_permission_is_scoped_to_area(
        self, db_session, associate_user, associate_actor, test_client_record
    ):
        """A payments grant gives nothing on tax filings."""
        await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.SUBMIT,
            area=PermissionArea.PAYMENTS,
        )
        gate = AuthorizationService(db_session)

        decision = await gate.check(
            associate_actor, test_client_record.id, PermissionArea.TAX_FILINGS, PermissionLevel.READ
        )

        assert not decision.allowed

    @pytest.mark.asyncio
    async def test_future_expiry_still_valid(
        self, db_session, associate_user, associate_actor, test_client_record
    ):
        await make_permission(
            db_session, associate_user, test_client_record, PermissionLevel.UPDATE,
            expires_at=utc_now() + timedelta(days=3),
        )
        gate = AuthorizationService(db_session)

        level = await gate.get_effective_level(
            associate_actor.id, test_client_record.id, PermissionArea.TAX_FILINGS
        )

        assert level == PermissionLevel.UPDATE

    @pytest.mark.asyncio
    async def test_accessible_client_ids(
        self, db_session, associate_user, associate_actor, test_client_record, other_client_record
    ):
        """Only clients with a grant at or above the minimum level are listed."""
        await make_permission(db_session, associate_user, test_client_record, PermissionLevel.SUBMIT)
        await make_permission(db_session, associate_user, other_client_record, PermissionLevel.READ)
        gate = AuthorizationService(db_session)

        readable = await gate.accessible_client_ids(associate_actor.id, PermissionArea.TAX_FILINGS)
        submittable = await gate.accessible_client_ids(
            associate_actor.id, PermissionArea.TAX_FILINGS, PermissionLevel.SUBMIT
        )

        assert set(readable) == {test_client_record.id, other_client_record.id}
        assert submittable == [test_client_record.id]

    @pytest.mark.asyncio
    async def test_require_admin(self, db_session, admin_actor, associate_actor):
        gate = AuthorizationService(db_session)

        gate.require_admin(admin_actor, "review tax filings")
        with pytest.raises(AuthorizationException) as exc_info:
            gate.require_admin(associate_actor, "review tax filings")

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS
