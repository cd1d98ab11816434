"""
BettsTax Practice - Test Data Factories

Helpers shared by fixtures and tests for building persisted records,
bearer headers and actor contexts.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.associate_permission import AssociatePermission, PermissionArea, PermissionLevel
from app.models.base import utc_now
from app.models.tax_filing import FilingSchedule, FilingStatus, TaxFiling, TaxType
from app.models.user import Client, User
from app.utils.permissions import ActorContext
from app.utils.security import create_access_token


TEST_PASSWORD = "TestPassword123!"


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header for a user."""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def actor_for(user: User) -> ActorContext:
    return ActorContext.for_user(user, ip_address="127.0.0.1", user_agent="pytest")


async def save(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


async def make_permission(
    db_session: AsyncSession,
    associate: User,
    client: Client,
    level: PermissionLevel,
    area: PermissionArea = PermissionArea.TAX_FILINGS,
    expires_at=None,
    is_active: bool = True,
) -> AssociatePermission:
    return await save(
        db_session,
        AssociatePermission(
            associate_id=associate.id,
            client_id=client.id,
            area=area,
            level=level,
            expires_at=expires_at,
            is_active=is_active,
            granted_at=utc_now(),
        ),
    )


async def make_filing(
    db_session: AsyncSession,
    client: Client,
    status: FilingStatus = FilingStatus.DRAFT,
    tax_type: TaxType = TaxType.GST,
    tax_year: int = 2024,
    due_date: date = None,
    reference: str = None,
    with_schedule: bool = True,
) -> TaxFiling:
    filing = TaxFiling(
        id=uuid4(),
        client_id=client.id,
        tax_type=tax_type,
        tax_year=tax_year,
        filing_reference=reference or f"GST-{tax_year}-{client.client_number:06d}-{uuid4().hex[:8]}",
        due_date=due_date or date.today() + timedelta(days=10),
        status=status,
        taxable_amount=Decimal("1000.00"),
        tax_liability=Decimal("150.00"),
        penalty_amount=Decimal("0"),
        interest_amount=Decimal("0"),
        withholding_tax_amount=Decimal("0"),
        version=1,
    )
    if with_schedule:
        filing.schedules = [
            FilingSchedule(
                line_number=1,
                description="Standard-rated sales",
                amount=Decimal("1000.00"),
                taxable_amount=Decimal("1000.00"),
            )
        ]
    return await save(db_session, filing)

