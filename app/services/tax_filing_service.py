"""
BettsTax Practice - Tax Filing Service

Business logic for the tax filing lifecycle:

    DRAFT -> SUBMITTED -> APPROVED | REJECTED

Every operation takes an explicit ActorContext. Authorization is resolved
through the AuthorizationService before any write, and associate-initiated
mutations append an OnBehalfAction inside the same transaction as the
change itself.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.associate_permission import PermissionArea, PermissionLevel
from app.models.base import utc_now
from app.models.on_behalf_action import OnBehalfActionType
from app.models.tax_filing import (
    FILING_REFERENCE_PREFIXES,
    FilingSchedule,
    FilingStatus,
    ReviewDecision,
    TaxFiling,
    TaxType,
)
from app.models.user import Client
from app.schemas.tax_filing import (
    FilingScheduleInput,
    LiabilityCalculationRequest,
    TaxFilingCreate,
    TaxFilingUpdate,
)
from app.services.authorization_service import AuthorizationService
from app.services.on_behalf_action_service import OnBehalfActionService
from app.services.tax_calculation_service import TaxCalculationService, TaxLiabilityResult
from app.utils.error_handling import (
    ClientNotFoundException,
    DatabaseException,
    FilingNotFoundException,
    FilingValidationException,
    InsufficientPermissionsException,
    InvalidStateTransitionException,
    ValidationException,
    VersionConflictException,
)
from app.utils.permissions import ActorContext

logger = logging.getLogger(__name__)

ENTITY_TYPE = "TaxFiling"
AREA = PermissionArea.TAX_FILINGS

# Fields that may be patched but never cleared
NON_NULLABLE_FIELDS = frozenset({
    "tax_type",
    "tax_year",
    "due_date",
    "filing_reference",
    "taxable_amount",
    "tax_liability",
    "penalty_amount",
    "interest_amount",
    "withholding_tax_amount",
})

AMOUNT_FIELDS = (
    ("taxable_amount", "Taxable amount"),
    ("tax_liability", "Tax liability"),
    ("penalty_amount", "Penalty amount"),
    ("interest_amount", "Interest amount"),
    ("withholding_tax_amount", "Withholding tax amount"),
)

MIN_TAX_YEAR = 2000
MAX_DEADLINE_WINDOW_DAYS = 365


def generate_filing_reference(
    tax_type: TaxType,
    tax_year: int,
    client_number: int,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a filing reference.

    Format: {PREFIX}-{tax_year}-{client_number:06d}-{yyyyMMddHHmm UTC}
    e.g. GST-2024-000042-202403011200
    """
    prefix = FILING_REFERENCE_PREFIXES.get(tax_type, "TX")
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M")
    return f"{prefix}-{tax_year}-{client_number:06d}-{stamp}"


@dataclass
class ValidationResult:
    """Outcome of the pre-submission check."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


class TaxFilingService:
    """Service for tax filing operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AuthorizationService(db)
        self.on_behalf = OnBehalfActionService(db)
        self.calculator = TaxCalculationService()

    # ===========================================
    # INTERNAL HELPERS
    # ===========================================

    @asynccontextmanager
    async def _transaction(self):
        """Commit on success; roll back and re-raise on any failure."""
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Tax filing transaction failed", exc_info=True)
            raise DatabaseException("Failed to save tax filing", original_error=e) from e
        except Exception:
            await self.db.rollback()
            raise

    async def _load(self, filing_id: uuid.UUID) -> TaxFiling:
        """Load a filing with its schedules, refreshing any cached state."""
        result = await self.db.execute(
            select(TaxFiling)
            .options(
                selectinload(TaxFiling.schedules),
                selectinload(TaxFiling.authority_submissions),
            )
            .where(TaxFiling.id == filing_id)
            .execution_options(populate_existing=True)
        )
        filing = result.scalar_one_or_none()
        if not filing:
            raise FilingNotFoundException(filing_id)
        return filing

    async def _get_client(self, client_id: uuid.UUID) -> Client:
        client = await self.db.get(Client, client_id)
        if not client:
            raise ClientNotFoundException(client_id)
        return client

    @staticmethod
    def _snapshot(filing: TaxFiling) -> Dict[str, Any]:
        snapshot = filing.to_snapshot()
        snapshot["schedules"] = [line.to_snapshot() for line in filing.schedules]
        return snapshot

    @staticmethod
    def _require_draft(filing: TaxFiling, operation: str) -> None:
        if not filing.is_draft:
            raise InvalidStateTransitionException(
                operation=operation,
                current_status=filing.status,
                allowed_statuses=[FilingStatus.DRAFT.value],
            )

    @staticmethod
    def _build_schedules(schedules: List[FilingScheduleInput]) -> List[FilingSchedule]:
        return [
            FilingSchedule(
                line_number=index,
                description=line.description,
                amount=line.amount,
                taxable_amount=line.taxable_amount,
            )
            for index, line in enumerate(schedules, start=1)
        ]

    async def _record_on_behalf(
        self,
        actor: ActorContext,
        filing: TaxFiling,
        action: OnBehalfActionType,
        old_values: Optional[Dict[str, Any]],
        reason: Optional[str],
    ) -> None:
        """Append an on-behalf entry when an associate performed the change."""
        if not actor.acts_on_behalf:
            return
        await self.on_behalf.record(
            actor=actor,
            client_id=filing.client_id,
            action=action,
            entity_type=ENTITY_TYPE,
            entity_id=filing.id,
            old_values=old_values,
            new_values=self._snapshot(filing),
            reason=reason,
        )

    async def _apply_scope(self, actor: ActorContext, query):
        """
        Restrict a filing query to what the actor may see.

        Returns:
            The scoped query, or None when the actor can see nothing
        """
        if actor.is_admin:
            return query
        if actor.is_client:
            if actor.client_id is None:
                return None
            return query.where(TaxFiling.client_id == actor.client_id)
        if actor.is_associate:
            client_ids = await self.gate.accessible_client_ids(actor.id, AREA, PermissionLevel.READ)
            if not client_ids:
                return None
            return query.where(TaxFiling.client_id.in_(client_ids))
        return None

    @staticmethod
    def _validate(filing: TaxFiling, today: Optional[date] = None) -> ValidationResult:
        """Blocking errors and advisory warnings for a filing."""
        today = today or datetime.now(timezone.utc).date()
        result = ValidationResult()

        max_year = today.year + 1
        if filing.tax_year is None or not (MIN_TAX_YEAR <= filing.tax_year <= max_year):
            result.errors.append(f"Tax year must be between {MIN_TAX_YEAR} and {max_year}")

        for attr, label in AMOUNT_FIELDS:
            value = getattr(filing, attr)
            if value is not None and value < 0:
                result.errors.append(f"{label} cannot be negative")

        if not filing.schedules:
            result.errors.append("Filing must have at least one schedule line")

        for line in filing.schedules:
            if not (line.description or "").strip():
                result.errors.append(f"Schedule line {line.line_number} has no description")
            if line.amount < 0 or line.taxable_amount < 0:
                result.errors.append(f"Schedule line {line.line_number} has a negative amount")

        if filing.due_date and filing.due_date < today:
            result.warnings.append(f"Due date {filing.due_date.isoformat()} has passed")

        if not filing.tax_liability:
            result.warnings.append("Tax liability is zero")

        if filing.schedules:
            schedule_total = sum((line.taxable_amount for line in filing.schedules), Decimal("0"))
            if schedule_total != filing.taxable_amount:
                result.warnings.append(
                    f"Declared taxable amount {filing.taxable_amount} differs from "
                    f"schedule total {schedule_total}"
                )

        return result

    # ===========================================
    # READ
    # ===========================================

    async def get_filing(self, actor: ActorContext, filing_id: uuid.UUID) -> TaxFiling:
        """Get a filing the actor may read."""
        filing = await self._load(filing_id)
        await self.gate.require(actor, filing.client_id, AREA, PermissionLevel.READ)
        return filing

    async def list_filings(
        self,
        actor: ActorContext,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        tax_type: Optional[TaxType] = None,
        status: Optional[FilingStatus] = None,
        client_id: Optional[uuid.UUID] = None,
    ) -> Tuple[List[TaxFiling], int]:
        """
        List filings visible to the actor with filters and pagination.

        Admins see all filings, client users their own, associates those of
        clients where they hold at least read access to tax filings.

        Returns:
            Tuple of (filings, total_count)
        """
        if client_id:
            await self.gate.require(actor, client_id, AREA, PermissionLevel.READ)

        query = await self._apply_scope(actor, select(TaxFiling))
        if query is None:
            return [], 0

        if client_id:
            query = query.where(TaxFiling.client_id == client_id)
        if tax_type:
            query = query.where(TaxFiling.tax_type == tax_type)
        if status:
            query = query.where(TaxFiling.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    TaxFiling.filing_reference.ilike(pattern),
                    TaxFiling.notes.ilike(pattern),
                )
            )

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.options(selectinload(TaxFiling.schedules))
            .order_by(TaxFiling.created_at.desc(), TaxFiling.filing_reference)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def list_client_filings(
        self,
        actor: ActorContext,
        client_id: uuid.UUID,
        page: int = 1,
        page_size: int = 20,
        tax_type: Optional[TaxType] = None,
        status: Optional[FilingStatus] = None,
    ) -> Tuple[List[TaxFiling], int]:
        """Filings of a single client."""
        await self._get_client(client_id)
        return await self.list_filings(
            actor,
            page=page,
            page_size=page_size,
            tax_type=tax_type,
            status=status,
            client_id=client_id,
        )

    async def list_delegated_filings(
        self,
        actor: ActorContext,
        page: int = 1,
        page_size: int = 20,
        tax_type: Optional[TaxType] = None,
        status: Optional[FilingStatus] = None,
    ) -> Tuple[List[TaxFiling], int]:
        """Filings of every client that has delegated tax filings to the associate."""
        if not actor.is_associate:
            raise InsufficientPermissionsException(
                required_permission="associate",
                user_role=",".join(sorted(role.value for role in actor.roles)),
            )
        return await self.list_filings(
            actor,
            page=page,
            page_size=page_size,
            tax_type=tax_type,
            status=status,
        )

    async def get_upcoming_deadlines(
        self,
        actor: ActorContext,
        days: int = 30,
        today: Optional[date] = None,
    ) -> List[TaxFiling]:
        """
        Visible filings due within the next `days` days that are not yet filed.

        Raises:
            ValidationException: If days is outside 1..365
        """
        if days < 1 or days > MAX_DEADLINE_WINDOW_DAYS:
            raise ValidationException(
                f"days must be between 1 and {MAX_DEADLINE_WINDOW_DAYS}",
                field="days",
            )

        today = today or datetime.now(timezone.utc).date()
        query = select(TaxFiling).where(
            TaxFiling.due_date >= today,
            TaxFiling.due_date <= today + timedelta(days=days),
            TaxFiling.status != FilingStatus.FILED,
        )
        query = await self._apply_scope(actor, query)
        if query is None:
            return []

        result = await self.db.execute(
            query.options(selectinload(TaxFiling.schedules))
            .order_by(TaxFiling.due_date, TaxFiling.filing_reference)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ===========================================
    # CREATE / UPDATE
    # ===========================================

    async def create_filing(
        self,
        actor: ActorContext,
        data: TaxFilingCreate,
        reason: Optional[str] = None,
    ) -> TaxFiling:
        """
        Create a draft filing.

        Raises:
            ClientNotFoundException: If the client does not exist
            AuthorizationException: If the actor lacks create access
        """
        client = await self._get_client(data.client_id)
        await self.gate.require(actor, client.id, AREA, PermissionLevel.CREATE)

        filing = TaxFiling(
            client_id=client.id,
            tax_type=data.tax_type,
            tax_year=data.tax_year,
            filing_reference=data.filing_reference or generate_filing_reference(
                data.tax_type, data.tax_year, client.client_number
            ),
            filing_date=data.filing_date,
            due_date=data.due_date,
            status=FilingStatus.DRAFT,
            taxable_amount=data.taxable_amount,
            tax_liability=data.tax_liability,
            penalty_amount=data.penalty_amount,
            interest_amount=data.interest_amount,
            withholding_tax_amount=data.withholding_tax_amount,
            notes=data.notes,
            version=1,
            created_by_id=actor.id,
            updated_by_id=actor.id,
            schedules=self._build_schedules(data.schedules),
        )

        async with self._transaction():
            self.db.add(filing)
            await self.db.flush()
            await self._record_on_behalf(actor, filing, OnBehalfActionType.CREATE, None, reason)

        logger.info(
            f"Created tax filing {filing.filing_reference} ({filing.id}) for client {client.id} "
            f"by {actor.id}"
        )
        return await self._load(filing.id)

    async def update_filing(
        self,
        actor: ActorContext,
        filing_id: uuid.UUID,
        patch: TaxFilingUpdate,
        reason: Optional[str] = None,
    ) -> TaxFiling:
        """
        Apply a partial update to a draft filing.

        Raises:
            AuthorizationException: If the actor lacks update access
            InvalidStateTransitionException: If the filing is not a draft
            VersionConflictException: If patch.version is stale
            ValidationException: If a required field is cleared
        """
        filing = await self._load(filing_id)
        await self.gate.require(actor, filing.client_id, AREA, PermissionLevel.UPDATE)
        self._require_draft(filing, "update")

        if patch.version is not None and patch.version != filing.version:
            raise VersionConflictException(patch.version, filing.version)

        changes = patch.changes()
        for name, value in changes.items():
            if value is None and name in NON_NULLABLE_FIELDS:
                raise ValidationException(f"{name} cannot be cleared", field=name)

        old_values = self._snapshot(filing)

        async with self._transaction():
            for name, value in changes.items():
                setattr(filing, name, value)
            filing.version += 1
            filing.updated_by_id = actor.id
            await self.db.flush()
            await self._record_on_behalf(actor, filing, OnBehalfActionType.UPDATE, old_values, reason)

        logger.info(f"Updated tax filing {filing_id} (fields: {sorted(changes)}) by {actor.id}")
        return await self._load(filing_id)

    # ===========================================
    # STATUS TRANSITIONS
    # ===========================================

    async def submit_filing(
        self,
        actor: ActorContext,
        filing_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> TaxFiling:
        """
        Move a draft filing to SUBMITTED.

        Raises:
            AuthorizationException: If the actor lacks submit access
            InvalidStateTransitionException: If the filing is not a draft
            FilingValidationException: If blocking validation errors exist
        """
        filing = await self._load(filing_id)
        await self.gate.require(actor, filing.client_id, AREA, PermissionLevel.SUBMIT)
        self._require_draft(filing, "submit")

        validation = self._validate(filing)
        if not validation.is_valid:
            raise FilingValidationException(validation.errors, validation.warnings)

        old_values = self._snapshot(filing)

        async with self._transaction():
            filing.status = FilingStatus.SUBMITTED
            filing.submitted_at = utc_now()
            filing.submitted_by_id = actor.id
            filing.updated_by_id = actor.id
            filing.version += 1
            await self.db.flush()
            await self._record_on_behalf(actor, filing, OnBehalfActionType.SUBMIT, old_values, reason)

        logger.info(f"Tax filing {filing_id} submitted by {actor.id}")
        return await self._load(filing_id)

    async def review_filing(
        self,
        actor: ActorContext,
        filing_id: uuid.UUID,
        decision: ReviewDecision,
        comments: Optional[str] = None,
    ) -> TaxFiling:
        """
        Approve or reject a submitted filing. Admin only.

        Raises:
            AuthorizationException: If the actor is not an admin
            InvalidStateTransitionException: If the filing is not awaiting review
        """
        self.gate.require_admin(actor, "review tax filings")
        filing = await self._load(filing_id)

        if filing.status not in (FilingStatus.SUBMITTED, FilingStatus.UNDER_REVIEW):
            raise InvalidStateTransitionException(
                operation="review",
                current_status=filing.status,
                allowed_statuses=[FilingStatus.SUBMITTED.value, FilingStatus.UNDER_REVIEW.value],
            )

        async with self._transaction():
            filing.status = decision.filing_status
            filing.reviewed_at = utc_now()
            filing.reviewed_by_id = actor.id
            filing.review_comments = comments
            filing.updated_by_id = actor.id
            filing.version += 1

        logger.info(f"Tax filing {filing_id} {decision.value} by {actor.id}")
        return await self._load(filing_id)

    async def delete_filing(self, actor: ActorContext, filing_id: uuid.UUID) -> None:
        """
        Delete a draft filing. Admin only.

        Raises:
            AuthorizationException: If the actor is not an admin
            InvalidStateTransitionException: If the filing is not a draft
        """
        self.gate.require_admin(actor, "delete tax filings")
        filing = await self._load(filing_id)
        self._require_draft(filing, "delete")

        async with self._transaction():
            await self.db.delete(filing)

        logger.info(f"Deleted tax filing {filing_id} by {actor.id}")

    async def validate_filing(self, actor: ActorContext, filing_id: uuid.UUID) -> ValidationResult:
        """Read-only pre-submission check."""
        filing = await self.get_filing(actor, filing_id)
        return self._validate(filing)

    # ===========================================
    # SCHEDULES
    # ===========================================

    async def get_schedules(self, actor: ActorContext, filing_id: uuid.UUID) -> List[FilingSchedule]:
        filing = await self.get_filing(actor, filing_id)
        return list(filing.schedules)

    async def save_schedules(
        self,
        actor: ActorContext,
        filing_id: uuid.UUID,
        schedules: List[FilingScheduleInput],
        reason: Optional[str] = None,
    ) -> List[FilingSchedule]:
        """
        Replace all schedule lines of a draft filing in one transaction.

        Either the full new set is stored or the previous set is left intact.
        """
        filing = await self._load(filing_id)
        await self.gate.require(actor, filing.client_id, AREA, PermissionLevel.UPDATE)
        self._require_draft(filing, "update schedules of")

        old_values = self._snapshot(filing)

        async with self._transaction():
            filing.schedules.clear()
            await self.db.flush()
            filing.schedules.extend(self._build_schedules(schedules))
            filing.version += 1
            filing.updated_by_id = actor.id
            await self.db.flush()
            await self._record_on_behalf(
                actor, filing, OnBehalfActionType.UPDATE_SCHEDULES, old_values, reason
            )

        logger.info(f"Saved {len(schedules)} schedule lines for tax filing {filing_id} by {actor.id}")
        filing = await self._load(filing_id)
        return list(filing.schedules)

    # ===========================================
    # LIABILITY
    # ===========================================

    async def calculate_liability(
        self,
        actor: ActorContext,
        request: LiabilityCalculationRequest,
    ) -> TaxLiabilityResult:
        """Liability breakdown for a client; requires read access to its filings."""
        client = await self._get_client(request.client_id)
        await self.gate.require(actor, client.id, AREA, PermissionLevel.READ)

        is_individual = client.is_individual if request.is_individual is None else request.is_individual
        return self.calculator.calculate_total_liability(
            tax_type=request.tax_type,
            taxable_amount=request.taxable_amount,
            due_date=request.due_date,
            annual_turnover=request.annual_turnover,
            is_individual=is_individual,
        )
