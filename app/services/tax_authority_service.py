"""
BettsTax Practice - Tax Authority Submission Service

Electronic submission of approved filings to the National Revenue
Authority and status polling.

API Endpoints (relative to TAX_AUTHORITY_BASE_URL):
- POST {submit_endpoint}             - submit a filing, returns a reference
- GET  {status_endpoint}/{reference} - processing status of a submission
- GET  {health_endpoint}             - connectivity check

Requests carry X-API-Key and X-Client-ID headers. When no base URL is
configured, submission is skipped with a non-fatal result.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.base import utc_now
from app.models.tax_filing import FilingStatus, SubmissionStatus, TaxAuthoritySubmission, TaxFiling
from app.models.user import Client
from app.services.authorization_service import AuthorizationService
from app.utils.error_handling import (
    FilingNotFoundException,
    InvalidStateTransitionException,
    NotFoundException,
    TaxAuthorityException,
)
from app.utils.permissions import ActorContext

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Tax authority not configured"

# Status strings returned by the authority mapped to local submission status
AUTHORITY_STATUS_MAP = {
    "accepted": SubmissionStatus.ACCEPTED,
    "approved": SubmissionStatus.ACCEPTED,
    "processed": SubmissionStatus.ACCEPTED,
    "rejected": SubmissionStatus.REJECTED,
    "failed": SubmissionStatus.REJECTED,
    "pending": SubmissionStatus.PENDING,
    "processing": SubmissionStatus.PENDING,
    "submitted": SubmissionStatus.PENDING,
}


def _money(value: Optional[Decimal]) -> str:
    return str(value if value is not None else Decimal("0"))


@dataclass
class AuthoritySubmissionResult:
    """Outcome of a submission attempt."""
    submitted: bool
    filing_id: uuid.UUID
    message: str
    submission: Optional[TaxAuthoritySubmission] = None


class TaxAuthorityService:
    """Client for the tax authority's electronic filing API."""

    def __init__(
        self,
        db: AsyncSession,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.db = db
        self.gate = AuthorizationService(db)
        self.base_url = (settings.tax_authority_base_url if base_url is None else base_url).rstrip("/")
        self.api_key = settings.tax_authority_api_key if api_key is None else api_key
        self.client_id = settings.tax_authority_client_id if client_id is None else client_id
        self.timeout = float(
            settings.tax_authority_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.submit_endpoint = settings.tax_authority_submit_endpoint
        self.status_endpoint = settings.tax_authority_status_endpoint.rstrip("/")
        self.health_endpoint = settings.tax_authority_health_endpoint

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if self.client_id:
            headers["X-Client-ID"] = self.client_id
        return httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout)

    async def _load(self, filing_id: uuid.UUID) -> TaxFiling:
        result = await self.db.execute(
            select(TaxFiling)
            .options(selectinload(TaxFiling.authority_submissions))
            .where(TaxFiling.id == filing_id)
            .execution_options(populate_existing=True)
        )
        filing = result.scalar_one_or_none()
        if not filing:
            raise FilingNotFoundException(filing_id)
        return filing

    @staticmethod
    def build_payload(filing: TaxFiling, client: Optional[Client]) -> Dict[str, Any]:
        """Request body for a filing submission."""
        return {
            "taxpayer_tin": (client.tin if client else None) or "",
            "taxpayer_name": client.name if client else "",
            "tax_type": filing.tax_type.value,
            "tax_period": str(filing.tax_year),
            "filing_reference": filing.filing_reference,
            "taxable_amount": _money(filing.taxable_amount),
            "tax_amount": _money(filing.tax_liability),
            "penalty_amount": _money(filing.penalty_amount),
            "interest_amount": _money(filing.interest_amount),
            "withholding_tax_amount": _money(filing.withholding_tax_amount),
            "due_date": filing.due_date.isoformat() if filing.due_date else None,
        }

    # ===========================================
    # SUBMISSION
    # ===========================================

    async def submit_filing(self, actor: ActorContext, filing_id: uuid.UUID) -> AuthoritySubmissionResult:
        """
        Submit an approved filing to the tax authority.

        A successful submission marks the filing FILED. Every attempt that
        reaches the authority is recorded as a TaxAuthoritySubmission.

        Raises:
            AuthorizationException: If the actor is not an admin
            FilingNotFoundException: If the filing does not exist
            InvalidStateTransitionException: If the filing is not approved
            TaxAuthorityException: If the authority cannot be reached or errors
        """
        self.gate.require_admin(actor, "submit filings to the tax authority")
        filing = await self._load(filing_id)

        if filing.status != FilingStatus.APPROVED:
            raise InvalidStateTransitionException(
                operation="submit to the tax authority",
                current_status=filing.status,
                allowed_statuses=[FilingStatus.APPROVED.value],
            )

        if not self.is_configured:
            logger.warning("Tax authority base URL not configured; skipping external submission")
            return AuthoritySubmissionResult(submitted=False, filing_id=filing_id, message=NOT_CONFIGURED_MESSAGE)

        client = await self.db.get(Client, filing.client_id)
        submission = TaxAuthoritySubmission(
            filing_id=filing.id,
            status=SubmissionStatus.PENDING,
            submitted_at=utc_now(),
            submitted_by_id=actor.id,
        )
        self.db.add(submission)

        try:
            async with self._get_client() as http:
                response = await http.post(self.submit_endpoint, json=self.build_payload(filing, client))
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            submission.status = SubmissionStatus.FAILED
            submission.error_message = str(e)[:2000] or e.__class__.__name__
            await self.db.commit()
            logger.error(f"Tax authority submission failed for filing {filing_id}: {e}")
            raise TaxAuthorityException(f"Submission failed: {e}", original_error=e) from e

        submission.response_payload = data
        reference = data.get("reference")
        if data.get("success") and reference:
            submission.status = SubmissionStatus.ACCEPTED
            submission.authority_reference = reference
            filing.status = FilingStatus.FILED
            filing.filing_date = filing.filing_date or utc_now().date()
            filing.updated_by_id = actor.id
            filing.version += 1
            message = data.get("message") or "Filing submitted to tax authority"
            logger.info(f"Tax filing {filing_id} submitted to authority with reference {reference}")
        else:
            submission.status = SubmissionStatus.REJECTED
            submission.error_message = data.get("message") or "Submission rejected"
            message = submission.error_message
            logger.warning(f"Tax authority rejected filing {filing_id}: {message}")

        await self.db.commit()
        await self.db.refresh(submission)

        return AuthoritySubmissionResult(
            submitted=submission.status == SubmissionStatus.ACCEPTED,
            filing_id=filing_id,
            message=message,
            submission=submission,
        )

    async def check_status(self, actor: ActorContext, filing_id: uuid.UUID) -> TaxAuthoritySubmission:
        """
        Poll the authority for the latest referenced submission of a filing.

        Raises:
            NotFoundException: If the filing has never been accepted for processing
            TaxAuthorityException: If the authority is unreachable or not configured
        """
        self.gate.require_admin(actor, "check tax authority status")
        filing = await self._load(filing_id)

        referenced = [s for s in filing.authority_submissions if s.authority_reference]
        if not referenced:
            raise NotFoundException(
                "Tax authority submission",
                message=f"Filing {filing_id} has no tax authority reference",
            )
        submission = referenced[-1]

        if not self.is_configured:
            raise TaxAuthorityException(NOT_CONFIGURED_MESSAGE)

        try:
            async with self._get_client() as http:
                response = await http.get(f"{self.status_endpoint}/{submission.authority_reference}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Status check failed for reference {submission.authority_reference}: {e}")
            raise TaxAuthorityException(f"Status check failed: {e}", original_error=e) from e

        authority_status = str(data.get("status") or "").lower()
        submission.status = AUTHORITY_STATUS_MAP.get(authority_status, submission.status)
        submission.response_payload = data
        submission.last_checked_at = utc_now()
        if submission.status == SubmissionStatus.REJECTED:
            submission.error_message = data.get("message") or data.get("details")

        await self.db.commit()
        await self.db.refresh(submission)

        logger.info(f"Status check for reference {submission.authority_reference}: {authority_status or 'unknown'}")
        return submission

    async def validate_configuration(self) -> bool:
        """True when the authority is configured and its health endpoint answers 2xx."""
        if not self.base_url or not self.api_key:
            logger.warning("Tax authority configuration is incomplete")
            return False

        try:
            async with self._get_client() as http:
                response = await http.get(self.health_endpoint)
        except httpx.HTTPError as e:
            logger.error(f"Tax authority health check failed: {e}")
            return False

        if response.is_success:
            logger.info("Tax authority configuration validation successful")
            return True

        logger.warning(f"Tax authority health check failed with status {response.status_code}")
        return False
