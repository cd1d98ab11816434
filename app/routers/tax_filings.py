"""
BettsTax Practice - Tax Filings Router

API endpoints for the tax filing lifecycle, associate on-behalf work,
liability calculation and electronic submission to the tax authority.

Static paths (/deadlines, /associate/delegated, /client/{id}, ...) are
declared before /{filing_id}.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_actor_context
from app.models.tax_filing import FilingStatus, TaxFiling, TaxType
from app.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, Pagination
from app.schemas.tax_filing import (
    AuthoritySubmissionResponse,
    FilingScheduleResponse,
    LiabilityCalculationRequest,
    LiabilityCalculationResponse,
    OnBehalfSubmitRequest,
    OnBehalfUpdateRequest,
    ReviewRequest,
    SaveSchedulesRequest,
    TaxFilingCreate,
    TaxFilingCreateForClient,
    TaxFilingResponse,
    TaxFilingUpdate,
    ValidationResultResponse,
)
from app.services.tax_authority_service import TaxAuthorityService
from app.services.tax_filing_service import TaxFilingService
from app.utils.permissions import ActorContext


router = APIRouter()


def _filing(filing: TaxFiling) -> TaxFilingResponse:
    return TaxFilingResponse.model_validate(filing)


def _page(filings: List[TaxFiling], page: int, page_size: int, total: int) -> PaginatedResponse[TaxFilingResponse]:
    return PaginatedResponse[TaxFilingResponse](
        data=[_filing(f) for f in filings],
        pagination=Pagination.build(page, page_size, total),
    )


# ===========================================
# COLLECTION
# ===========================================

@router.get(
    "",
    response_model=PaginatedResponse[TaxFilingResponse],
    summary="List tax filings",
)
async def list_tax_filings(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    search: Optional[str] = Query(None, description="Search filing reference and notes"),
    tax_type: Optional[TaxType] = Query(None, alias="taxType"),
    filing_status: Optional[FilingStatus] = Query(None, alias="status"),
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    List filings visible to the caller.

    Admins see every filing, client users only their own, and associates
    only those of clients that delegated tax filings to them.
    """
    filings, total = await TaxFilingService(db).list_filings(
        actor,
        page=page,
        page_size=page_size,
        search=search,
        tax_type=tax_type,
        status=filing_status,
        client_id=client_id,
    )
    return _page(filings, page, page_size, total)


@router.post(
    "",
    response_model=ApiResponse[TaxFilingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create tax filing",
)
async def create_tax_filing(
    request: TaxFilingCreate,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a filing in DRAFT status."""
    filing = await TaxFilingService(db).create_filing(actor, request)
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing created")


@router.get(
    "/deadlines",
    response_model=ApiResponse[List[TaxFilingResponse]],
    summary="Upcoming filing deadlines",
)
async def get_upcoming_deadlines(
    days: int = Query(settings.default_deadline_window_days, ge=1, le=365),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filings = await TaxFilingService(db).get_upcoming_deadlines(actor, days=days)
    return ApiResponse[List[TaxFilingResponse]](data=[_filing(f) for f in filings])


@router.post(
    "/calculate-liability",
    response_model=ApiResponse[LiabilityCalculationResponse],
    summary="Calculate tax liability",
)
async def calculate_liability(
    request: LiabilityCalculationRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Liability breakdown using the Sierra Leone Finance Act rates:
    base tax, minimum tax for companies, late-payment penalty and interest.
    """
    result = await TaxFilingService(db).calculate_liability(actor, request)
    return ApiResponse[LiabilityCalculationResponse](
        data=LiabilityCalculationResponse(**result.to_dict()),
    )


@router.get(
    "/associate/delegated",
    response_model=PaginatedResponse[TaxFilingResponse],
    summary="Filings of delegated clients",
)
async def list_delegated_filings(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    tax_type: Optional[TaxType] = Query(None, alias="taxType"),
    filing_status: Optional[FilingStatus] = Query(None, alias="status"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filings, total = await TaxFilingService(db).list_delegated_filings(
        actor,
        page=page,
        page_size=page_size,
        tax_type=tax_type,
        status=filing_status,
    )
    return _page(filings, page, page_size, total)


@router.get(
    "/client/{client_id}",
    response_model=PaginatedResponse[TaxFilingResponse],
    summary="List a client's filings",
)
async def list_client_filings(
    client_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    tax_type: Optional[TaxType] = Query(None, alias="taxType"),
    filing_status: Optional[FilingStatus] = Query(None, alias="status"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filings, total = await TaxFilingService(db).list_client_filings(
        actor,
        client_id,
        page=page,
        page_size=page_size,
        tax_type=tax_type,
        status=filing_status,
    )
    return _page(filings, page, page_size, total)


@router.post(
    "/client/{client_id}",
    response_model=ApiResponse[TaxFilingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create filing for a client",
)
async def create_filing_for_client(
    client_id: UUID,
    request: TaxFilingCreateForClient,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a draft filing for a client, typically by an associate acting on their behalf."""
    filing = await TaxFilingService(db).create_filing(
        actor, request.to_create(client_id), reason=request.reason
    )
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing created")


# ===========================================
# SINGLE FILING
# ===========================================

@router.get(
    "/{filing_id}",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Get tax filing",
)
async def get_tax_filing(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filing = await TaxFilingService(db).get_filing(actor, filing_id)
    return ApiResponse[TaxFilingResponse](data=_filing(filing))


@router.put(
    "/{filing_id}",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Update tax filing",
)
async def update_tax_filing(
    filing_id: UUID,
    request: TaxFilingUpdate,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Partially update a DRAFT filing.

    Send the `version` you last read to reject the update with 409 when
    someone else changed the filing in the meantime.
    """
    filing = await TaxFilingService(db).update_filing(actor, filing_id, request)
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing updated")


@router.delete(
    "/{filing_id}",
    response_model=MessageResponse,
    summary="Delete tax filing",
)
async def delete_tax_filing(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Delete a DRAFT filing (administrators only)."""
    await TaxFilingService(db).delete_filing(actor, filing_id)
    return MessageResponse(message="Tax filing deleted")


@router.post(
    "/{filing_id}/submit",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Submit tax filing",
)
async def submit_tax_filing(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filing = await TaxFilingService(db).submit_filing(actor, filing_id)
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing submitted")


@router.post(
    "/{filing_id}/review",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Review tax filing",
)
async def review_tax_filing(
    filing_id: UUID,
    request: ReviewRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Approve or reject a SUBMITTED filing (administrators only)."""
    filing = await TaxFilingService(db).review_filing(
        actor, filing_id, request.decision, request.comments
    )
    return ApiResponse[TaxFilingResponse](
        data=_filing(filing),
        message=f"Tax filing {request.decision.value}",
    )


@router.get(
    "/{filing_id}/validate",
    response_model=ApiResponse[ValidationResultResponse],
    summary="Validate tax filing",
)
async def validate_tax_filing(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    result = await TaxFilingService(db).validate_filing(actor, filing_id)
    return ApiResponse[ValidationResultResponse](data=ValidationResultResponse(**result.to_dict()))


# ===========================================
# SCHEDULES
# ===========================================

@router.get(
    "/{filing_id}/schedules",
    response_model=ApiResponse[List[FilingScheduleResponse]],
    summary="Get filing schedules",
)
async def get_schedules(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    schedules = await TaxFilingService(db).get_schedules(actor, filing_id)
    return ApiResponse[List[FilingScheduleResponse]](
        data=[FilingScheduleResponse.model_validate(s) for s in schedules],
    )


@router.post(
    "/{filing_id}/schedules",
    response_model=ApiResponse[List[FilingScheduleResponse]],
    summary="Replace filing schedules",
)
async def save_schedules(
    filing_id: UUID,
    request: SaveSchedulesRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Replace every schedule line of a DRAFT filing in one transaction."""
    schedules = await TaxFilingService(db).save_schedules(actor, filing_id, request.schedules)
    return ApiResponse[List[FilingScheduleResponse]](
        data=[FilingScheduleResponse.model_validate(s) for s in schedules],
        message="Schedules saved",
    )


# ===========================================
# ON-BEHALF
# ===========================================

@router.put(
    "/{filing_id}/on-behalf",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Update filing on behalf of client",
)
async def update_on_behalf(
    filing_id: UUID,
    request: OnBehalfUpdateRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filing = await TaxFilingService(db).update_filing(
        actor, filing_id, request.updates, reason=request.reason
    )
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing updated")


@router.post(
    "/{filing_id}/submit-on-behalf",
    response_model=ApiResponse[TaxFilingResponse],
    summary="Submit filing on behalf of client",
)
async def submit_on_behalf(
    filing_id: UUID,
    request: OnBehalfSubmitRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    filing = await TaxFilingService(db).submit_filing(actor, filing_id, reason=request.reason)
    return ApiResponse[TaxFilingResponse](data=_filing(filing), message="Tax filing submitted")


# ===========================================
# TAX AUTHORITY
# ===========================================

@router.post(
    "/{filing_id}/authority-submission",
    response_model=ApiResponse[AuthoritySubmissionResponse],
    summary="Submit approved filing to tax authority",
)
async def submit_to_authority(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Send an APPROVED filing to the tax authority.

    Returns success=false with "Tax authority not configured" when no
    authority base URL is set.
    """
    result = await TaxAuthorityService(db).submit_filing(actor, filing_id)
    submission = result.submission
    return ApiResponse[AuthoritySubmissionResponse](
        success=result.submitted,
        data=AuthoritySubmissionResponse(
            submitted=result.submitted,
            filing_id=result.filing_id,
            submission_id=submission.id if submission else None,
            authority_reference=submission.authority_reference if submission else None,
            status=submission.status if submission else None,
            message=result.message,
        ),
        message=result.message,
    )


@router.get(
    "/{filing_id}/authority-status",
    response_model=ApiResponse[AuthoritySubmissionResponse],
    summary="Check tax authority status",
)
async def check_authority_status(
    filing_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    submission = await TaxAuthorityService(db).check_status(actor, filing_id)
    return ApiResponse[AuthoritySubmissionResponse](
        data=AuthoritySubmissionResponse(
            submitted=True,
            filing_id=filing_id,
            submission_id=submission.id,
            authority_reference=submission.authority_reference,
            status=submission.status,
            message=submission.error_message or f"Submission is {submission.status.value}",
        ),
    )
