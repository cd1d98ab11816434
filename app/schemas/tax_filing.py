"""
BettsTax Practice - Tax Filing Schemas

Pydantic schemas for tax filing requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.tax_filing import FilingStatus, ReviewDecision, SubmissionStatus, TaxType


# ===========================================
# SCHEDULES
# ===========================================

class FilingScheduleInput(BaseModel):
    """Schedule line supplied on create or schedule save."""
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., ge=0)
    taxable_amount: Decimal = Field(..., ge=0)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Description cannot be blank")
        return v.strip()


class FilingScheduleResponse(BaseModel):
    """Schedule line in responses."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_number: int
    description: str
    amount: Decimal
    taxable_amount: Decimal


class SaveSchedulesRequest(BaseModel):
    """Full replacement set of schedule lines."""
    schedules: List[FilingScheduleInput] = Field(default_factory=list)


# ===========================================
# CREATE / UPDATE
# ===========================================

class TaxFilingCreate(BaseModel):
    """Schema for creating a tax filing (always starts as draft)."""
    client_id: UUID
    tax_type: TaxType
    tax_year: int = Field(..., ge=2000, le=2100)
    due_date: date
    filing_date: Optional[date] = None
    filing_reference: Optional[str] = Field(None, min_length=1, max_length=100)
    taxable_amount: Decimal = Field(Decimal("0"), ge=0)
    tax_liability: Decimal = Field(Decimal("0"), ge=0)
    penalty_amount: Decimal = Field(Decimal("0"), ge=0)
    interest_amount: Decimal = Field(Decimal("0"), ge=0)
    withholding_tax_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = Field(None, max_length=4000)
    schedules: List[FilingScheduleInput] = Field(default_factory=list)


class TaxFilingCreateForClient(BaseModel):
    """Create body for the client-scoped route; client comes from the path."""
    tax_type: TaxType
    tax_year: int = Field(..., ge=2000, le=2100)
    due_date: date
    filing_date: Optional[date] = None
    filing_reference: Optional[str] = Field(None, min_length=1, max_length=100)
    taxable_amount: Decimal = Field(Decimal("0"), ge=0)
    tax_liability: Decimal = Field(Decimal("0"), ge=0)
    penalty_amount: Decimal = Field(Decimal("0"), ge=0)
    interest_amount: Decimal = Field(Decimal("0"), ge=0)
    withholding_tax_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = Field(None, max_length=4000)
    schedules: List[FilingScheduleInput] = Field(default_factory=list)
    reason: Optional[str] = Field(None, max_length=1000)

    def to_create(self, client_id: UUID) -> TaxFilingCreate:
        return TaxFilingCreate(client_id=client_id, **self.model_dump(exclude={"reason"}))


class TaxFilingUpdate(BaseModel):
    """
    Partial update of a draft filing. Omitted fields are left unchanged.

    version: when supplied, the update is rejected with 409 if the filing
    has changed since that version was read.
    """
    model_config = ConfigDict(extra="forbid")

    tax_type: Optional[TaxType] = None
    tax_year: Optional[int] = Field(None, ge=2000, le=2100)
    due_date: Optional[date] = None
    filing_date: Optional[date] = None
    filing_reference: Optional[str] = Field(None, min_length=1, max_length=100)
    taxable_amount: Optional[Decimal] = Field(None, ge=0)
    tax_liability: Optional[Decimal] = Field(None, ge=0)
    penalty_amount: Optional[Decimal] = Field(None, ge=0)
    interest_amount: Optional[Decimal] = Field(None, ge=0)
    withholding_tax_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=4000)
    version: Optional[int] = Field(None, ge=1)

    def changes(self) -> dict:
        """Explicitly supplied fields, excluding the concurrency token."""
        return self.model_dump(exclude_unset=True, exclude={"version"})


class OnBehalfUpdateRequest(BaseModel):
    """Update made by an associate for a client, with a mandatory reason."""
    updates: TaxFilingUpdate
    reason: str = Field(..., min_length=1, max_length=1000)


class OnBehalfSubmitRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class ReviewRequest(BaseModel):
    """Admin review decision."""
    decision: ReviewDecision
    comments: Optional[str] = Field(None, max_length=4000)


# ===========================================
# RESPONSES
# ===========================================

class TaxFilingResponse(BaseModel):
    """Schema for tax filing response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    tax_type: TaxType
    tax_year: int
    filing_reference: str
    status: FilingStatus
    filing_date: Optional[date] = None
    due_date: Optional[date] = None
    taxable_amount: Decimal
    tax_liability: Decimal
    penalty_amount: Decimal
    interest_amount: Decimal
    withholding_tax_amount: Decimal
    net_tax_payable: Decimal
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    submitted_by_id: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by_id: Optional[UUID] = None
    review_comments: Optional[str] = None
    created_by_id: Optional[UUID] = None
    updated_by_id: Optional[UUID] = None
    version: int
    schedules: List[FilingScheduleResponse] = []
    created_at: datetime
    updated_at: datetime


class ValidationResultResponse(BaseModel):
    """Read-only pre-submission check result."""
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


# ===========================================
# LIABILITY
# ===========================================

class LiabilityCalculationRequest(BaseModel):
    """Request for a liability breakdown."""
    client_id: UUID
    tax_type: TaxType
    taxable_amount: Decimal = Field(..., ge=0)
    due_date: Optional[date] = None
    annual_turnover: Decimal = Field(Decimal("0"), ge=0)
    is_individual: Optional[bool] = Field(
        None,
        description="Defaults to the client's individual/company classification",
    )


class LiabilityCalculationResponse(BaseModel):
    """Liability breakdown."""
    tax_type: TaxType
    taxable_amount: Decimal
    base_tax: Decimal
    minimum_tax: Decimal
    penalty: Decimal
    interest: Decimal
    days_late: int
    total_tax_liability: Decimal
    calculated_at: datetime


# ===========================================
# TAX AUTHORITY
# ===========================================

class AuthoritySubmissionResponse(BaseModel):
    """Result of sending a filing to the tax authority."""
    submitted: bool
    filing_id: UUID
    submission_id: Optional[UUID] = None
    authority_reference: Optional[str] = None
    status: Optional[SubmissionStatus] = None
    message: str
