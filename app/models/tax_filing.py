"""
BettsTax Practice - Tax Filing Models

Tax filings, their schedule lines and electronic submissions to the
National Revenue Authority.

Status Lifecycle:
    DRAFT -> SUBMITTED -> APPROVED | REJECTED

Schedules may only change while a filing is DRAFT, and only DRAFT
filings can be deleted.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Date, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text,
    CheckConstraint, Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, AuditMixin


class TaxType(str, Enum):
    """Tax types handled by the practice (Sierra Leone)."""
    INCOME_TAX = "income_tax"
    GST = "gst"
    PAYROLL_TAX = "payroll_tax"
    EXCISE_DUTY = "excise_duty"
    PAYE = "paye"
    WITHHOLDING_TAX = "withholding_tax"
    PERSONAL_INCOME_TAX = "personal_income_tax"
    CORPORATE_INCOME_TAX = "corporate_income_tax"


# Prefixes used when generating filing references
FILING_REFERENCE_PREFIXES = {
    TaxType.INCOME_TAX: "IT",
    TaxType.GST: "GST",
    TaxType.PAYROLL_TAX: "PT",
    TaxType.EXCISE_DUTY: "ED",
    TaxType.PAYE: "PAYE",
    TaxType.WITHHOLDING_TAX: "WHT",
    TaxType.PERSONAL_INCOME_TAX: "PIT",
    TaxType.CORPORATE_INCOME_TAX: "CIT",
}


class FilingStatus(str, Enum):
    """Tax filing workflow status."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    FILED = "filed"


class ReviewDecision(str, Enum):
    """Outcome of an admin review."""
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def filing_status(self) -> FilingStatus:
        return FilingStatus(self.value)


class SubmissionStatus(str, Enum):
    """Status of an electronic submission to the tax authority."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


class TaxFiling(BaseModel, AuditMixin):
    """
    A single tax return for one client, tax type and period.
    """

    __tablename__ = "tax_filings"

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tax_type: Mapped[TaxType] = mapped_column(SQLEnum(TaxType), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    filing_reference: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="e.g. GST-2024-000042-202403011200",
    )

    # Dates
    filing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    status: Mapped[FilingStatus] = mapped_column(
        SQLEnum(FilingStatus),
        default=FilingStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Amounts (SLE)
    taxable_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    tax_liability: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    penalty_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    interest_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    withholding_tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0"),
        nullable=False,
        comment="WHT already deducted at source, credited against liability",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Submission
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Review
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    review_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Incremented on every update; used for optimistic concurrency",
    )

    # Relationships
    schedules: Mapped[List["FilingSchedule"]] = relationship(
        "FilingSchedule",
        back_populates="filing",
        cascade="all, delete-orphan",
        order_by="FilingSchedule.line_number",
    )
    authority_submissions: Mapped[List["TaxAuthoritySubmission"]] = relationship(
        "TaxAuthoritySubmission",
        back_populates="filing",
        cascade="all, delete-orphan",
        order_by="TaxAuthoritySubmission.submitted_at",
    )

    @property
    def is_draft(self) -> bool:
        return self.status == FilingStatus.DRAFT

    @property
    def net_tax_payable(self) -> Decimal:
        """Liability plus penalties and interest, less withholding credits."""
        return (
            (self.tax_liability or Decimal("0"))
            + (self.penalty_amount or Decimal("0"))
            + (self.interest_amount or Decimal("0"))
            - (self.withholding_tax_amount or Decimal("0"))
        )

    def to_snapshot(self) -> Dict[str, Any]:
        """JSON-safe view of the filing used for before/after audit records."""
        return {
            "id": str(self.id) if self.id else None,
            "client_id": str(self.client_id),
            "tax_type": self.tax_type.value if self.tax_type else None,
            "tax_year": self.tax_year,
            "filing_reference": self.filing_reference,
            "status": self.status.value if self.status else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "filing_date": self.filing_date.isoformat() if self.filing_date else None,
            "taxable_amount": str(self.taxable_amount) if self.taxable_amount is not None else None,
            "tax_liability": str(self.tax_liability) if self.tax_liability is not None else None,
            "penalty_amount": str(self.penalty_amount) if self.penalty_amount is not None else None,
            "interest_amount": str(self.interest_amount) if self.interest_amount is not None else None,
            "withholding_tax_amount": (
                str(self.withholding_tax_amount) if self.withholding_tax_amount is not None else None
            ),
            "notes": self.notes,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return f"<TaxFiling(id={self.id}, ref={self.filing_reference}, status={self.status})>"


class FilingSchedule(BaseModel):
    """
    Schedule line attached to a filing. Replaced wholesale on each save.
    """

    __tablename__ = "filing_schedules"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        CheckConstraint("taxable_amount >= 0", name="taxable_amount_non_negative"),
    )

    filing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tax_filings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    taxable_amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)

    filing: Mapped["TaxFiling"] = relationship(
        "TaxFiling",
        back_populates="schedules",
    )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "line_number": self.line_number,
            "description": self.description,
            "amount": str(self.amount),
            "taxable_amount": str(self.taxable_amount),
        }


class TaxAuthoritySubmission(BaseModel):
    """
    Record of an approved filing transmitted to the tax authority.
    """

    __tablename__ = "tax_authority_submissions"

    filing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tax_filings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    authority_reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Reference issued by the authority on receipt",
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        SQLEnum(SubmissionStatus),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    response_payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    filing: Mapped["TaxFiling"] = relationship(
        "TaxFiling",
        back_populates="authority_submissions",
    )
