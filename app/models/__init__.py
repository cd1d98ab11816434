"""
BettsTax Practice - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, AuditMixin
from app.models.user import User, UserRole, Client, TaxpayerCategory, ADMIN_ROLES
from app.models.tax_filing import (
    TaxFiling,
    FilingSchedule,
    TaxAuthoritySubmission,
    TaxType,
    FilingStatus,
    ReviewDecision,
    SubmissionStatus,
    FILING_REFERENCE_PREFIXES,
)
from app.models.associate_permission import (
    AssociatePermission,
    PermissionAuditLog,
    PermissionArea,
    PermissionLevel,
    PermissionAuditAction,
)
from app.models.on_behalf_action import OnBehalfAction, OnBehalfActionType

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    # Users & clients
    "User",
    "UserRole",
    "Client",
    "TaxpayerCategory",
    "ADMIN_ROLES",
    # Filings
    "TaxFiling",
    "FilingSchedule",
    "TaxAuthoritySubmission",
    "TaxType",
    "FilingStatus",
    "ReviewDecision",
    "SubmissionStatus",
    "FILING_REFERENCE_PREFIXES",
    # Delegation
    "AssociatePermission",
    "PermissionAuditLog",
    "PermissionArea",
    "PermissionLevel",
    "PermissionAuditAction",
    "OnBehalfAction",
    "OnBehalfActionType",
]
