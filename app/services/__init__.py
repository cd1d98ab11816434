"""
BettsTax Practice - Services Package

Business logic services.
"""

from app.services.authorization_service import AuthorizationService, AuthorizationDecision
from app.services.on_behalf_action_service import OnBehalfActionService
from app.services.associate_permission_service import AssociatePermissionService
from app.services.tax_calculation_service import TaxCalculationService, TaxLiabilityResult
from app.services.tax_filing_service import TaxFilingService, ValidationResult, generate_filing_reference
from app.services.tax_authority_service import TaxAuthorityService, AuthoritySubmissionResult

__all__ = [
    "AuthorizationService",
    "AuthorizationDecision",
    "OnBehalfActionService",
    "AssociatePermissionService",
    "TaxCalculationService",
    "TaxLiabilityResult",
    "TaxFilingService",
    "ValidationResult",
    "generate_filing_reference",
    "TaxAuthorityService",
    "AuthoritySubmissionResult",
]
