"""
BettsTax Practice - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.common import (
    ApiResponse,
    MessageResponse,
    PaginatedResponse,
    Pagination,
)
from app.schemas.auth import (
    TokenResponse,
    UserLoginRequest,
    UserResponse,
    UserWithTokenResponse,
)
from app.schemas.tax_filing import (
    AuthoritySubmissionResponse,
    FilingScheduleInput,
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
from app.schemas.associate_permission import (
    AssociatePermissionResponse,
    BulkPermissionGrantRequest,
    BulkPermissionRevokeRequest,
    BulkRevokeResultResponse,
    ClientSummaryResponse,
    EffectiveLevelResponse,
    PermissionAuditLogResponse,
    PermissionGrantRequest,
    PermissionRevokeRequest,
    RenewPermissionRequest,
    SetExpiryRequest,
)
from app.schemas.on_behalf_action import (
    BulkNotifyRequest,
    NotifyResultResponse,
    OnBehalfActionResponse,
    OnBehalfStatisticsResponse,
)
