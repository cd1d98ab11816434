"""
BettsTax Practice - Associate Permission Schemas

Pydantic schemas for delegated permission administration.
"""

from datetime import datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from app.models.associate_permission import PermissionArea, PermissionAuditAction, PermissionLevel


def _parse_area(value):
    """Accept current values and legacy keys such as 'TaxFilings'."""
    if isinstance(value, str):
        return PermissionArea.from_legacy(value)
    return value


AreaField = Annotated[PermissionArea, BeforeValidator(_parse_area)]


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class PermissionGrantRequest(BaseModel):
    """Grant or change one associate's access to a client's area."""
    associate_id: UUID
    client_id: UUID
    area: AreaField
    level: PermissionLevel
    expires_at: Optional[datetime] = Field(None, description="Omit for a grant that never expires")
    notes: Optional[str] = Field(None, max_length=1000)


class BulkPermissionGrantRequest(BaseModel):
    """Grant the same area and level for several clients."""
    associate_id: UUID
    client_ids: List[UUID] = Field(..., min_length=1)
    area: AreaField
    level: PermissionLevel
    expires_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class PermissionRevokeRequest(BaseModel):
    permission_id: UUID
    reason: Optional[str] = Field(None, max_length=500)


class BulkPermissionRevokeRequest(BaseModel):
    permission_ids: List[UUID] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class SetExpiryRequest(BaseModel):
    """Set a new expiry; null clears it."""
    permission_id: UUID
    expires_at: Optional[datetime] = None


class RenewPermissionRequest(BaseModel):
    permission_id: UUID
    new_expiry: datetime


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class AssociatePermissionResponse(BaseModel):
    """Schema for permission response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    associate_id: UUID
    client_id: UUID
    area: AreaField
    level: PermissionLevel
    expires_at: Optional[datetime] = None
    is_active: bool
    granted_by_id: Optional[UUID] = None
    granted_at: datetime
    notes: Optional[str] = None


class PermissionAuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    associate_id: UUID
    client_id: UUID
    area: PermissionArea
    action: PermissionAuditAction
    old_level: Optional[PermissionLevel] = None
    new_level: Optional[PermissionLevel] = None
    changed_by_id: Optional[UUID] = None
    changed_at: datetime
    reason: Optional[str] = None


class EffectiveLevelResponse(BaseModel):
    """Effective delegated level of an associate for a client's area."""
    associate_id: UUID
    client_id: UUID
    area: PermissionArea
    level: Optional[PermissionLevel] = None
    has_access: bool


class ClientSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_number: int
    name: str
    tin: Optional[str] = None
    is_individual: bool


class BulkRevokeResultResponse(BaseModel):
    revoked_count: int
