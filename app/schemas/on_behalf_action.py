"""
BettsTax Practice - On-Behalf Action Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.on_behalf_action import OnBehalfActionType


class OnBehalfActionResponse(BaseModel):
    """Schema for on-behalf action response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    associate_id: UUID
    client_id: UUID
    action: OnBehalfActionType
    entity_type: str
    entity_id: UUID
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    action_date: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    client_notified: bool
    client_notified_at: Optional[datetime] = None


class OnBehalfStatisticsResponse(BaseModel):
    """Aggregate counts for an associate."""
    total_actions: int
    actions_by_type: Dict[str, int] = {}
    actions_by_entity_type: Dict[str, int] = {}
    actions_by_client: Dict[str, int] = {}
    actions_per_day: Dict[str, int] = {}
    notifications_pending: int


class BulkNotifyRequest(BaseModel):
    action_ids: List[UUID] = Field(..., min_length=1)


class NotifyResultResponse(BaseModel):
    notified_count: int
