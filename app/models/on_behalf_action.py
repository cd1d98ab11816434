"""
BettsTax Practice - On-Behalf Action Model

Append-only record of every mutation an associate performs while acting
for a client. Only the client notification flag changes after insert.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String, Text, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class OnBehalfActionType(str, Enum):
    """Verbs recorded for associate actions."""
    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    DELETE = "delete"
    UPDATE_SCHEDULES = "update_schedules"


class OnBehalfAction(BaseModel):
    """
    Audit entry for an action an associate performed for a client.
    """

    __tablename__ = "on_behalf_actions"

    associate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action: Mapped[OnBehalfActionType] = mapped_column(SQLEnum(OnBehalfActionType), nullable=False)
    entity_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="e.g. 'TaxFiling'",
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    action_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    client_notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    client_notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<OnBehalfAction(id={self.id}, action={self.action}, "
            f"{self.entity_type}={self.entity_id})>"
        )
