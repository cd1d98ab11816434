"""
BettsTax Practice - Associate Permission Models

Delegated authority granted by an admin to an associate over one client's
data, scoped to a functional area and capped at a permission level.

At most one row exists per (associate, client, area); granting again
updates that row. Expired or revoked rows authorize nothing.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class PermissionArea(str, Enum):
    """Functional areas over which access can be delegated."""
    TAX_FILINGS = "tax_filings"
    PAYMENTS = "payments"
    DOCUMENTS = "documents"
    COMPLIANCE = "compliance"
    REPORTS = "reports"
    MESSAGES = "messages"

    @classmethod
    def from_legacy(cls, value: str) -> "PermissionArea":
        """
        Map a legacy area key ("TaxFilings", "Payments", ...) or a current
        value to the enum. Raises ValueError for unknown keys.
        """
        normalized = value.strip()
        for area in cls:
            if normalized == area.value:
                return area
        legacy = normalized.replace("_", "").replace("-", "").replace(" ", "").lower()
        for area in cls:
            if area.value.replace("_", "") == legacy:
                return area
        raise ValueError(f"Unknown permission area: {value}")


class PermissionLevel(str, Enum):
    """
    Ordinal capability tiers: READ < CREATE < UPDATE < SUBMIT.
    A grant at one level implies every level below it.
    """
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"

    @property
    def rank(self) -> int:
        return PERMISSION_LEVEL_RANK[self]

    def satisfies(self, required: "PermissionLevel") -> bool:
        return self.rank >= required.rank


PERMISSION_LEVEL_RANK = {
    PermissionLevel.READ: 1,
    PermissionLevel.CREATE: 2,
    PermissionLevel.UPDATE: 3,
    PermissionLevel.SUBMIT: 4,
}


class PermissionAuditAction(str, Enum):
    """Changes recorded in the permission audit trail."""
    GRANT = "grant"
    UPDATE = "update"
    REVOKE = "revoke"
    BULK_GRANT = "bulk_grant"
    BULK_REVOKE = "bulk_revoke"
    SET_EXPIRY = "set_expiry"
    RENEW = "renew"


class AssociatePermission(BaseModel):
    """
    Delegated permission of an associate for a client.
    """

    __tablename__ = "associate_permissions"
    __table_args__ = (
        UniqueConstraint(
            "associate_id", "client_id", "area",
            name="uq_associate_permissions_associate_client_area",
        ),
    )

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
    area: Mapped[PermissionArea] = mapped_column(SQLEnum(PermissionArea), nullable=False)
    level: Mapped[PermissionLevel] = mapped_column(SQLEnum(PermissionLevel), nullable=False)

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="NULL means the grant never expires",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    granted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AssociatePermission(associate={self.associate_id}, client={self.client_id}, "
            f"area={self.area}, level={self.level})>"
        )


class PermissionAuditLog(BaseModel):
    """
    Immutable trail of permission grants, changes and revocations.
    """

    __tablename__ = "associate_permission_audit_logs"

    associate_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    area: Mapped[PermissionArea] = mapped_column(SQLEnum(PermissionArea), nullable=False)
    action: Mapped[PermissionAuditAction] = mapped_column(SQLEnum(PermissionAuditAction), nullable=False)
    old_level: Mapped[Optional[PermissionLevel]] = mapped_column(SQLEnum(PermissionLevel), nullable=True)
    new_level: Mapped[Optional[PermissionLevel]] = mapped_column(SQLEnum(PermissionLevel), nullable=True)
    changed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
