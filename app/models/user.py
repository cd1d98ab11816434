"""
BettsTax Practice - User and Client Models

Users authenticate against the API; clients are the taxpayers whose filings
the practice prepares.

Role Hierarchy:
1. Practice Staff:
   - System Admin: Full platform access, manages configuration
   - Admin: Reviews filings, administers associate permissions
   - Associate: Works client files under delegated, expiring permissions

2. Client Users:
   - Client: Self-service access to their own client record only
"""

import uuid
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class UserRole(str, Enum):
    """Roles recognised by the authorization gate."""
    SYSTEM_ADMIN = "system_admin"    # Full platform access
    ADMIN = "admin"                  # Filing review and permission administration
    ASSOCIATE = "associate"          # Delegated access to assigned clients
    CLIENT = "client"                # Self-service for own client record


ADMIN_ROLES = frozenset({UserRole.SYSTEM_ADMIN, UserRole.ADMIN})


class TaxpayerCategory(str, Enum):
    """NRA taxpayer segmentation."""
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"
    MICRO = "micro"


class Client(BaseModel):
    """
    Taxpayer served by the practice.

    client_number is the short numeric identifier printed in filing
    references (e.g. GST-2024-000042-202403011200).
    """

    __tablename__ = "clients"

    client_number: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tin: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Taxpayer Identification Number",
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    taxpayer_category: Mapped[TaxpayerCategory] = mapped_column(
        SQLEnum(TaxpayerCategory),
        default=TaxpayerCategory.MEDIUM,
        nullable=False,
    )
    is_individual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="client",
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, number={self.client_number}, name={self.name})>"


class User(BaseModel):
    """
    User model for authentication and authorization.

    Client users carry client_id; staff users (admins, associates) do not.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.CLIENT,
        nullable=False,
    )
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Set for client users only",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    client: Mapped[Optional["Client"]] = relationship(
        "Client",
        back_populates="users",
    )

    @property
    def full_name(self) -> str:
        """Get user's full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
