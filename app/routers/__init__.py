"""
BettsTax Practice - Routers Package

FastAPI route handlers.

Routers:
- auth: Authentication (login, current user)
- tax_filings: Tax filing lifecycle, schedules, on-behalf work and authority submission
- associate_permissions: Delegated associate permission administration
- on_behalf_actions: Associate action log and client notification
- tax_authority: Tax authority connectivity check
"""

from app.routers import (
    auth,
    tax_filings,
    associate_permissions,
    on_behalf_actions,
    tax_authority,
)

__all__ = [
    "auth",
    "tax_filings",
    "associate_permissions",
    "on_behalf_actions",
    "tax_authority",
]
