"""
BettsTax Practice - Tax Authority Router

Connectivity check for the tax authority filing API.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import require_admin
from app.schemas.common import ApiResponse
from app.services.tax_authority_service import TaxAuthorityService
from app.utils.permissions import ActorContext


router = APIRouter()


@router.get(
    "/health",
    response_model=ApiResponse[dict],
    summary="Tax authority connectivity",
)
async def tax_authority_health(
    actor: ActorContext = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    """Check that the tax authority is configured and reachable (administrators only)."""
    service = TaxAuthorityService(db)
    healthy = await service.validate_configuration()
    return ApiResponse[dict](
        success=healthy,
        data={"configured": service.is_configured, "healthy": healthy},
        message="Tax authority reachable" if healthy else "Tax authority unavailable or not configured",
    )
