"""
BettsTax Practice - Associate Permissions Router

Administrator endpoints for delegating client access to associates.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_actor_context
from app.models.associate_permission import PermissionArea
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
from app.schemas.common import ApiResponse, PaginatedResponse, Pagination
from app.services.associate_permission_service import AssociatePermissionService
from app.utils.permissions import ActorContext


router = APIRouter()


def _permission(permission) -> AssociatePermissionResponse:
    return AssociatePermissionResponse.model_validate(permission)


@router.post(
    "/grant",
    response_model=ApiResponse[AssociatePermissionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Grant permission",
)
async def grant_permission(
    request: PermissionGrantRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Grant an associate access to one area of a client's data.

    Granting again for the same associate, client and area updates the
    existing permission (and reactivates it if it was revoked).
    """
    permission = await AssociatePermissionService(db).grant(
        actor,
        associate_id=request.associate_id,
        client_id=request.client_id,
        area=request.area,
        level=request.level,
        expires_at=request.expires_at,
        notes=request.notes,
    )
    return ApiResponse[AssociatePermissionResponse](data=_permission(permission), message="Permission granted")


@router.post(
    "/bulk-grant",
    response_model=ApiResponse[List[AssociatePermissionResponse]],
    status_code=status.HTTP_201_CREATED,
    summary="Grant permission for several clients",
)
async def bulk_grant_permissions(
    request: BulkPermissionGrantRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permissions = await AssociatePermissionService(db).bulk_grant(
        actor,
        associate_id=request.associate_id,
        client_ids=request.client_ids,
        area=request.area,
        level=request.level,
        expires_at=request.expires_at,
        notes=request.notes,
    )
    return ApiResponse[List[AssociatePermissionResponse]](
        data=[_permission(p) for p in permissions],
        message=f"{len(permissions)} permissions granted",
    )


@router.post(
    "/revoke",
    response_model=ApiResponse[AssociatePermissionResponse],
    summary="Revoke permission",
)
async def revoke_permission(
    request: PermissionRevokeRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permission = await AssociatePermissionService(db).revoke(actor, request.permission_id, request.reason)
    return ApiResponse[AssociatePermissionResponse](data=_permission(permission), message="Permission revoked")


@router.post(
    "/bulk-revoke",
    response_model=ApiResponse[BulkRevokeResultResponse],
    summary="Revoke several permissions",
)
async def bulk_revoke_permissions(
    request: BulkPermissionRevokeRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    count = await AssociatePermissionService(db).bulk_revoke(actor, request.permission_ids, request.reason)
    return ApiResponse[BulkRevokeResultResponse](
        data=BulkRevokeResultResponse(revoked_count=count),
        message=f"{count} permissions revoked",
    )


@router.post(
    "/set-expiry",
    response_model=ApiResponse[AssociatePermissionResponse],
    summary="Set permission expiry",
)
async def set_permission_expiry(
    request: SetExpiryRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permission = await AssociatePermissionService(db).set_expiry(actor, request.permission_id, request.expires_at)
    return ApiResponse[AssociatePermissionResponse](data=_permission(permission), message="Expiry updated")


@router.post(
    "/renew",
    response_model=ApiResponse[AssociatePermissionResponse],
    summary="Renew permission",
)
async def renew_permission(
    request: RenewPermissionRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permission = await AssociatePermissionService(db).renew(actor, request.permission_id, request.new_expiry)
    return ApiResponse[AssociatePermissionResponse](data=_permission(permission), message="Permission renewed")


@router.get(
    "/expiring",
    response_model=ApiResponse[List[AssociatePermissionResponse]],
    summary="Permissions expiring soon",
)
async def list_expiring_permissions(
    days: int = Query(7, ge=1, le=365),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permissions = await AssociatePermissionService(db).list_expiring_within(actor, days)
    return ApiResponse[List[AssociatePermissionResponse]](data=[_permission(p) for p in permissions])


@router.get(
    "/effective-level",
    response_model=ApiResponse[EffectiveLevelResponse],
    summary="Effective permission level",
)
async def get_effective_level(
    associate_id: UUID = Query(..., alias="associateId"),
    client_id: UUID = Query(..., alias="clientId"),
    area: PermissionArea = Query(PermissionArea.TAX_FILINGS),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    level = await AssociatePermissionService(db).get_effective_level(actor, associate_id, client_id, area)
    return ApiResponse[EffectiveLevelResponse](
        data=EffectiveLevelResponse(
            associate_id=associate_id,
            client_id=client_id,
            area=area,
            level=level,
            has_access=level is not None,
        ),
    )


@router.get(
    "/audit-log",
    response_model=PaginatedResponse[PermissionAuditLogResponse],
    summary="Permission audit log",
)
async def get_permission_audit_log(
    associate_id: Optional[UUID] = Query(None, alias="associateId"),
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100, alias="pageSize"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    entries, total = await AssociatePermissionService(db).get_audit_log(
        actor, associate_id=associate_id, client_id=client_id, page=page, page_size=page_size
    )
    return PaginatedResponse[PermissionAuditLogResponse](
        data=[PermissionAuditLogResponse.model_validate(e) for e in entries],
        pagination=Pagination.build(page, page_size, total),
    )


@router.get(
    "/associate/{associate_id}",
    response_model=ApiResponse[List[AssociatePermissionResponse]],
    summary="Permissions of an associate",
)
async def get_associate_permissions(
    associate_id: UUID,
    include_inactive: bool = Query(False, alias="includeInactive"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permissions = await AssociatePermissionService(db).get_permissions_for_associate(
        actor, associate_id, include_inactive=include_inactive
    )
    return ApiResponse[List[AssociatePermissionResponse]](data=[_permission(p) for p in permissions])


@router.get(
    "/associate/{associate_id}/clients",
    response_model=ApiResponse[List[ClientSummaryResponse]],
    summary="Clients delegated to an associate",
)
async def get_associate_clients(
    associate_id: UUID,
    area: PermissionArea = Query(PermissionArea.TAX_FILINGS),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    clients = await AssociatePermissionService(db).list_for_associate(actor, associate_id, area)
    return ApiResponse[List[ClientSummaryResponse]](
        data=[ClientSummaryResponse.model_validate(c) for c in clients],
    )


@router.get(
    "/client/{client_id}",
    response_model=ApiResponse[List[AssociatePermissionResponse]],
    summary="Permissions granted on a client",
)
async def get_client_permissions(
    client_id: UUID,
    include_inactive: bool = Query(False, alias="includeInactive"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    permissions = await AssociatePermissionService(db).get_permissions_for_client(
        actor, client_id, include_inactive=include_inactive
    )
    return ApiResponse[List[AssociatePermissionResponse]](data=[_permission(p) for p in permissions])
