"""
BettsTax Practice - On-Behalf Actions Router

Read access to the associate action log and the client notification flag.

Access:
- Admins: everything
- Associates: their own actions
- Client users: actions performed for their own client
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_actor_context
from app.models.on_behalf_action import OnBehalfAction
from app.schemas.common import ApiResponse, PaginatedResponse, Pagination
from app.schemas.on_behalf_action import (
    BulkNotifyRequest,
    NotifyResultResponse,
    OnBehalfActionResponse,
    OnBehalfStatisticsResponse,
)
from app.services.on_behalf_action_service import OnBehalfActionService
from app.utils.error_handling import AuthorizationException, NotFoundException
from app.utils.permissions import ActorContext


router = APIRouter()


def _actions(actions: List[OnBehalfAction]) -> List[OnBehalfActionResponse]:
    return [OnBehalfActionResponse.model_validate(a) for a in actions]


def _require_admin_or_self(actor: ActorContext, associate_id: UUID) -> None:
    if not (actor.is_admin or (actor.is_associate and actor.id == associate_id)):
        raise AuthorizationException("You can only view your own on-behalf actions")


def _require_admin_or_client(actor: ActorContext, client_id: UUID) -> None:
    if not (actor.is_admin or actor.owns_client(client_id)):
        raise AuthorizationException("You can only view actions performed for your own account")


@router.get(
    "",
    response_model=PaginatedResponse[OnBehalfActionResponse],
    summary="List on-behalf actions",
)
async def list_actions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    associate_id: Optional[UUID] = Query(None, alias="associateId"),
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Paginated action log.

    Non-admin callers are restricted to their own actions (associates)
    or their own client (client users).
    """
    if not actor.is_admin:
        if actor.is_associate:
            associate_id = actor.id
        elif actor.is_client and actor.client_id:
            client_id = actor.client_id
        else:
            raise AuthorizationException("You cannot view on-behalf actions")

    actions, total = await OnBehalfActionService(db).list_actions(
        page=page,
        page_size=page_size,
        associate_id=associate_id,
        client_id=client_id,
        date_from=date_from,
        date_to=date_to,
    )
    return PaginatedResponse[OnBehalfActionResponse](
        data=_actions(actions),
        pagination=Pagination.build(page, page_size, total),
    )


@router.get(
    "/client/{client_id}",
    response_model=ApiResponse[List[OnBehalfActionResponse]],
    summary="Actions performed for a client",
)
async def get_client_actions(
    client_id: UUID,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_client(actor, client_id)
    actions = await OnBehalfActionService(db).get_client_actions(client_id, date_from, date_to)
    return ApiResponse[List[OnBehalfActionResponse]](data=_actions(actions))


@router.get(
    "/client/{client_id}/unnotified",
    response_model=ApiResponse[List[OnBehalfActionResponse]],
    summary="Actions the client has not been notified of",
)
async def get_unnotified_actions(
    client_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_client(actor, client_id)
    actions = await OnBehalfActionService(db).get_unnotified_actions(client_id)
    return ApiResponse[List[OnBehalfActionResponse]](data=_actions(actions))


@router.post(
    "/client/{client_id}/notify",
    response_model=ApiResponse[NotifyResultResponse],
    summary="Mark several actions as notified",
)
async def bulk_notify(
    client_id: UUID,
    request: BulkNotifyRequest,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_client(actor, client_id)
    count = await OnBehalfActionService(db).bulk_notify(client_id, request.action_ids)
    return ApiResponse[NotifyResultResponse](
        data=NotifyResultResponse(notified_count=count),
        message=f"{count} actions marked as notified",
    )


@router.get(
    "/associate/{associate_id}",
    response_model=ApiResponse[List[OnBehalfActionResponse]],
    summary="Actions performed by an associate",
)
async def get_associate_actions(
    associate_id: UUID,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_self(actor, associate_id)
    actions = await OnBehalfActionService(db).get_associate_actions(associate_id, date_from, date_to)
    return ApiResponse[List[OnBehalfActionResponse]](data=_actions(actions))


@router.get(
    "/associate/{associate_id}/recent",
    response_model=ApiResponse[List[OnBehalfActionResponse]],
    summary="Recent actions of an associate",
)
async def get_recent_actions(
    associate_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_self(actor, associate_id)
    actions = await OnBehalfActionService(db).get_recent_actions(associate_id, limit)
    return ApiResponse[List[OnBehalfActionResponse]](data=_actions(actions))


@router.get(
    "/associate/{associate_id}/statistics",
    response_model=ApiResponse[OnBehalfStatisticsResponse],
    summary="Action statistics of an associate",
)
async def get_statistics(
    associate_id: UUID,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    _require_admin_or_self(actor, associate_id)
    stats = await OnBehalfActionService(db).get_statistics(associate_id, date_from, date_to)
    return ApiResponse[OnBehalfStatisticsResponse](data=OnBehalfStatisticsResponse(**stats))


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=ApiResponse[List[OnBehalfActionResponse]],
    summary="History of an entity",
)
async def get_entity_actions(
    entity_type: str,
    entity_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Admins see the full history; others see only entries they could see anyway."""
    actions = await OnBehalfActionService(db).get_entity_actions(entity_type, entity_id)
    if not actor.is_admin:
        actions = [
            a for a in actions
            if (actor.is_associate and a.associate_id == actor.id) or actor.owns_client(a.client_id)
        ]
    return ApiResponse[List[OnBehalfActionResponse]](data=_actions(actions))


@router.post(
    "/{action_id}/notify",
    response_model=ApiResponse[OnBehalfActionResponse],
    summary="Mark an action as notified",
)
async def mark_notified(
    action_id: UUID,
    actor: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_async_session),
):
    service = OnBehalfActionService(db)
    action = await db.get(OnBehalfAction, action_id)
    if not action:
        raise NotFoundException("On-behalf action", action_id)
    _require_admin_or_client(actor, action.client_id)

    action = await service.mark_notified(action_id)
    return ApiResponse[OnBehalfActionResponse](
        data=OnBehalfActionResponse.model_validate(action),
        message="Action marked as notified",
    )
