"""
BettsTax Practice - On-Behalf Action Log Service

Append-only audit trail of associate actions performed for clients.

Entries are written inside the caller's transaction so that a business
mutation and its audit record commit or roll back together. The only
field that changes after insert is the client notification flag.
"""

import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utc_now
from app.models.on_behalf_action import OnBehalfAction, OnBehalfActionType
from app.utils.error_handling import DatabaseException, NotFoundException
from app.utils.permissions import ActorContext

logger = logging.getLogger(__name__)


class OnBehalfActionService:
    """Service for recording and querying on-behalf actions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        actor: ActorContext,
        client_id: uuid.UUID,
        action: OnBehalfActionType,
        entity_type: str,
        entity_id: uuid.UUID,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> OnBehalfAction:
        """
        Record an associate action. Does not commit.

        Args:
            actor: Acting associate
            client_id: Client the action was performed for
            action: Verb performed
            entity_type: Type of the affected entity (e.g. 'TaxFiling')
            entity_id: ID of the affected entity
            old_values: Snapshot before the change
            new_values: Snapshot after the change
            reason: Free-text justification

        Returns:
            The flushed OnBehalfAction

        Raises:
            DatabaseException: If the log entry cannot be written
        """
        entry = OnBehalfAction(
            associate_id=actor.id,
            client_id=client_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            reason=reason,
            action_date=utc_now(),
            ip_address=actor.ip_address,
            user_agent=(actor.user_agent or "")[:500] or None,
            client_notified=False,
        )

        try:
            self.db.add(entry)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to record on-behalf action {action.value} on {entity_type} {entity_id} "
                f"by associate {actor.id} for client {client_id}",
                exc_info=True,
            )
            raise DatabaseException("Failed to record on-behalf action", original_error=e) from e

        logger.info(
            f"Logged on-behalf action: {action.value} on {entity_type} {entity_id} "
            f"by associate {actor.id} for client {client_id}"
        )
        return entry

    # ===========================================
    # QUERIES
    # ===========================================

    async def get_client_actions(
        self,
        client_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[OnBehalfAction]:
        """All actions performed for a client, newest first."""
        query = select(OnBehalfAction).where(OnBehalfAction.client_id == client_id)
        query = self._apply_date_range(query, date_from, date_to)
        result = await self.db.execute(query.order_by(OnBehalfAction.action_date.desc()))
        return list(result.scalars().all())

    async def get_associate_actions(
        self,
        associate_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[OnBehalfAction]:
        """All actions performed by an associate, newest first."""
        query = select(OnBehalfAction).where(OnBehalfAction.associate_id == associate_id)
        query = self._apply_date_range(query, date_from, date_to)
        result = await self.db.execute(query.order_by(OnBehalfAction.action_date.desc()))
        return list(result.scalars().all())

    async def get_entity_actions(self, entity_type: str, entity_id: uuid.UUID) -> List[OnBehalfAction]:
        """History of associate actions on a single entity, newest first."""
        result = await self.db.execute(
            select(OnBehalfAction)
            .where(
                OnBehalfAction.entity_type == entity_type,
                OnBehalfAction.entity_id == entity_id,
            )
            .order_by(OnBehalfAction.action_date.desc())
        )
        return list(result.scalars().all())

    async def get_recent_actions(self, associate_id: uuid.UUID, limit: int = 10) -> List[OnBehalfAction]:
        """Most recent actions of an associate."""
        result = await self.db.execute(
            select(OnBehalfAction)
            .where(OnBehalfAction.associate_id == associate_id)
            .order_by(OnBehalfAction.action_date.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_actions(
        self,
        page: int = 1,
        page_size: int = 20,
        associate_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[List[OnBehalfAction], int]:
        """
        Paginated action log.

        Returns:
            Tuple of (actions, total_count)
        """
        query = select(OnBehalfAction)
        if associate_id:
            query = query.where(OnBehalfAction.associate_id == associate_id)
        if client_id:
            query = query.where(OnBehalfAction.client_id == client_id)
        query = self._apply_date_range(query, date_from, date_to)

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(OnBehalfAction.action_date.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_statistics(
        self,
        associate_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Aggregate counts for an associate's dashboard.

        Returns:
            Dict with total_actions, actions_by_type, actions_by_entity_type,
            actions_by_client, actions_per_day and notifications_pending
        """
        actions = await self.get_associate_actions(associate_id, date_from, date_to)

        return {
            "total_actions": len(actions),
            "actions_by_type": dict(Counter(a.action.value for a in actions)),
            "actions_by_entity_type": dict(Counter(a.entity_type for a in actions)),
            "actions_by_client": dict(Counter(str(a.client_id) for a in actions)),
            "actions_per_day": dict(Counter(a.action_date.date().isoformat() for a in actions)),
            "notifications_pending": sum(1 for a in actions if not a.client_notified),
        }

    # ===========================================
    # CLIENT NOTIFICATION FLAG
    # ===========================================

    async def get_unnotified_actions(self, client_id: uuid.UUID) -> List[OnBehalfAction]:
        """Actions the client has not yet been told about."""
        result = await self.db.execute(
            select(OnBehalfAction)
            .where(
                OnBehalfAction.client_id == client_id,
                OnBehalfAction.client_notified == False,  # noqa: E712
            )
            .order_by(OnBehalfAction.action_date.desc())
        )
        return list(result.scalars().all())

    async def mark_notified(self, action_id: uuid.UUID) -> OnBehalfAction:
        """
        Flag a single action as notified to the client.

        Raises:
            NotFoundException: If the action does not exist
        """
        action = await self.db.get(OnBehalfAction, action_id)
        if not action:
            raise NotFoundException("On-behalf action", action_id)

        if not action.client_notified:
            action.client_notified = True
            action.client_notified_at = utc_now()
            await self.db.commit()
            await self.db.refresh(action)
            logger.info(f"Client {action.client_id} notified of action {action.id}")

        return action

    async def bulk_notify(self, client_id: uuid.UUID, action_ids: List[uuid.UUID]) -> int:
        """
        Flag several actions of one client as notified.

        Actions that belong to another client are ignored.

        Returns:
            Number of actions newly flagged
        """
        if not action_ids:
            return 0

        result = await self.db.execute(
            select(OnBehalfAction).where(
                OnBehalfAction.client_id == client_id,
                OnBehalfAction.id.in_(action_ids),
                OnBehalfAction.client_notified == False,  # noqa: E712
            )
        )
        actions = list(result.scalars().all())

        notified_at = utc_now()
        for action in actions:
            action.client_notified = True
            action.client_notified_at = notified_at

        await self.db.commit()
        logger.info(f"Client {client_id} notified of {len(actions)} actions")
        return len(actions)

    @staticmethod
    def _apply_date_range(query, date_from: Optional[datetime], date_to: Optional[datetime]):
        if date_from:
            query = query.where(OnBehalfAction.action_date >= date_from)
        if date_to:
            query = query.where(OnBehalfAction.action_date <= date_to)
        return query

