"""Entity change repository for audit trail reads."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from audittrail.core.audit import queries
from audittrail.core.audit.models import EntityChange


class EntityChangeRepository:
    """Repository for reading EntityChange records.

    The audit trail is append-only: this repository never writes.
    Property diffs are loaded together with their headers.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_history(
        self,
        entity_name: str,
        entity_id: Any,
        limit: int | None = None,
    ) -> list[EntityChange]:
        """Get the change history of an entity, most recent first.

        Args:
            entity_name: Class name of the audited entity
            entity_id: Primary key of the audited row
            limit: Maximum number of changes to return

        Returns:
            List of changes
        """
        stmt = queries.change_history(entity_name, entity_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_history_for(self, entity: Any) -> list[EntityChange]:
        """Get the change history of an entity instance.

        Args:
            entity: A persisted entity

        Returns:
            List of changes; empty if the entity was never saved
        """
        stmt = queries.change_history_for(entity)
        if stmt is None:
            return []
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_transaction(
        self,
        entity_name: str,
        entity_id: Any,
    ) -> dict[UUID, list[EntityChange]]:
        """Get the changes of an entity grouped by the save that wrote them.

        Args:
            entity_name: Class name of the audited entity
            entity_id: Primary key of the audited row

        Returns:
            Mapping of transaction ID to changes, oldest save first
        """
        result = await self.session.execute(
            queries.changes_by_transaction(entity_name, entity_id)
        )
        return queries.group_by_transaction(result.scalars().all())

    async def get_transaction(self, transaction_id: UUID) -> list[EntityChange]:
        """Get every change written by one save.

        Args:
            transaction_id: The save's transaction ID

        Returns:
            List of changes ordered by entity
        """
        result = await self.session.execute(queries.transaction_changes(transaction_id))
        return list(result.scalars().all())

    async def list_recent(
        self,
        changed_by: UUID | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[EntityChange]:
        """List recent changes across all entities.

        Args:
            changed_by: Only changes made by this user
            since: Only changes made at or after this instant
            limit: Maximum number of changes to return

        Returns:
            List of changes, most recent first
        """
        stmt = queries.recent_changes(changed_by=changed_by, since=since).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
