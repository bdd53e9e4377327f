"""Repository for container registry records."""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcp_sandbox.models.containers import ContainerRecord

from .base import BaseRepository


class ContainerRecordRepository(BaseRepository[ContainerRecord]):
    """Repository for container record CRUD operations."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize container record repository.

        Args:
            session: Database session
        """
        super().__init__(session, ContainerRecord)

    async def touch(self, container_id: str, now: datetime | None = None) -> ContainerRecord:
        """
        Insert a record or replace its timestamp.

        Args:
            container_id: Container identifier
            now: Timestamp to store (defaults to the current UTC time)

        Returns:
            The stored record
        """
        now = now or datetime.now(timezone.utc)
        record = await self.get(container_id)
        if record is None:
            return await self.create(ContainerRecord(id=container_id, last_seen=now))

        record.last_seen = now
        return await self.update(record)

    async def delete_by_id(self, container_id: str) -> bool:
        """
        Delete a record if present.

        Args:
            container_id: Container identifier

        Returns:
            True if a record was removed
        """
        result = await self.session.execute(
            delete(ContainerRecord).where(ContainerRecord.id == container_id)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def list_ids(self) -> List[str]:
        """
        List identifiers of all tracked containers.

        Returns:
            Container identifiers ordered by id
        """
        result = await self.session.execute(select(ContainerRecord.id).order_by(ContainerRecord.id))
        return list(result.scalars().all())
