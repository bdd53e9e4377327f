"""Registry of active sandbox containers shared by all sessions."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Protocol

from mcp_sandbox.config import get_settings
from mcp_sandbox.models.database import DatabaseManager, get_db_manager
from mcp_sandbox.repositories.containers import ContainerRecordRepository
from mcp_sandbox.utils import get_logger
from mcp_sandbox.utils.metrics_collector import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)

# Well-known name under which sessions look up the shared registry
CONTAINER_MANAGER_NAME = "manager"


class DestroyableSession(Protocol):
    async def destroy_container(self) -> None: ...


class SessionLookup(Protocol):
    """Resolves a tracked container identifier back to the session that owns it."""

    def get(self, container_id: str) -> DestroyableSession: ...


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ContainerManager:
    """
    Tracks which containers are active and when they were last used.

    Every operation runs under a single lock, so the registry has one writer
    at a time. ``reap_idle`` is the only operation that reaches into sessions:
    freeing capacity means destroying the real container as well as removing
    its record.
    """

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        sessions: SessionLookup | None = None,
        metrics: MetricsCollector | None = None,
        idle_timeout_s: int | None = None,
    ) -> None:
        """
        Initialize container manager.

        Args:
            db_manager: Database manager holding the registry table
            sessions: Session lookup used when reaping (defaults to the user container namespace)
            metrics: Metrics collector for the active container gauge
            idle_timeout_s: Idle seconds before a container is reaped
        """
        self.settings = get_settings()
        self.db_manager = db_manager or get_db_manager()
        self.metrics = metrics or get_metrics_collector()
        self.idle_timeout = timedelta(
            seconds=idle_timeout_s if idle_timeout_s is not None else self.settings.idle_timeout_s
        )
        self._sessions = sessions
        self._lock = asyncio.Lock()

    @property
    def sessions(self) -> SessionLookup:
        if self._sessions is None:
            from mcp_sandbox.managers.user_container import get_user_containers

            self._sessions = get_user_containers()
        return self._sessions

    async def track(self, container_id: str, now: datetime | None = None) -> None:
        """
        Mark a container as active now.

        Args:
            container_id: Container identifier
            now: Timestamp to record (defaults to the current UTC time)
        """
        async with self._lock:
            async with self.db_manager.get_session() as session:
                repo = ContainerRecordRepository(session)
                await repo.touch(container_id, now)

        logger.debug("Container tracked", extra={"container_id": container_id})

    async def kill(self, container_id: str) -> None:
        """
        Forget a container. Unknown identifiers are ignored.

        Args:
            container_id: Container identifier
        """
        async with self._lock:
            async with self.db_manager.get_session() as session:
                repo = ContainerRecordRepository(session)
                removed = await repo.delete_by_id(container_id)

        if removed:
            logger.info("Container removed from registry", extra={"container_id": container_id})

    async def list_active(self) -> List[str]:
        """
        List identifiers of all active containers.

        Returns:
            Active container identifiers
        """
        async with self._lock:
            async with self.db_manager.get_session() as session:
                repo = ContainerRecordRepository(session)
                active = await repo.list_ids()

        try:
            self.metrics.set_active_containers(len(active))
        except Exception as e:
            logger.warning("Failed to record active containers", extra={"error": str(e)})

        return active

    async def reap_idle(self, now: datetime | None = None) -> List[str]:
        """
        Destroy containers idle for at least the idle timeout and forget them.

        A container whose destruction fails keeps its record, so the next
        sweep retries it.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Identifiers of reaped containers
        """
        now = now or datetime.now(timezone.utc)
        reaped: List[str] = []

        async with self._lock:
            async with self.db_manager.get_session() as session:
                repo = ContainerRecordRepository(session)
                for record in await repo.get_all():
                    idle_for = now - _as_utc(record.last_seen)
                    if idle_for < self.idle_timeout:
                        continue

                    try:
                        await self.sessions.get(record.id).destroy_container()
                    except Exception as e:
                        logger.error(
                            "Failed to destroy idle container",
                            extra={"container_id": record.id, "error": str(e)},
                        )
                        continue

                    await repo.delete_by_id(record.id)
                    reaped.append(record.id)
                    logger.info(
                        "Reaped idle container",
                        extra={
                            "container_id": record.id,
                            "idle_seconds": idle_for.total_seconds(),
                        },
                    )

        try:
            self.metrics.record_reaped(len(reaped))
        except Exception as e:
            logger.warning("Failed to record reaped containers", extra={"error": str(e)})

        return reaped


_container_managers: Dict[str, ContainerManager] = {}


def get_container_manager(name: str = CONTAINER_MANAGER_NAME) -> ContainerManager:
    """
    Get the registry registered under ``name``, creating it on first use.

    Args:
        name: Registry name; all sessions share the default one

    Returns:
        ContainerManager instance
    """
    if name not in _container_managers:
        _container_managers[name] = ContainerManager()
    return _container_managers[name]
