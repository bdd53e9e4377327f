"""Background maintenance manager that periodically reaps idle containers."""

import asyncio
from typing import List

from mcp_sandbox.config import get_settings
from mcp_sandbox.managers.container_manager import ContainerManager, get_container_manager
from mcp_sandbox.utils import get_logger
from mcp_sandbox.utils.audit_logger import AuditEventType, get_audit_logger

logger = get_logger(__name__)

MAINTENANCE_ERROR_RETRY_SECONDS = 10


class MaintenanceManager:
    """Manager for background maintenance tasks."""

    def __init__(self, container_manager: ContainerManager | None = None) -> None:
        self.settings = get_settings()
        self.container_manager = container_manager or get_container_manager()
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background reap loop."""
        if self._running:
            logger.warning("Maintenance manager already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_maintenance_loop())
        logger.info(
            "Maintenance manager started",
            extra={"interval_s": self.settings.reap_interval_s},
        )

    async def stop(self) -> None:
        """Stop the background reap loop."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Maintenance manager stopped")

    async def _run_maintenance_loop(self) -> None:
        while self._running:
            try:
                await self.run_maintenance()
                await asyncio.sleep(self.settings.reap_interval_s)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Maintenance task failed", extra={"error": str(e)})
                await asyncio.sleep(MAINTENANCE_ERROR_RETRY_SECONDS)

    async def run_maintenance(self) -> List[str]:
        """
        Reap idle containers once.

        Returns:
            Identifiers of reaped containers
        """
        reaped = await self.container_manager.reap_idle()
        if reaped:
            audit_logger = get_audit_logger()
            for container_id in reaped:
                audit_logger.log_event(AuditEventType.CONTAINER_REAP, container_id=container_id)
            logger.info("Idle containers reaped", extra={"count": len(reaped)})
        return reaped


_maintenance_manager: MaintenanceManager | None = None


def get_maintenance_manager() -> MaintenanceManager:
    """Get or create maintenance manager instance."""
    global _maintenance_manager
    if _maintenance_manager is None:
        _maintenance_manager = MaintenanceManager()
    return _maintenance_manager
