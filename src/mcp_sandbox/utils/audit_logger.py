"""Structured audit logging for sandbox container operations."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from mcp_sandbox.utils.logging import get_logger

SENSITIVE_KEYS = ("password", "token", "secret", "key", "auth", "credentials", "private")


class AuditEventType(str, Enum):
    """Types of audit events."""

    CONTAINER_INITIALIZE = "container_initialize"
    CONTAINER_KILL = "container_kill"
    CONTAINER_REAP = "container_reap"
    CONTAINER_EXEC = "container_exec"

    FS_LIST = "fs_list"
    FS_READ = "fs_read"
    FS_WRITE = "fs_write"
    FS_DELETE = "fs_delete"

    SECURITY_BLOCKED_USER = "security_blocked_user"

    SYSTEM_STARTUP = "system_startup"
    SYSTEM_SHUTDOWN = "system_shutdown"


class AuditLogger:
    """Structured audit logger for tracking tool-initiated operations."""

    def __init__(self):
        self._logger = get_logger("audit")
        # Audit events are emitted regardless of the configured root level
        self._logger.setLevel(logging.INFO)

    def log_event(
        self,
        event_type: AuditEventType,
        container_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of event being logged
            container_id: Container ID if relevant
            user_id: User that triggered the event
            details: Additional event-specific details
        """
        event: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type.value,
        }
        if container_id:
            event["container_id"] = container_id
        if user_id:
            event["user_id"] = user_id

        sanitized = self._sanitize_details(details or {})
        if sanitized:
            event["details"] = sanitized

        self._logger.info("audit_event", extra=event)

    def _sanitize_details(self, details: dict[str, Any]) -> dict[str, Any]:
        """Redact values whose keys look like credentials, recursing into nested containers."""
        sanitized: dict[str, Any] = {}
        for key, value in details.items():
            if any(word in key.lower() for word in SENSITIVE_KEYS):
                sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_details(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_details(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value
        return sanitized


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger
