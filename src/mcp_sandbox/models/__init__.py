"""SQLAlchemy models for MCP Sandbox."""

from .base import Base
from .containers import ContainerRecord

__all__ = ["Base", "ContainerRecord"]
