"""Container registry record model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ContainerRecord(Base):
    """An active sandbox container, keyed by the identifier of the session that owns it."""

    __tablename__ = "container_records"

    # Session-derived container identifier (hex uuid)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Last time the container was tracked; drives idle reaping
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        """String representation of ContainerRecord."""
        return f"<ContainerRecord(id={self.id}, last_seen={self.last_seen})>"
