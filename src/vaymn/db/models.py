"""SQLAlchemy ORM models for the local mirror.

Tables:
- local_store: one row per mirror key, holding a JSON document
"""

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class LocalEntry(Base):
    """A single key of the local mirror (a whole collection or the session)."""

    __tablename__ = "local_store"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON document
    updated_at: Mapped[str] = mapped_column(
        String(32),
        default=lambda: datetime.now(timezone.utc).isoformat(),
        onupdate=lambda: datetime.now(timezone.utc).isoformat(),
    )

    def __repr__(self) -> str:
        return f"<LocalEntry(key={self.key}, updated_at={self.updated_at})>"

    def get_value(self) -> Any:
        """Decode the stored JSON document."""
        return json.loads(self.value)

    def set_value(self, value: Any) -> None:
        """Encode a JSON-compatible value for storage."""
        self.value = json.dumps(value, ensure_ascii=False)
