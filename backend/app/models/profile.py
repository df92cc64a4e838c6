"""Profile ORM — display identity for a user, owned by the upstream auth layer.

Invariants:
    - id is the same UUID the auth layer hands out (no server default)
    - name is non-empty display text

Design Decisions:
    - Kept as a plain relation so slots and requests have FK integrity to it, while the
      core only ever reads it through ProfileDirectory
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Profile(Base):
    """User display profile."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
