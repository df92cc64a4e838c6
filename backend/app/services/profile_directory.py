"""Profile Directory — SQL-backed implementation of the ProfileDirectory capability.

Invariants:
    - resolve_names returns only ids that exist; callers decide how to show unknown users
    - Engine paths never write profiles; only the profile route registers display names

Design Decisions:
    - Batch lookup (one IN query) so ledger projections resolve all names at once
"""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import UserId
from app.core.errors import NotFoundError, ValidationError
from app.infrastructure.database import transaction
from app.models.profile import Profile

logger = logging.getLogger(__name__)


class SqlProfileDirectory:
    """Reads (and, for registration, upserts) rows of the profiles relation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_names(self, user_ids: Iterable[UserId]) -> dict[UUID, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Profile.id, Profile.name).where(Profile.id.in_(ids)),
        )
        return {row.id: row.name for row in result}

    async def get(self, user_id: UserId) -> Profile:
        profile = await self.db.get(Profile, user_id)
        if profile is None:
            raise NotFoundError("Profile", str(user_id))
        return profile

    async def register(self, user_id: UserId, name: str) -> Profile:
        """Create or rename the caller's profile."""
        name = name.strip()
        if not name:
            raise ValidationError("name cannot be empty or whitespace", field="name")
        async with transaction(self.db):
            profile = await self.db.get(Profile, user_id)
            if profile is None:
                profile = Profile(id=user_id, name=name)
                self.db.add(profile)
            else:
                profile.name = name
        logger.info("Profile registered", extra={"user_id": user_id})
        return profile
