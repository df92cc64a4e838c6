"""Profile Routes — register and read display names.

Invariants:
    - A caller can only write their own profile (PUT /me)
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import get_caller_id, get_profile_directory
from app.core.domain_types import UserId
from app.schemas.profile import ProfileResponse, ProfileUpdate
from app.services.profile_directory import SqlProfileDirectory

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.put("/me", response_model=ProfileResponse)
async def register_profile(
    body: ProfileUpdate,
    caller_id: UserId = Depends(get_caller_id),
    directory: SqlProfileDirectory = Depends(get_profile_directory),
):
    profile = await directory.register(caller_id, body.name)
    return ProfileResponse.model_validate(profile)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: UUID,
    directory: SqlProfileDirectory = Depends(get_profile_directory),
):
    profile = await directory.get(UserId(user_id))
    return ProfileResponse.model_validate(profile)
