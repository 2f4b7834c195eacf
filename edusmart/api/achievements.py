from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from edusmart.api.dependencies import get_progress_service, require_user
from edusmart.api.progress import AchievementOut
from edusmart.models.principal import Principal
from edusmart.services.errors import StoreUnavailableError
from edusmart.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/achievements", tags=["achievements"])


@router.get("", response_model=list[AchievementOut])
async def list_achievements(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> list[AchievementOut]:
    """Every achievement the learner holds, oldest unlock first."""
    try:
        achievements = await service.list_achievements(principal.user_id)
    except StoreUnavailableError:
        logger.exception("Achievements unavailable for user=%s", principal.user_id)
        return []
    return [AchievementOut.of(a) for a in achievements]
