"""AI tutor proxy.

  POST   /v1/tutor/messages   send a message, get the tutor's reply
  DELETE /v1/tutor/session    forget the learner's conversation

Conversations are per learner and expire after TUTOR_SESSION_TTL_SECONDS
of inactivity.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from edusmart.api.dependencies import require_user
from edusmart.models.principal import Principal
from edusmart.services.errors import TutorUnavailableError
from edusmart.services.tutor import TutorService, build_tutor_client, tutor_sessions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tutor", tags=["tutor"])


class TutorMessageIn(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    domain: str | None = None
    learning_style: Literal["story-based", "theory-based", "practical-based"] | None = None


class TutorMessageOut(BaseModel):
    reply: str


def get_tutor_service() -> TutorService:
    try:
        client = build_tutor_client()
    except TutorUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="tutor is not configured",
        ) from None
    return TutorService(tutor_sessions, client)


@router.post("/messages", response_model=TutorMessageOut)
async def send_message(
    payload: TutorMessageIn,
    principal: Annotated[Principal, Depends(require_user)],
    tutor: Annotated[TutorService, Depends(get_tutor_service)],
) -> TutorMessageOut:
    try:
        reply = await tutor.ask(
            principal.user_id,
            payload.message,
            domain=payload.domain,
            learning_style=payload.learning_style,
        )
    except TutorUnavailableError as e:
        logger.warning("Tutor failed for user=%s: %s", principal.user_id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="tutor model unavailable",
        ) from None
    return TutorMessageOut(reply=reply)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(
    principal: Annotated[Principal, Depends(require_user)],
) -> Response:
    if tutor_sessions.end(principal.user_id):
        logger.info("Tutor session ended user=%s", principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
