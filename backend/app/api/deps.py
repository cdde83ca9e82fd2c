"""FastAPI dependencies: caller identity from the gateway, lifecycle services per request."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.services.suggestion_generator import SuggestionGenerator, get_suggestion_generator
from app.services.suggestion_lifecycle import SuggestionLifecycle
from app.services.workout_lifecycle import WorkoutLifecycle

USER_ID_HEADER = "X-User-Id"


async def get_current_user_id(request: Request) -> int:
    """User id set by the authenticating gateway; this service trusts it as-is."""
    raw = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not raw:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = int(raw)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")
    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid user id")
    return user_id


def get_generator() -> SuggestionGenerator:
    return get_suggestion_generator()


async def get_workout_lifecycle(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> WorkoutLifecycle:
    return WorkoutLifecycle(session)


async def get_suggestion_lifecycle(
    session: Annotated[AsyncSession, Depends(get_db)],
    generator: Annotated[SuggestionGenerator, Depends(get_generator)],
) -> SuggestionLifecycle:
    return SuggestionLifecycle(session, generator=generator)
