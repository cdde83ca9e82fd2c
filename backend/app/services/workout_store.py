"""
Persistence gateway for workouts. Every write commits on its own; callers get no
multi-statement transaction and must compensate themselves (see suggestion accept).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.limits import utc_now
from app.models.workout import UNIQUE_POSITION_CONSTRAINT, UNIQUE_SUGGESTION_CONSTRAINT, Workout

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True for a unique-constraint violation (Postgres 23505 or SQLite UNIQUE failure)."""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    msg = str(orig)
    return "UNIQUE constraint failed" in msg or UNIQUE_POSITION_CONSTRAINT in msg


def is_suggestion_link_violation(exc: IntegrityError) -> bool:
    """True when the insert collided with a workout already created from the same suggestion."""
    msg = str(exc.orig)
    return UNIQUE_SUGGESTION_CONSTRAINT in msg or "workouts.ai_suggestion_id" in msg


class WorkoutStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find(self, user_id: int, workout_id: int) -> Workout | None:
        r = await self.session.execute(
            select(Workout).where(Workout.id == workout_id, Workout.user_id == user_id)
        )
        return r.scalar_one_or_none()

    async def insert(self, workout: Workout) -> Workout:
        """Insert and commit. Raises IntegrityError (session rolled back) on constraint violation."""
        self.session.add(workout)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return workout

    async def update(self, workout: Workout, values: dict[str, Any]) -> Workout:
        for key, value in values.items():
            setattr(workout, key, value)
        workout.updated_at = utc_now()
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return workout

    async def delete(self, user_id: int, workout_id: int) -> None:
        try:
            await self.session.execute(
                delete(Workout).where(Workout.id == workout_id, Workout.user_id == user_id)
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
