"""
Workout status state machine.

    planned -> completed | skipped | canceled

complete/skip/cancel reject only the self-transition (re-completing, re-skipping,
re-canceling); skip and cancel also apply to a completed workout so a mistaken entry
can be corrected, and they clear every realized metric. rate needs status completed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AlreadyCanceled,
    AlreadyCompleted,
    AlreadyLinked,
    AlreadySkipped,
    InternalError,
    LifecycleError,
    NotCompleted,
    NotFound,
    PositionConflict,
    store_errors,
)
from app.models.workout import Workout, WorkoutOrigin, WorkoutRating, WorkoutStatus
from app.schemas.workout import WorkoutStep
from app.services.workout_store import WorkoutStore, is_suggestion_link_violation, is_unique_violation

logger = logging.getLogger(__name__)

# target status -> error raised when the workout is already there
SELF_TRANSITION_ERRORS: dict[WorkoutStatus, type[LifecycleError]] = {
    WorkoutStatus.completed: AlreadyCompleted,
    WorkoutStatus.skipped: AlreadySkipped,
    WorkoutStatus.canceled: AlreadyCanceled,
}

# target status -> statuses it may be entered from
TRANSITIONS: dict[WorkoutStatus, frozenset[WorkoutStatus]] = {
    target: frozenset(s for s in WorkoutStatus if s is not target)
    for target in SELF_TRANSITION_ERRORS
}

CLEARED_METRICS = {
    "distance_m": None,
    "duration_s": None,
    "avg_hr_bpm": None,
    "completed_at": None,
    "rating": None,
}


def check_transition(current: WorkoutStatus, target: WorkoutStatus) -> None:
    """Raise the typed error if `current -> target` is not allowed."""
    if current not in TRANSITIONS[target]:
        raise SELF_TRANSITION_ERRORS[target](details={"status": current.value})


class WorkoutLifecycle:
    def __init__(self, session: AsyncSession, store: WorkoutStore | None = None) -> None:
        self.session = session
        self.store = store or WorkoutStore(session)

    async def get(self, user_id: int, workout_id: int) -> Workout:
        with store_errors("Failed to load workout"):
            workout = await self.store.find(user_id, workout_id)
        if workout is None:
            raise NotFound("Workout not found")
        return workout

    async def create_planned(
        self,
        user_id: int,
        *,
        training_type_code: str,
        planned_date: date,
        position: int,
        planned_distance_m: int | None,
        planned_duration_s: int | None,
        steps: list[WorkoutStep],
        origin: WorkoutOrigin = WorkoutOrigin.ai,
        ai_suggestion_id: int | None = None,
    ) -> Workout:
        """Insert a planned workout.

        PositionConflict if (user, date, position) is taken; AlreadyLinked if another
        workout was already created from the same suggestion.
        """
        workout = Workout(
            user_id=user_id,
            training_type_code=training_type_code,
            planned_date=planned_date,
            position=position,
            planned_distance_m=planned_distance_m,
            planned_duration_s=planned_duration_s,
            steps=[s.model_dump(exclude_none=True, mode="json") for s in steps],
            status=WorkoutStatus.planned,
            origin=origin,
            ai_suggestion_id=ai_suggestion_id,
        )
        try:
            return await self.store.insert(workout)
        except IntegrityError as e:
            if is_unique_violation(e) and ai_suggestion_id is not None and is_suggestion_link_violation(e):
                raise AlreadyLinked(details={"ai_suggestion_id": ai_suggestion_id}) from e
            if is_unique_violation(e):
                raise PositionConflict(
                    details={"planned_date": planned_date.isoformat(), "position": position}
                ) from e
            raise InternalError("Failed to create workout") from e
        except Exception as e:
            raise InternalError("Failed to create workout") from e

    async def complete(
        self,
        user_id: int,
        workout_id: int,
        *,
        distance_m: int,
        duration_s: int,
        avg_hr_bpm: int,
        completed_at: datetime,
        rating: WorkoutRating | None = None,
    ) -> Workout:
        workout = await self.get(user_id, workout_id)
        check_transition(workout.status, WorkoutStatus.completed)
        with store_errors("Failed to complete workout"):
            return await self.store.update(workout, {
                "status": WorkoutStatus.completed,
                "distance_m": distance_m,
                "duration_s": duration_s,
                "avg_hr_bpm": avg_hr_bpm,
                "completed_at": completed_at,
                "rating": rating,
            })

    async def skip(self, user_id: int, workout_id: int) -> Workout:
        return await self._close(user_id, workout_id, WorkoutStatus.skipped)

    async def cancel(self, user_id: int, workout_id: int) -> Workout:
        return await self._close(user_id, workout_id, WorkoutStatus.canceled)

    async def _close(self, user_id: int, workout_id: int, target: WorkoutStatus) -> Workout:
        workout = await self.get(user_id, workout_id)
        check_transition(workout.status, target)
        with store_errors(f"Failed to mark workout {target.value}"):
            return await self.store.update(workout, {"status": target, **CLEARED_METRICS})

    async def rate(self, user_id: int, workout_id: int, rating: WorkoutRating) -> Workout:
        workout = await self.get(user_id, workout_id)
        if workout.status != WorkoutStatus.completed:
            raise NotCompleted(details={"status": workout.status.value})
        with store_errors("Failed to rate workout"):
            return await self.store.update(workout, {"rating": rating})

    async def discard(self, user_id: int, workout_id: int) -> None:
        """Physically remove a workout; only used to compensate a failed suggestion accept."""
        await self.store.delete(user_id, workout_id)
