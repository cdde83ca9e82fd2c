"""Workouts API: read and status actions (complete, skip, cancel, rate)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id, get_workout_lifecycle
from app.api.v1.presenters import workout_to_response
from app.schemas.workout import WorkoutComplete, WorkoutRate, WorkoutResponse
from app.services.workout_lifecycle import WorkoutLifecycle

router = APIRouter(prefix="/workouts", tags=["workouts"])

UserId = Annotated[int, Depends(get_current_user_id)]
Lifecycle = Annotated[WorkoutLifecycle, Depends(get_workout_lifecycle)]


@router.get("/{workout_id}", response_model=WorkoutResponse, summary="Get workout")
async def get_workout(workout_id: int, user_id: UserId, lifecycle: Lifecycle) -> WorkoutResponse:
    return workout_to_response(await lifecycle.get(user_id, workout_id))


@router.post("/{workout_id}/complete", response_model=WorkoutResponse, summary="Complete workout")
async def complete_workout(
    workout_id: int, body: WorkoutComplete, user_id: UserId, lifecycle: Lifecycle
) -> WorkoutResponse:
    workout = await lifecycle.complete(
        user_id,
        workout_id,
        distance_m=body.distance_m,
        duration_s=body.duration_s,
        avg_hr_bpm=body.avg_hr_bpm,
        completed_at=body.completed_at,
        rating=body.rating,
    )
    return workout_to_response(workout)


@router.post("/{workout_id}/skip", response_model=WorkoutResponse, summary="Skip workout")
async def skip_workout(workout_id: int, user_id: UserId, lifecycle: Lifecycle) -> WorkoutResponse:
    return workout_to_response(await lifecycle.skip(user_id, workout_id))


@router.post("/{workout_id}/cancel", response_model=WorkoutResponse, summary="Cancel workout")
async def cancel_workout(workout_id: int, user_id: UserId, lifecycle: Lifecycle) -> WorkoutResponse:
    return workout_to_response(await lifecycle.cancel(user_id, workout_id))


@router.post("/{workout_id}/rate", response_model=WorkoutResponse, summary="Rate completed workout")
async def rate_workout(workout_id: int, body: WorkoutRate, user_id: UserId, lifecycle: Lifecycle) -> WorkoutResponse:
    return workout_to_response(await lifecycle.rate(user_id, workout_id, body.rating))
