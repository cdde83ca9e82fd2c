"""Pydantic schemas for workout steps, status commands and responses."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.models.workout import WorkoutOrigin, WorkoutRating, WorkoutStatus


class StepPart(str, Enum):
    WARMUP = "warmup"
    MAIN = "main"
    COOLDOWN = "cooldown"
    SEGMENT = "segment"


class WorkoutStep(BaseModel):
    """One step of a planned workout; distance and duration are both optional."""

    part: StepPart = StepPart.SEGMENT
    distance_m: int | None = Field(None, ge=0)
    duration_s: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)


class WorkoutComplete(BaseModel):
    """Body for completing a workout with realized metrics."""

    distance_m: int = Field(..., gt=0)
    duration_s: int = Field(..., gt=0)
    avg_hr_bpm: int = Field(..., ge=30, le=250)
    completed_at: datetime
    rating: WorkoutRating | None = None


class WorkoutRate(BaseModel):
    rating: WorkoutRating


class WorkoutResponse(BaseModel):
    """Single workout as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    training_type_code: str
    planned_date: date
    position: int
    planned_distance_m: int | None
    planned_duration_s: int | None
    steps: list[WorkoutStep] = []
    status: WorkoutStatus
    origin: WorkoutOrigin
    distance_m: int | None = None
    duration_s: int | None = None
    avg_hr_bpm: int | None = None
    completed_at: datetime | None = None
    rating: WorkoutRating | None = None
    ai_suggestion_id: int | None = None
    created_at: datetime
    updated_at: datetime
