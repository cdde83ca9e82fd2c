"""Commands and responses for the AI suggestion lifecycle."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.ai_suggestion import SuggestionStatus
from app.models.ai_suggestion_event import SuggestionEventKind
from app.schemas.workout import WorkoutResponse, WorkoutStep


class SuggestionCreate(BaseModel):
    """Body for requesting a new AI suggestion."""

    training_type_code: str = Field(..., min_length=1, max_length=64)
    planned_date: date
    context: dict[str, Any] | None = None


class SuggestionAccept(BaseModel):
    position: int = Field(..., ge=1)


class SuggestionRegenerate(BaseModel):
    reason: str | None = Field(None, max_length=500)
    adjustment_hint: str | None = Field(None, max_length=500)


class GeneratedSuggestion(BaseModel):
    """What a suggestion generator returns: ordered steps plus opaque metadata."""

    steps: list[WorkoutStep] = []
    metadata: dict[str, Any] | None = None


class SuggestionResponse(BaseModel):
    id: int
    training_type_code: str
    status: SuggestionStatus
    planned_date: date
    steps: list[WorkoutStep]
    accepted_workout_id: int | None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


class SuggestionEventResponse(BaseModel):
    id: int
    kind: SuggestionEventKind
    occurred_at: datetime
    metadata: dict[str, Any] | None = None


class SuggestionDetailResponse(BaseModel):
    suggestion: SuggestionResponse
    events: list[SuggestionEventResponse] = []


class SuggestionAcceptResponse(BaseModel):
    suggestion: SuggestionResponse
    workout: WorkoutResponse
