"""ORM rows -> response schemas."""

from app.models.ai_suggestion import AiSuggestion
from app.models.ai_suggestion_event import AiSuggestionEvent
from app.models.workout import Workout
from app.schemas.suggestion import SuggestionEventResponse, SuggestionResponse
from app.schemas.workout import WorkoutResponse
from app.services.steps import parse_payload, parse_steps
from app.services.suggestion_lifecycle import SuggestionLifecycle


def suggestion_to_response(row: AiSuggestion, lifecycle: SuggestionLifecycle) -> SuggestionResponse:
    steps, _ = parse_payload(row.payload)
    return SuggestionResponse(
        id=row.id,
        training_type_code=row.training_type_code,
        status=row.status,
        planned_date=row.planned_date,
        steps=steps,
        accepted_workout_id=row.accepted_workout_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        expires_at=lifecycle.expires_at(row),
    )


def event_to_response(row: AiSuggestionEvent) -> SuggestionEventResponse:
    return SuggestionEventResponse(
        id=row.id,
        kind=row.kind,
        occurred_at=row.occurred_at,
        metadata=row.metadata_,
    )


def workout_to_response(row: Workout) -> WorkoutResponse:
    return WorkoutResponse(
        id=row.id,
        training_type_code=row.training_type_code,
        planned_date=row.planned_date,
        position=row.position,
        planned_distance_m=row.planned_distance_m,
        planned_duration_s=row.planned_duration_s,
        steps=parse_steps(row.steps),
        status=row.status,
        origin=row.origin,
        distance_m=row.distance_m,
        duration_s=row.duration_s,
        avg_hr_bpm=row.avg_hr_bpm,
        completed_at=row.completed_at,
        rating=row.rating,
        ai_suggestion_id=row.ai_suggestion_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
