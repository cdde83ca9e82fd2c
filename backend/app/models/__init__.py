from app.models.user import User
from app.models.training_type import TrainingType
from app.models.workout import Workout, WorkoutOrigin, WorkoutRating, WorkoutStatus
from app.models.ai_suggestion import AiSuggestion, SuggestionStatus
from app.models.ai_suggestion_event import AiSuggestionEvent, SuggestionEventKind

__all__ = [
    "User",
    "TrainingType",
    "Workout",
    "WorkoutOrigin",
    "WorkoutRating",
    "WorkoutStatus",
    "AiSuggestion",
    "SuggestionStatus",
    "AiSuggestionEvent",
    "SuggestionEventKind",
]
