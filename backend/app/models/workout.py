"""Committed training entry: planned manually or accepted from an AI suggestion. Status lifecycle lives in services/workout_lifecycle."""

import enum
from datetime import date, datetime
from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.limits import utc_now
from app.db.base import Base


class WorkoutStatus(str, enum.Enum):
    planned = "planned"
    completed = "completed"
    skipped = "skipped"
    canceled = "canceled"


class WorkoutOrigin(str, enum.Enum):
    manual = "manual"
    ai = "ai"
    import_ = "import"


class WorkoutRating(str, enum.Enum):
    too_easy = "too_easy"
    just_right = "just_right"
    too_hard = "too_hard"


UNIQUE_POSITION_CONSTRAINT = "uq_workouts_user_date_position"
# One workout per accepted suggestion; NULLs (manual and imported workouts) do not collide
UNIQUE_SUGGESTION_CONSTRAINT = "uq_workouts_ai_suggestion_id"


class Workout(Base):
    __tablename__ = "workouts"
    __table_args__ = (
        UniqueConstraint("user_id", "planned_date", "position", name=UNIQUE_POSITION_CONSTRAINT),
        UniqueConstraint("ai_suggestion_id", name=UNIQUE_SUGGESTION_CONSTRAINT),
        CheckConstraint("rating IS NULL OR status = 'completed'", name="ck_workouts_rating_completed"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    training_type_code: Mapped[str] = mapped_column(ForeignKey("training_types.code"), nullable=False)
    planned_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    planned_distance_m: Mapped[int | None] = mapped_column(Integer, nullable=True)
    planned_duration_s: Mapped[int | None] = mapped_column(Integer, nullable=True)
    steps: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[WorkoutStatus] = mapped_column(
        Enum(WorkoutStatus, name="workout_status", native_enum=False, length=16),
        nullable=False,
        default=WorkoutStatus.planned,
    )
    origin: Mapped[WorkoutOrigin] = mapped_column(
        Enum(WorkoutOrigin, name="workout_origin", native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=WorkoutOrigin.manual,
    )
    # Realized metrics: only set while status == completed
    distance_m: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_s: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_hr_bpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rating: Mapped[WorkoutRating | None] = mapped_column(
        Enum(WorkoutRating, name="workout_rating", native_enum=False, length=16),
        nullable=True,
    )
    ai_suggestion_id: Mapped[int | None] = mapped_column(
        ForeignKey("ai_suggestions.id", ondelete="SET NULL", use_alter=True, name="fk_workouts_ai_suggestion_id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    user: Mapped["User"] = relationship("User", back_populates="workouts")
