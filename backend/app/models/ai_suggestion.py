"""AI-proposed training for one date. Expiry is derived from created_at, never stored."""

import enum
from datetime import date, datetime
from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.limits import utc_now
from app.db.base import Base


class SuggestionStatus(str, enum.Enum):
    shown = "shown"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


class AiSuggestion(Base):
    __tablename__ = "ai_suggestions"
    __table_args__ = (
        # Daily quota lookup: user + planned date + creation window
        Index("ix_ai_suggestions_user_date_created", "user_id", "planned_date", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    training_type_code: Mapped[str] = mapped_column(
        String(64), ForeignKey("training_types.code"), nullable=False
    )
    status: Mapped[SuggestionStatus] = mapped_column(
        Enum(SuggestionStatus, name="ai_suggestion_status", native_enum=False, length=16),
        nullable=False,
        default=SuggestionStatus.shown,
    )
    planned_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # {"version": 1, "meta": {...}, "steps": [...]}
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    accepted_workout_id: Mapped[int | None] = mapped_column(
        ForeignKey("workouts.id", ondelete="RESTRICT"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    user: Mapped["User"] = relationship("User", back_populates="ai_suggestions")
    events: Mapped[list["AiSuggestionEvent"]] = relationship(
        "AiSuggestionEvent", back_populates="suggestion", order_by="AiSuggestionEvent.occurred_at.desc()"
    )
