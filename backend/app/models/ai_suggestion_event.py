import enum
from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Enum, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.limits import utc_now
from app.db.base import Base


class SuggestionEventKind(str, enum.Enum):
    regenerate = "regenerate"


class AiSuggestionEvent(Base):
    __tablename__ = "ai_suggestion_events"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    ai_suggestion_id: Mapped[int] = mapped_column(
        ForeignKey("ai_suggestions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[SuggestionEventKind] = mapped_column(
        Enum(SuggestionEventKind, name="ai_event_kind", native_enum=False, length=16), nullable=False
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)

    suggestion: Mapped["AiSuggestion"] = relationship("AiSuggestion", back_populates="events")
