"""Persistence gateway for AI suggestions and their append-only events. Each write commits on its own."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.limits import utc_now
from app.models.ai_suggestion import AiSuggestion, SuggestionStatus
from app.models.ai_suggestion_event import AiSuggestionEvent

SORTABLE_COLUMNS = {
    "created_at": AiSuggestion.created_at,
    "status": AiSuggestion.status,
    "planned_date": AiSuggestion.planned_date,
}


class SuggestionStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def find(self, user_id: int, suggestion_id: int) -> AiSuggestion | None:
        r = await self.session.execute(
            select(AiSuggestion).where(AiSuggestion.id == suggestion_id, AiSuggestion.user_id == user_id)
        )
        return r.scalar_one_or_none()

    async def insert(self, suggestion: AiSuggestion) -> AiSuggestion:
        self.session.add(suggestion)
        await self._commit()
        return suggestion

    async def update(self, suggestion: AiSuggestion, values: dict[str, Any]) -> AiSuggestion:
        for key, value in values.items():
            setattr(suggestion, key, value)
        suggestion.updated_at = utc_now()
        await self._commit()
        return suggestion

    async def update_if_shown(self, suggestion: AiSuggestion, values: dict[str, Any]) -> AiSuggestion | None:
        """
        Conditional write: applies values only while the row is still shown and unlinked.
        Returns the refreshed row, or None when another writer moved it on first.
        """
        suggestion_id = suggestion.id
        user_id = suggestion.user_id
        stmt = (
            update(AiSuggestion)
            .where(
                AiSuggestion.id == suggestion_id,
                AiSuggestion.user_id == user_id,
                AiSuggestion.status == SuggestionStatus.shown,
                AiSuggestion.accepted_workout_id.is_(None),
            )
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        try:
            r = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        if r.rowcount == 0:
            return None
        await self.session.refresh(suggestion)
        return suggestion

    async def count_created_between(
        self, user_id: int, planned_date: date, start: datetime, end: datetime
    ) -> int:
        """Suggestions (any status) for planned_date created in [start, end)."""
        r = await self.session.execute(
            select(func.count(AiSuggestion.id)).where(
                AiSuggestion.user_id == user_id,
                AiSuggestion.planned_date == planned_date,
                AiSuggestion.created_at >= start,
                AiSuggestion.created_at < end,
            )
        )
        return r.scalar() or 0

    async def list_for_user(
        self,
        user_id: int,
        *,
        status: SuggestionStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        sort_column: str = "created_at",
        ascending: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AiSuggestion], int]:
        base = select(AiSuggestion).where(AiSuggestion.user_id == user_id)
        if status is not None:
            base = base.where(AiSuggestion.status == status)
        if created_from is not None:
            base = base.where(AiSuggestion.created_at >= created_from)
        if created_to is not None:
            base = base.where(AiSuggestion.created_at < created_to)
        count_q = select(func.count()).select_from(base.subquery())
        total = (await self.session.execute(count_q)).scalar() or 0
        column = SORTABLE_COLUMNS.get(sort_column, AiSuggestion.created_at)
        order = column.asc() if ascending else column.desc()
        r = await self.session.execute(
            base.order_by(order, AiSuggestion.id.desc()).offset(offset).limit(limit)
        )
        return list(r.scalars().all()), total

    async def insert_event(self, event: AiSuggestionEvent) -> AiSuggestionEvent:
        self.session.add(event)
        await self._commit()
        return event

    async def list_events(
        self, user_id: int, suggestion_id: int, *, offset: int = 0, limit: int | None = None
    ) -> tuple[list[AiSuggestionEvent], int]:
        base = select(AiSuggestionEvent).where(
            AiSuggestionEvent.user_id == user_id,
            AiSuggestionEvent.ai_suggestion_id == suggestion_id,
        )
        count_q = select(func.count()).select_from(base.subquery())
        total = (await self.session.execute(count_q)).scalar() or 0
        q = base.order_by(AiSuggestionEvent.occurred_at.desc(), AiSuggestionEvent.id.desc()).offset(offset)
        if limit is not None:
            q = q.limit(limit)
        r = await self.session.execute(q)
        return list(r.scalars().all()), total
