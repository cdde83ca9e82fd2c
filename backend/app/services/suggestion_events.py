"""Fire-and-forget audit trail for AI suggestions. Failures are logged, never raised."""

from __future__ import annotations

import logging
from datetime import datetime

from app.models.ai_suggestion_event import AiSuggestionEvent, SuggestionEventKind
from app.services.suggestion_store import SuggestionStore

logger = logging.getLogger(__name__)


class SuggestionEventRecorder:
    def __init__(self, store: SuggestionStore) -> None:
        self.store = store

    async def record(
        self,
        suggestion_id: int,
        user_id: int,
        kind: SuggestionEventKind = SuggestionEventKind.regenerate,
        metadata: dict | None = None,
        occurred_at: datetime | None = None,
    ) -> None:
        event = AiSuggestionEvent(
            ai_suggestion_id=suggestion_id,
            user_id=user_id,
            kind=kind,
            metadata_=metadata,
        )
        if occurred_at is not None:
            event.occurred_at = occurred_at
        try:
            await self.store.insert_event(event)
        except Exception:
            logger.warning(
                "Failed to record AI suggestion %s event (suggestion_id=%s, user_id=%s)",
                kind.value,
                suggestion_id,
                user_id,
                exc_info=True,
            )
