"""
AI suggestion lifecycle: create (quota + generator), get/list, accept into a workout,
reject, regenerate.

A suggestion in status "shown" is also terminal once created_at + TTL has passed,
whether or not anything rewrote its status. The store offers no multi-statement
transaction, so accept inserts the workout first and deletes it again if marking
the suggestion accepted fails.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import (
    AlreadyLinked,
    Expired,
    GenerationError,
    IncompleteGeneration,
    InternalError,
    InvalidState,
    LifecycleError,
    NotFound,
    QuotaExceeded,
    UnknownTrainingType,
    store_errors,
)
from app.core.limits import compute_expires_at, is_past_expiry, quota_exceeded, utc_day_window, utc_now
from app.models.ai_suggestion import AiSuggestion, SuggestionStatus
from app.models.ai_suggestion_event import AiSuggestionEvent, SuggestionEventKind
from app.models.workout import Workout, WorkoutOrigin
from app.schemas.workout import WorkoutStep
from app.services.steps import aggregate_steps, build_payload, merge_contexts, parse_payload
from app.services.suggestion_events import SuggestionEventRecorder
from app.services.suggestion_generator import SuggestionGenerator, get_suggestion_generator
from app.services.suggestion_store import SORTABLE_COLUMNS, SuggestionStore
from app.services.training_types import training_type_exists
from app.services.workout_lifecycle import WorkoutLifecycle

logger = logging.getLogger(__name__)


@dataclass
class SuggestionPage:
    items: list[AiSuggestion]
    total: int
    page: int
    per_page: int

    @property
    def has_more(self) -> bool:
        return self.page * self.per_page < self.total


@dataclass
class EventPage:
    items: list[AiSuggestionEvent]
    total: int
    page: int
    per_page: int

    @property
    def has_more(self) -> bool:
        return self.page * self.per_page < self.total


@dataclass
class SuggestionWithEvents:
    suggestion: AiSuggestion
    events: list[AiSuggestionEvent] = field(default_factory=list)


@dataclass
class AcceptedSuggestion:
    suggestion: AiSuggestion
    workout: Workout


def parse_sort(sort: str | None) -> tuple[str, bool]:
    """'column:asc|desc' -> (column, ascending). Unknown column -> created_at, default desc."""
    field_raw, _, direction = (sort or "created_at:desc").partition(":")
    column = field_raw if field_raw in SORTABLE_COLUMNS else "created_at"
    return column, direction == "asc"


class SuggestionLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        *,
        generator: SuggestionGenerator | None = None,
        store: SuggestionStore | None = None,
        workouts: WorkoutLifecycle | None = None,
        recorder: SuggestionEventRecorder | None = None,
        clock: Callable[[], datetime] = utc_now,
        daily_limit: int | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        self.session = session
        self.generator = generator or get_suggestion_generator()
        self.store = store or SuggestionStore(session)
        self.workouts = workouts or WorkoutLifecycle(session)
        self.recorder = recorder or SuggestionEventRecorder(self.store)
        self.clock = clock
        self.daily_limit = daily_limit if daily_limit is not None else settings.suggestion_daily_limit
        self.ttl = ttl or timedelta(hours=settings.suggestion_expiry_hours)

    # -- policy helpers ------------------------------------------------------

    def expires_at(self, suggestion: AiSuggestion) -> datetime:
        return compute_expires_at(suggestion.created_at, self.ttl)

    def is_expired(self, suggestion: AiSuggestion) -> bool:
        """Stored status "expired" or past the TTL; both signals are checked."""
        if suggestion.status == SuggestionStatus.expired:
            return True
        return is_past_expiry(suggestion.created_at, self.clock(), self.ttl)

    async def _load(self, user_id: int, suggestion_id: int) -> AiSuggestion:
        with store_errors("Failed to load AI suggestion"):
            suggestion = await self.store.find(user_id, suggestion_id)
        if suggestion is None:
            raise NotFound("AI suggestion not found")
        return suggestion

    async def _assert_training_type(self, code: str) -> None:
        with store_errors("Failed to verify training type"):
            exists = await training_type_exists(self.session, code)
        if not exists:
            raise UnknownTrainingType(details={"training_type_code": code})

    async def _assert_quota(self, user_id: int, planned_date: date) -> None:
        # Read-then-insert: concurrent callers can overshoot the limit by their number.
        start, end = utc_day_window(self.clock())
        with store_errors("Failed to evaluate daily AI suggestion limit"):
            count = await self.store.count_created_between(user_id, planned_date, start, end)
        if quota_exceeded(count, self.daily_limit):
            raise QuotaExceeded(
                f"Daily limit ({self.daily_limit}) for AI suggestions reached for date {planned_date.isoformat()}",
                details={"planned_date": planned_date.isoformat(), "limit": self.daily_limit},
            )

    async def _generate_and_store(
        self,
        user_id: int,
        training_type_code: str,
        planned_date: date,
        context: dict[str, Any] | None,
    ) -> AiSuggestion:
        try:
            generated = await self.generator.generate(user_id, training_type_code, planned_date, context)
        except LifecycleError:
            raise
        except Exception as e:
            raise GenerationError("Failed to generate AI suggestion") from e

        distance, duration = aggregate_steps(generated.steps)
        if distance <= 0 and duration <= 0:
            raise IncompleteGeneration(details={"steps": len(generated.steps)})

        now = self.clock()
        suggestion = AiSuggestion(
            user_id=user_id,
            training_type_code=training_type_code,
            status=SuggestionStatus.shown,
            planned_date=planned_date,
            payload=build_payload(planned_date.isoformat(), generated.steps, context, generated.metadata),
            created_at=now,
            updated_at=now,
        )
        with store_errors("Failed to store AI suggestion"):
            return await self.store.insert(suggestion)

    # -- operations ----------------------------------------------------------

    async def create(
        self,
        user_id: int,
        training_type_code: str,
        planned_date: date,
        context: dict[str, Any] | None = None,
    ) -> AiSuggestion:
        await self._assert_training_type(training_type_code)
        await self._assert_quota(user_id, planned_date)
        suggestion = await self._generate_and_store(user_id, training_type_code, planned_date, context)
        logger.info("AI suggestion %s created for user %s (%s)", suggestion.id, user_id, planned_date)
        return suggestion

    async def get(self, user_id: int, suggestion_id: int, include_expired: bool = False) -> SuggestionWithEvents:
        suggestion = await self._load(user_id, suggestion_id)
        if not include_expired and self.is_expired(suggestion):
            raise Expired()
        with store_errors("Failed to load AI suggestion events"):
            events, _ = await self.store.list_events(user_id, suggestion_id)
        return SuggestionWithEvents(suggestion, events)

    async def list_suggestions(
        self,
        user_id: int,
        *,
        status: SuggestionStatus | None = None,
        created_after: date | None = None,
        created_before: date | None = None,
        page: int = 1,
        per_page: int = 20,
        sort: str | None = None,
    ) -> SuggestionPage:
        """created_after / created_before are inclusive UTC calendar days."""
        column, ascending = parse_sort(sort)
        created_from = None
        created_to = None
        if created_after is not None:
            created_from, _ = utc_day_window(datetime.combine(created_after, datetime.min.time()))
        if created_before is not None:
            _, created_to = utc_day_window(datetime.combine(created_before, datetime.min.time()))
        with store_errors("Failed to list AI suggestions"):
            items, total = await self.store.list_for_user(
                user_id,
                status=status,
                created_from=created_from,
                created_to=created_to,
                sort_column=column,
                ascending=ascending,
                offset=(page - 1) * per_page,
                limit=per_page,
            )
        return SuggestionPage(items, total, page, per_page)

    async def list_events(self, user_id: int, suggestion_id: int, page: int = 1, per_page: int = 20) -> EventPage:
        await self._load(user_id, suggestion_id)
        with store_errors("Failed to load AI suggestion events"):
            items, total = await self.store.list_events(
                user_id, suggestion_id, offset=(page - 1) * per_page, limit=per_page
            )
        return EventPage(items, total, page, per_page)

    async def accept(self, user_id: int, suggestion_id: int, position: int) -> AcceptedSuggestion:
        suggestion = await self._load(user_id, suggestion_id)
        if suggestion.status != SuggestionStatus.shown:
            raise InvalidState(
                "AI suggestion is no longer available for acceptance",
                details={"status": suggestion.status.value},
            )
        if suggestion.accepted_workout_id is not None:
            raise AlreadyLinked(details={"workout_id": suggestion.accepted_workout_id})
        if self.is_expired(suggestion):
            raise Expired()

        steps, meta = parse_payload(suggestion.payload)
        planned_distance, planned_duration = _planned_totals(steps, meta)
        # Capture plain values: a failed commit expires ORM state.
        training_type_code = suggestion.training_type_code
        planned_date = suggestion.planned_date

        workout = await self.workouts.create_planned(
            user_id,
            training_type_code=training_type_code,
            planned_date=planned_date,
            position=position,
            planned_distance_m=planned_distance or None,
            planned_duration_s=planned_duration or None,
            steps=steps,
            origin=WorkoutOrigin.ai,
            ai_suggestion_id=suggestion_id,
        )
        workout_id = workout.id

        try:
            accepted = await self.store.update_if_shown(
                suggestion, {"status": SuggestionStatus.accepted, "accepted_workout_id": workout_id}
            )
        except Exception as e:
            await self._compensate_accept(user_id, suggestion_id, workout_id)
            raise InternalError("Failed to finalize AI suggestion acceptance") from e
        if accepted is None:
            # Rejected, regenerated or accepted by a concurrent request after our status check
            await self._compensate_accept(user_id, suggestion_id, workout_id)
            raise InvalidState(
                "AI suggestion is no longer available for acceptance",
                details={"suggestion_id": suggestion_id},
            )
        suggestion = accepted

        logger.info("AI suggestion %s accepted as workout %s (user %s)", suggestion_id, workout_id, user_id)
        return AcceptedSuggestion(suggestion, workout)

    async def _compensate_accept(self, user_id: int, suggestion_id: int, workout_id: int) -> None:
        try:
            await self.workouts.discard(user_id, workout_id)
        except Exception:
            logger.error(
                "Orphaned workout %s: suggestion %s could not be marked accepted and the workout "
                "could not be deleted (user %s); reconcile manually",
                workout_id,
                suggestion_id,
                user_id,
                exc_info=True,
            )
        else:
            logger.warning(
                "Rolled back workout %s after failing to accept suggestion %s (user %s)",
                workout_id,
                suggestion_id,
                user_id,
            )

    async def reject(self, user_id: int, suggestion_id: int) -> AiSuggestion:
        suggestion = await self._load(user_id, suggestion_id)
        if suggestion.status != SuggestionStatus.shown:
            raise InvalidState(
                "AI suggestion cannot be rejected in its current state",
                details={"status": suggestion.status.value},
            )
        if self.is_expired(suggestion):
            raise Expired()
        with store_errors("Failed to reject AI suggestion"):
            rejected = await self.store.update_if_shown(suggestion, {"status": SuggestionStatus.rejected})
        if rejected is None:
            raise InvalidState(
                "AI suggestion cannot be rejected in its current state",
                details={"suggestion_id": suggestion_id},
            )
        return rejected

    async def regenerate(
        self,
        user_id: int,
        suggestion_id: int,
        reason: str | None = None,
        adjustment_hint: str | None = None,
    ) -> AiSuggestion:
        base = await self._load(user_id, suggestion_id)
        if base.status == SuggestionStatus.accepted:
            raise InvalidState(
                "Accepted suggestions cannot be regenerated",
                details={"status": base.status.value},
            )
        if self.is_expired(base):
            raise Expired()
        await self._assert_quota(user_id, base.planned_date)

        _, base_meta = parse_payload(base.payload)
        context = merge_contexts(
            base_meta.get("context") if isinstance(base_meta.get("context"), dict) else None,
            {
                "regenerate_reason": reason,
                "adjustment_hint": adjustment_hint,
                "source_suggestion_id": suggestion_id,
            },
        )
        new = await self._generate_and_store(user_id, base.training_type_code, base.planned_date, context)
        new_id = new.id
        # Detach so a rollback in the best-effort writes below cannot expire the result.
        self.session.expunge(new)

        if base.status == SuggestionStatus.shown:
            try:
                await self.store.update_if_shown(base, {"status": SuggestionStatus.rejected})
            except Exception:
                # New suggestion stands; the stale one lapses through the TTL check.
                logger.warning(
                    "Failed to reject suggestion %s while regenerating it as %s",
                    suggestion_id,
                    new_id,
                    exc_info=True,
                )

        await self.recorder.record(
            suggestion_id,
            user_id,
            SuggestionEventKind.regenerate,
            metadata={"new_suggestion_id": new_id, "reason": reason, "adjustment_hint": adjustment_hint},
            occurred_at=self.clock(),
        )
        logger.info("AI suggestion %s regenerated as %s (user %s)", suggestion_id, new_id, user_id)
        return new


def _planned_totals(steps: list[WorkoutStep], meta: dict[str, Any]) -> tuple[int, int]:
    """Totals stored at creation time win; otherwise re-aggregate the stored steps."""
    distance, duration = aggregate_steps(steps)
    stored_distance = meta.get("planned_distance_m")
    stored_duration = meta.get("planned_duration_s")
    if isinstance(stored_distance, (int, float)) and stored_distance > 0:
        distance = int(stored_distance)
    if isinstance(stored_duration, (int, float)) and stored_duration > 0:
        duration = int(stored_duration)
    return distance, duration
