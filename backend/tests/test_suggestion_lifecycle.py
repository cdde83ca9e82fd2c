"""Tests for the AI suggestion lifecycle: create, accept, reject, regenerate, expiry, quota."""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import (
    AlreadyLinked,
    Expired,
    GenerationError,
    IncompleteGeneration,
    InternalError,
    InvalidState,
    NotFound,
    PositionConflict,
    QuotaExceeded,
    UnknownTrainingType,
)
from app.db.session import async_session_maker
from app.models.ai_suggestion import AiSuggestion, SuggestionStatus
from app.models.training_type import TrainingType
from app.models.workout import Workout, WorkoutOrigin, WorkoutStatus
from app.schemas.workout import StepPart, WorkoutStep
from app.services.suggestion_lifecycle import SuggestionLifecycle, parse_sort

from tests.conftest import PLANNED_DATE, StaticGenerator


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


# --- create -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_persists_shown_suggestion_with_totals(suggestions, generator, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE, {"goal": "10k"})
    assert s.id is not None
    assert s.status == SuggestionStatus.shown
    assert s.planned_date == PLANNED_DATE
    assert s.accepted_workout_id is None
    meta = s.payload["meta"]
    assert meta["planned_distance_m"] == 5000
    assert meta["planned_duration_s"] == 1800
    assert meta["context"] == {"goal": "10k", "model": "static"}
    assert [step["part"] for step in s.payload["steps"]] == ["warmup", "main", "cooldown"]
    assert generator.calls[0]["context"] == {"goal": "10k"}


@pytest.mark.asyncio
async def test_create_expires_at_is_created_plus_24h(suggestions, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    assert suggestions.expires_at(s) == clock.now + timedelta(hours=24)


@pytest.mark.asyncio
async def test_create_unknown_training_type(suggestions, generator, session, user_id):
    with pytest.raises(UnknownTrainingType) as exc:
        await suggestions.create(user_id, "underwater_run", PLANNED_DATE)
    assert exc.value.details == {"training_type_code": "underwater_run"}
    assert generator.calls == []
    assert await _count(session, AiSuggestion) == 0


@pytest.mark.asyncio
async def test_create_inactive_training_type_is_unknown(suggestions, session, user_id):
    tt = await session.get(TrainingType, "recovery")
    tt.is_active = False
    await session.commit()
    with pytest.raises(UnknownTrainingType):
        await suggestions.create(user_id, "recovery", PLANNED_DATE)


@pytest.mark.asyncio
async def test_create_quota_three_per_date_per_utc_day(suggestions, clock, user_id):
    for _ in range(3):
        await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with pytest.raises(QuotaExceeded) as exc:
        await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    assert exc.value.status_code == 429
    # Other target date is not affected
    await suggestions.create(user_id, "easy_run", PLANNED_DATE + timedelta(days=1))
    # Next UTC day the window resets
    clock.advance(timedelta(days=1))
    await suggestions.create(user_id, "easy_run", PLANNED_DATE)


@pytest.mark.asyncio
async def test_create_quota_counts_any_status(suggestions, user_id):
    a = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.reject(user_id, a.id)
    b = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.accept(user_id, b.id, 1)
    await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with pytest.raises(QuotaExceeded):
        await suggestions.create(user_id, "easy_run", PLANNED_DATE)


@pytest.mark.asyncio
async def test_create_quota_is_per_user(suggestions, user_id, other_user_id):
    for _ in range(3):
        await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.create(other_user_id, "easy_run", PLANNED_DATE)


@pytest.mark.asyncio
async def test_create_incomplete_generation(session, clock, user_id):
    gen = StaticGenerator(steps=[WorkoutStep(part=StepPart.MAIN, notes="just run")])
    lifecycle = SuggestionLifecycle(session, generator=gen, clock=clock)
    with pytest.raises(IncompleteGeneration):
        await lifecycle.create(user_id, "easy_run", PLANNED_DATE)
    assert await _count(session, AiSuggestion) == 0


@pytest.mark.asyncio
async def test_create_duration_only_is_enough(session, clock, user_id):
    gen = StaticGenerator(steps=[WorkoutStep(part=StepPart.MAIN, duration_s=2400)])
    lifecycle = SuggestionLifecycle(session, generator=gen, clock=clock)
    s = await lifecycle.create(user_id, "easy_run", PLANNED_DATE)
    assert s.payload["meta"]["planned_duration_s"] == 2400
    assert "planned_distance_m" not in s.payload["meta"]


@pytest.mark.asyncio
async def test_create_generator_failure_aborts(session, clock, user_id):
    gen = StaticGenerator()
    gen.generate = AsyncMock(side_effect=RuntimeError("model down"))
    lifecycle = SuggestionLifecycle(session, generator=gen, clock=clock)
    with pytest.raises(GenerationError) as exc:
        await lifecycle.create(user_id, "easy_run", PLANNED_DATE)
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert await _count(session, AiSuggestion) == 0


@pytest.mark.asyncio
async def test_create_store_failure_is_internal_error(suggestions, user_id):
    with patch.object(suggestions.store, "insert", AsyncMock(side_effect=SQLAlchemyError("db down"))):
        with pytest.raises(InternalError):
            await suggestions.create(user_id, "easy_run", PLANNED_DATE)


# --- get / list ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_not_owned_is_not_found(suggestions, user_id, other_user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with pytest.raises(NotFound):
        await suggestions.get(other_user_id, s.id)


@pytest.mark.asyncio
async def test_get_expired_unless_included(suggestions, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(hours=25))
    with pytest.raises(Expired):
        await suggestions.get(user_id, s.id)
    result = await suggestions.get(user_id, s.id, include_expired=True)
    assert result.suggestion.id == s.id
    assert result.events == []


@pytest.mark.asyncio
async def test_list_filters_and_paginates(suggestions, clock, user_id, other_user_id):
    first = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(minutes=5))
    second = await suggestions.create(user_id, "tempo_run", PLANNED_DATE)
    clock.advance(timedelta(minutes=5))
    await suggestions.create(other_user_id, "easy_run", PLANNED_DATE)
    await suggestions.reject(user_id, first.id)

    page = await suggestions.list_suggestions(user_id, per_page=1)
    assert page.total == 2
    assert [s.id for s in page.items] == [second.id]
    assert page.has_more is True

    rejected = await suggestions.list_suggestions(user_id, status=SuggestionStatus.rejected)
    assert [s.id for s in rejected.items] == [first.id]

    asc = await suggestions.list_suggestions(user_id, sort="created_at:asc")
    assert [s.id for s in asc.items] == [first.id, second.id]

    none = await suggestions.list_suggestions(user_id, created_after=date(2025, 5, 31))
    assert none.total == 0
    same_day = await suggestions.list_suggestions(
        user_id, created_after=date(2025, 5, 30), created_before=date(2025, 5, 30)
    )
    assert same_day.total == 2


@pytest.mark.parametrize("raw,expected", [
    (None, ("created_at", False)),
    ("created_at:asc", ("created_at", True)),
    ("status", ("status", False)),
    ("planned_date:desc", ("planned_date", False)),
    ("bogus:asc", ("created_at", True)),
])
def test_parse_sort(raw, expected):
    assert parse_sort(raw) == expected


# --- accept -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_accept_scenario_position_conflict_then_retry(suggestions, session, user_id):
    """5000 m / 1800 s suggestion becomes a planned AI workout; the slot is then taken."""
    first = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    result = await suggestions.accept(user_id, first.id, 1)
    workout = result.workout
    assert workout.planned_distance_m == 5000
    assert workout.planned_duration_s == 1800
    assert workout.status == WorkoutStatus.planned
    assert workout.origin == WorkoutOrigin.ai
    assert workout.position == 1
    assert workout.ai_suggestion_id == first.id
    assert len(workout.steps) == 3
    assert result.suggestion.status == SuggestionStatus.accepted
    assert result.suggestion.accepted_workout_id == workout.id

    second = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    second_id = second.id  # the failed insert rolls the session back and expires loaded rows
    with pytest.raises(PositionConflict) as exc:
        await suggestions.accept(user_id, second_id, 1)
    assert exc.value.status_code == 409

    reloaded = await suggestions.store.find(user_id, second_id)
    assert reloaded.status == SuggestionStatus.shown
    assert reloaded.accepted_workout_id is None

    retried = await suggestions.accept(user_id, second_id, 2)
    assert retried.workout.position == 2
    assert await _count(session, Workout) == 2


@pytest.mark.asyncio
async def test_accept_same_position_other_user_ok(suggestions, user_id, other_user_id):
    a = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    b = await suggestions.create(other_user_id, "easy_run", PLANNED_DATE)
    await suggestions.accept(user_id, a.id, 1)
    await suggestions.accept(other_user_id, b.id, 1)


@pytest.mark.asyncio
async def test_accept_at_most_once(suggestions, session, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.accept(user_id, s.id, 1)
    with pytest.raises((InvalidState, AlreadyLinked)):
        await suggestions.accept(user_id, s.id, 2)
    assert await _count(session, Workout) == 1


@pytest.mark.asyncio
async def test_accept_not_found_for_other_user(suggestions, user_id, other_user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with pytest.raises(NotFound):
        await suggestions.accept(other_user_id, s.id, 1)
    with pytest.raises(NotFound):
        await suggestions.accept(user_id, 9999, 1)


@pytest.mark.asyncio
async def test_accept_rejected_is_invalid_state(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.reject(user_id, s.id)
    with pytest.raises(InvalidState) as exc:
        await suggestions.accept(user_id, s.id, 1)
    assert exc.value.details == {"status": "rejected"}


@pytest.mark.asyncio
async def test_accept_already_linked(suggestions, workouts, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    manual = await workouts.create_planned(
        user_id,
        training_type_code="easy_run",
        planned_date=PLANNED_DATE,
        position=5,
        planned_distance_m=3000,
        planned_duration_s=None,
        steps=[],
        origin=WorkoutOrigin.manual,
    )
    await suggestions.store.update(s, {"accepted_workout_id": manual.id})
    with pytest.raises(AlreadyLinked):
        await suggestions.accept(user_id, s.id, 1)


@pytest.mark.asyncio
async def test_accept_expired_by_time(suggestions, session, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(hours=24))
    with pytest.raises(Expired) as exc:
        await suggestions.accept(user_id, s.id, 1)
    assert exc.value.status_code == 410
    assert await _count(session, Workout) == 0
    # stored status is untouched; expiry is derived
    assert (await suggestions.store.find(user_id, s.id)).status == SuggestionStatus.shown


@pytest.mark.asyncio
async def test_accept_just_before_expiry(suggestions, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(hours=24) - timedelta(seconds=1))
    result = await suggestions.accept(user_id, s.id, 1)
    assert result.suggestion.status == SuggestionStatus.accepted


@pytest.mark.asyncio
async def test_accept_stored_expired_status_is_invalid_state(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.store.update(s, {"status": SuggestionStatus.expired})
    with pytest.raises(InvalidState):
        await suggestions.accept(user_id, s.id, 1)


@pytest.mark.asyncio
async def test_accept_uses_stored_totals_over_steps(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    payload = dict(s.payload)
    payload["meta"] = {**payload["meta"], "planned_distance_m": 6000}
    await suggestions.store.update(s, {"payload": payload})
    result = await suggestions.accept(user_id, s.id, 1)
    assert result.workout.planned_distance_m == 6000
    assert result.workout.planned_duration_s == 1800


@pytest.mark.asyncio
async def test_accept_other_insert_failure_is_internal_error(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with patch.object(suggestions.workouts.store, "insert", AsyncMock(side_effect=SQLAlchemyError("db down"))):
        with pytest.raises(InternalError):
            await suggestions.accept(user_id, s.id, 1)
    reloaded = await suggestions.store.find(user_id, s.id)
    assert reloaded.status == SuggestionStatus.shown
    assert reloaded.accepted_workout_id is None


@pytest.mark.asyncio
async def test_accept_compensates_when_marking_accepted_fails(suggestions, session, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with patch.object(suggestions.store, "update_if_shown", AsyncMock(side_effect=SQLAlchemyError("db gone"))):
        with pytest.raises(InternalError):
            await suggestions.accept(user_id, s.id, 1)
    assert await _count(session, Workout) == 0
    reloaded = await suggestions.store.find(user_id, s.id)
    assert reloaded.status == SuggestionStatus.shown
    # Retry succeeds and takes the same slot: no orphan was left behind
    result = await suggestions.accept(user_id, s.id, 1)
    assert result.workout.position == 1


@pytest.mark.asyncio
async def test_accept_failed_compensation_logs_orphan(suggestions, session, user_id, caplog):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with patch.object(suggestions.store, "update_if_shown", AsyncMock(side_effect=SQLAlchemyError("db gone"))), \
            patch.object(suggestions.workouts, "discard", AsyncMock(side_effect=SQLAlchemyError("still gone"))):
        with pytest.raises(InternalError):
            await suggestions.accept(user_id, s.id, 1)
    assert "Orphaned workout" in caplog.text
    assert await _count(session, Workout) == 1


@pytest.mark.asyncio
async def test_concurrent_accepts_same_slot_one_wins(generator, clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l1 = SuggestionLifecycle(s1, generator=generator, clock=clock)
        l2 = SuggestionLifecycle(s2, generator=generator, clock=clock)
        a = await l1.create(user_id, "easy_run", PLANNED_DATE)
        b = await l2.create(user_id, "easy_run", PLANNED_DATE)

        results = await asyncio.gather(
            l1.accept(user_id, a.id, 1),
            l2.accept(user_id, b.id, 1),
            return_exceptions=True,
        )

    conflicts = [r for r in results if isinstance(r, PositionConflict)]
    wins = [r for r in results if not isinstance(r, Exception)]
    assert len(wins) == 1
    assert len(conflicts) == 1

    async with async_session_maker() as s:
        rows = (await s.execute(select(AiSuggestion).order_by(AiSuggestion.id))).scalars().all()
        statuses = sorted(r.status.value for r in rows)
        assert statuses == ["accepted", "shown"]
        loser = next(r for r in rows if r.status == SuggestionStatus.shown)
        assert loser.accepted_workout_id is None


@pytest.mark.asyncio
async def test_concurrent_accepts_same_suggestion_one_wins(generator, clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l1 = SuggestionLifecycle(s1, generator=generator, clock=clock)
        l2 = SuggestionLifecycle(s2, generator=generator, clock=clock)
        s = await l1.create(user_id, "easy_run", PLANNED_DATE)
        sid = s.id

        results = await asyncio.gather(
            l1.accept(user_id, sid, 1),
            l2.accept(user_id, sid, 2),
            return_exceptions=True,
        )

    wins = [r for r in results if not isinstance(r, Exception)]
    losses = [r for r in results if isinstance(r, Exception)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert isinstance(losses[0], (InvalidState, AlreadyLinked))

    async with async_session_maker() as s:
        linked = (await s.execute(
            select(func.count()).select_from(Workout).where(Workout.ai_suggestion_id == sid)
        )).scalar()
        assert linked == 1
        row = await s.get(AiSuggestion, sid)
        assert row.status == SuggestionStatus.accepted
        assert row.accepted_workout_id == wins[0].workout.id


@pytest.mark.asyncio
async def test_accept_racing_accept_after_status_check_is_already_linked(generator, clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l1 = SuggestionLifecycle(s1, generator=generator, clock=clock)
        l2 = SuggestionLifecycle(s2, generator=generator, clock=clock)
        s = await l1.create(user_id, "easy_run", PLANNED_DATE)
        sid = s.id
        create_planned = l1.workouts.create_planned

        async def accepted_elsewhere_first(*args, **kwargs):
            await l2.accept(user_id, sid, 2)
            return await create_planned(*args, **kwargs)

        with patch.object(l1.workouts, "create_planned", accepted_elsewhere_first):
            with pytest.raises(AlreadyLinked):
                await l1.accept(user_id, sid, 1)

    async with async_session_maker() as s:
        workouts = (await s.execute(select(Workout))).scalars().all()
        assert [w.position for w in workouts] == [2]
        row = await s.get(AiSuggestion, sid)
        assert row.accepted_workout_id == workouts[0].id


@pytest.mark.asyncio
async def test_accept_losing_to_reject_discards_workout(generator, clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l1 = SuggestionLifecycle(s1, generator=generator, clock=clock)
        l2 = SuggestionLifecycle(s2, generator=generator, clock=clock)
        s = await l1.create(user_id, "easy_run", PLANNED_DATE)
        sid = s.id
        create_planned = l1.workouts.create_planned

        async def create_then_rejected(*args, **kwargs):
            workout = await create_planned(*args, **kwargs)
            await l2.reject(user_id, sid)
            return workout

        with patch.object(l1.workouts, "create_planned", create_then_rejected):
            with pytest.raises(InvalidState):
                await l1.accept(user_id, sid, 1)

    async with async_session_maker() as s:
        assert await _count(s, Workout) == 0
        row = await s.get(AiSuggestion, sid)
        assert row.status == SuggestionStatus.rejected
        assert row.accepted_workout_id is None


@pytest.mark.asyncio
async def test_reject_does_not_overwrite_concurrent_accept(generator, clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l1 = SuggestionLifecycle(s1, generator=generator, clock=clock)
        l2 = SuggestionLifecycle(s2, generator=generator, clock=clock)
        s = await l1.create(user_id, "easy_run", PLANNED_DATE)
        sid = s.id
        # l1 has already loaded the row as shown when l2 accepts it
        loaded = await l1.store.find(user_id, sid)
        assert loaded.status == SuggestionStatus.shown
        await l2.accept(user_id, sid, 1)

        with patch.object(l1.store, "find", AsyncMock(return_value=loaded)):
            with pytest.raises(InvalidState):
                await l1.reject(user_id, sid)

    async with async_session_maker() as s:
        row = await s.get(AiSuggestion, sid)
        assert row.status == SuggestionStatus.accepted
        assert row.accepted_workout_id is not None


@pytest.mark.asyncio
async def test_regenerate_does_not_reject_suggestion_accepted_meanwhile(clock, user_id):
    async with async_session_maker() as s1, async_session_maker() as s2:
        l2 = SuggestionLifecycle(s2, generator=StaticGenerator(), clock=clock)
        s = await l2.create(user_id, "easy_run", PLANNED_DATE)
        sid = s.id

        class AcceptDuringGeneration(StaticGenerator):
            async def generate(self, *args):
                await l2.accept(user_id, sid, 1)
                return await super().generate(*args)

        l1 = SuggestionLifecycle(s1, generator=AcceptDuringGeneration(), clock=clock)
        new = await l1.regenerate(user_id, sid, reason="shorter")

    assert new.id != sid
    async with async_session_maker() as s:
        row = await s.get(AiSuggestion, sid)
        assert row.status == SuggestionStatus.accepted
        assert row.accepted_workout_id is not None


# --- reject -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_reject_shown(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    rejected = await suggestions.reject(user_id, s.id)
    assert rejected.status == SuggestionStatus.rejected
    with pytest.raises(InvalidState):
        await suggestions.reject(user_id, s.id)


@pytest.mark.asyncio
async def test_reject_accepted_is_invalid_state(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.accept(user_id, s.id, 1)
    with pytest.raises(InvalidState):
        await suggestions.reject(user_id, s.id)


@pytest.mark.asyncio
async def test_reject_expired(suggestions, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(days=2))
    with pytest.raises(Expired):
        await suggestions.reject(user_id, s.id)


# --- regenerate ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_regenerate_creates_new_rejects_old_and_records_event(suggestions, generator, session, user_id):
    old = await suggestions.create(user_id, "tempo_run", PLANNED_DATE, {"goal": "10k"})
    new = await suggestions.regenerate(user_id, old.id, reason="too hard", adjustment_hint="shorter")

    assert new.id != old.id
    assert new.status == SuggestionStatus.shown
    assert new.training_type_code == "tempo_run"
    assert new.planned_date == PLANNED_DATE

    ctx = generator.calls[-1]["context"]
    assert ctx["goal"] == "10k"
    assert ctx["regenerate_reason"] == "too hard"
    assert ctx["adjustment_hint"] == "shorter"
    assert ctx["source_suggestion_id"] == old.id

    old_row = await suggestions.store.find(user_id, old.id)
    assert old_row.status == SuggestionStatus.rejected

    detail = await suggestions.get(user_id, old.id, include_expired=True)
    assert len(detail.events) == 1
    event = detail.events[0]
    assert event.kind.value == "regenerate"
    assert event.metadata_ == {"new_suggestion_id": new.id, "reason": "too hard", "adjustment_hint": "shorter"}
    assert (await suggestions.get(user_id, new.id)).events == []


@pytest.mark.asyncio
async def test_regenerate_accepted_is_invalid_state(suggestions, generator, session, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.accept(user_id, s.id, 1)
    calls = len(generator.calls)
    with pytest.raises(InvalidState):
        await suggestions.regenerate(user_id, s.id, reason="again")
    assert await _count(session, AiSuggestion) == 1
    assert len(generator.calls) == calls


@pytest.mark.asyncio
async def test_regenerate_expired(suggestions, clock, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    clock.advance(timedelta(hours=30))
    with pytest.raises(Expired):
        await suggestions.regenerate(user_id, s.id)


@pytest.mark.asyncio
async def test_regenerate_counts_against_quota(suggestions, session, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    s = await suggestions.regenerate(user_id, s.id)
    s = await suggestions.regenerate(user_id, s.id)
    with pytest.raises(QuotaExceeded):
        await suggestions.regenerate(user_id, s.id)
    assert await _count(session, AiSuggestion) == 3


@pytest.mark.asyncio
async def test_regenerate_from_rejected_is_allowed(suggestions, user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.reject(user_id, s.id)
    new = await suggestions.regenerate(user_id, s.id, reason="changed my mind")
    assert new.status == SuggestionStatus.shown


@pytest.mark.asyncio
async def test_regenerate_old_reject_failure_still_succeeds(suggestions, user_id, caplog):
    old = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with patch.object(suggestions.store, "update_if_shown", AsyncMock(side_effect=SQLAlchemyError("db blip"))):
        new = await suggestions.regenerate(user_id, old.id)
    assert new.status == SuggestionStatus.shown
    assert "Failed to reject suggestion" in caplog.text
    old_row = await suggestions.store.find(user_id, old.id)
    assert old_row.status == SuggestionStatus.shown


@pytest.mark.asyncio
async def test_regenerate_event_failure_is_swallowed(suggestions, user_id, caplog):
    old = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    with patch.object(suggestions.store, "insert_event", AsyncMock(side_effect=SQLAlchemyError("audit down"))):
        new = await suggestions.regenerate(user_id, old.id, reason="r")
    assert new.id != old.id
    assert new.status == SuggestionStatus.shown
    assert "Failed to record AI suggestion regenerate event" in caplog.text
    events = await suggestions.list_events(user_id, old.id)
    assert events.total == 0


@pytest.mark.asyncio
async def test_list_events_paginates(suggestions, clock, user_id, other_user_id):
    s = await suggestions.create(user_id, "easy_run", PLANNED_DATE)
    await suggestions.reject(user_id, s.id)
    for _ in range(2):
        clock.advance(timedelta(minutes=1))
        await suggestions.regenerate(user_id, s.id)
    page = await suggestions.list_events(user_id, s.id, page=1, per_page=1)
    assert page.total == 2
    assert len(page.items) == 1
    assert page.has_more is True
    with pytest.raises(NotFound):
        await suggestions.list_events(other_user_id, s.id)
