"""Pytest configuration and shared fixtures: SQLite test DB, fake clock, scripted generators."""

import os
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_stride_planner.db")
os.environ.setdefault("GOOGLE_GEMINI_API_KEY", "")

from app.api.deps import get_generator
from app.db import Base, async_session_maker, engine
from app.main import app
from app.models.user import User
from app.schemas.suggestion import GeneratedSuggestion
from app.schemas.workout import StepPart, WorkoutStep
from app.services.suggestion_lifecycle import SuggestionLifecycle
from app.services.training_types import seed_training_types
from app.services.workout_lifecycle import WorkoutLifecycle

PLANNED_DATE = date(2025, 6, 1)


class FakeClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class StaticGenerator:
    """Returns the same steps every time and records each call."""

    def __init__(self, steps: list[WorkoutStep] | None = None, metadata: dict | None = None):
        self.steps = steps if steps is not None else [
            WorkoutStep(part=StepPart.WARMUP, distance_m=1000, duration_s=360),
            WorkoutStep(part=StepPart.MAIN, distance_m=3000, duration_s=1080),
            WorkoutStep(part=StepPart.COOLDOWN, distance_m=1000, duration_s=360),
        ]
        self.metadata = metadata if metadata is not None else {"model": "static"}
        self.calls: list[dict] = []

    async def generate(self, user_id, training_type_code, planned_date, context):
        self.calls.append({
            "user_id": user_id,
            "training_type_code": training_type_code,
            "planned_date": planned_date,
            "context": context,
        })
        return GeneratedSuggestion(steps=list(self.steps), metadata=dict(self.metadata))


@pytest_asyncio.fixture
async def db():
    """Fresh schema per test; pooled connections are dropped afterwards (one event loop per test)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as s:
        await seed_training_types(s)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with async_session_maker() as s:
        yield s


async def _create_user(email: str) -> int:
    async with async_session_maker() as s:
        user = User(email=email)
        s.add(user)
        await s.commit()
        return user.id


@pytest_asyncio.fixture
async def user_id(db) -> int:
    return await _create_user("runner@test.com")


@pytest_asyncio.fixture
async def other_user_id(db) -> int:
    return await _create_user("other@test.com")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 5, 30, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def generator() -> StaticGenerator:
    return StaticGenerator()


@pytest.fixture
def suggestions(session, generator, clock) -> SuggestionLifecycle:
    return SuggestionLifecycle(session, generator=generator, clock=clock)


@pytest.fixture
def workouts(session) -> WorkoutLifecycle:
    return WorkoutLifecycle(session)


@pytest_asyncio.fixture
async def client(db):
    """AsyncClient against the app with the scripted generator injected."""
    app.dependency_overrides[get_generator] = lambda: StaticGenerator()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id) -> dict:
    return {"X-User-Id": str(user_id)}
