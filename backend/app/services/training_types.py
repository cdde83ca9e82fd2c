"""Training type catalogue lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.training_type import TrainingType


async def training_type_exists(session: AsyncSession, code: str) -> bool:
    """True if `code` is a known, active training type."""
    r = await session.execute(
        select(TrainingType.code).where(TrainingType.code == code, TrainingType.is_active.is_(True))
    )
    return r.scalar_one_or_none() is not None


async def list_training_types(session: AsyncSession, include_inactive: bool = False) -> list[TrainingType]:
    q = select(TrainingType).order_by(TrainingType.code.asc())
    if not include_inactive:
        q = q.where(TrainingType.is_active.is_(True))
    r = await session.execute(q)
    return list(r.scalars().all())


DEFAULT_TRAINING_TYPES: list[tuple[str, str]] = [
    ("easy_run", "Easy run"),
    ("tempo_run", "Tempo run"),
    ("interval", "Intervals"),
    ("long_run", "Long run"),
    ("recovery", "Recovery run"),
]


async def seed_training_types(session: AsyncSession) -> int:
    """Insert default training types missing from the catalogue; returns how many were added."""
    r = await session.execute(select(TrainingType.code))
    existing = {row[0] for row in r.all()}
    added = 0
    for code, name in DEFAULT_TRAINING_TYPES:
        if code in existing:
            continue
        session.add(TrainingType(code=code, name=name, is_active=True))
        added += 1
    if added:
        await session.commit()
    return added
