from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.db.session import get_db
from app.schemas.training_type import TrainingTypeResponse
from app.services.training_types import list_training_types

router = APIRouter(prefix="/training-types", tags=["training-types"])


@router.get("", response_model=list[TrainingTypeResponse], summary="List training types")
async def get_training_types(
    session: Annotated[AsyncSession, Depends(get_db)],
    _user_id: Annotated[int, Depends(get_current_user_id)],
    include_inactive: bool = False,
) -> list[TrainingTypeResponse]:
    rows = await list_training_types(session, include_inactive)
    return [TrainingTypeResponse.model_validate(r) for r in rows]
