from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TrainingTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    is_active: bool
    created_at: datetime
