from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TwinModel(BaseModel):
    id: str
    display_name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TwinModelCreate(BaseModel):
    id: Optional[str] = None
    display_name: str = ""
    description: Optional[str] = None


class TwinModelUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    display_name: str = ""
    description: Optional[str] = None
