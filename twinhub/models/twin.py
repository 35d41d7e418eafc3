from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TwinInstance(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    model_id: str
    reported_properties: dict[str, Any] = Field(default_factory=dict)
    desired_properties: dict[str, Any] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "reported_properties", "desired_properties", "tags", mode="before"
    )
    @classmethod
    def _null_to_empty(cls, value):
        return {} if value is None else value


class TwinCreate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: Optional[str] = None
    model_id: str = ""
    # Accepted for payload compatibility; reported state never comes from here.
    reported_properties: Optional[dict[str, Any]] = None
    desired_properties: Optional[dict[str, Any]] = None
    tags: Optional[dict[str, str]] = None


class TwinUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    model_id: Optional[str] = None
    desired_properties: Optional[dict[str, Any]] = None
    tags: Optional[dict[str, str]] = None
