from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from twinhub.core.clock import ensure_utc
from twinhub.core.errors import InvalidArgumentError


class NumericValue(BaseModel):
    kind: Literal["numeric"] = "numeric"
    value: float = Field(allow_inf_nan=False)


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    value: StrictStr


class BooleanValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    value: StrictBool


TelemetryValue = Annotated[
    Union[NumericValue, TextValue, BooleanValue], Field(discriminator="kind")
]


def telemetry_value(
    numeric: Optional[float] = None,
    text: Optional[str] = None,
    boolean: Optional[bool] = None,
) -> TelemetryValue:
    """Build the single active value variant from three nullable slots.

    Raises ``InvalidArgumentError`` unless exactly one slot is populated.
    """
    populated = [
        slot
        for slot, value in (("numeric", numeric), ("text", text), ("boolean", boolean))
        if value is not None
    ]
    if len(populated) != 1:
        raise InvalidArgumentError(
            "telemetry value must set exactly one of numeric, text or boolean "
            f"(got {len(populated)})"
        )

    if numeric is not None:
        if isinstance(numeric, bool):
            raise InvalidArgumentError("numeric telemetry value must not be a boolean")
        try:
            return NumericValue(value=numeric)
        except ValidationError as exc:
            raise InvalidArgumentError(
                f"numeric telemetry value must be a finite float: {exc}"
            ) from exc
    if text is not None:
        return TextValue(value=text)
    return BooleanValue(value=boolean)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TelemetryRecord(BaseModel):
    twin_id: str
    name: str
    timestamp: datetime
    value: TelemetryValue

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def numeric_value(self) -> Optional[float]:
        return self.value.value if isinstance(self.value, NumericValue) else None

    @property
    def string_value(self) -> Optional[str]:
        return self.value.value if isinstance(self.value, TextValue) else None

    @property
    def boolean_value(self) -> Optional[bool]:
        return self.value.value if isinstance(self.value, BooleanValue) else None


class TelemetryIngest(BaseModel):
    name: str
    timestamp: Optional[datetime] = None
    numeric_value: Optional[Union[StrictInt, StrictFloat]] = None
    string_value: Optional[StrictStr] = None
    boolean_value: Optional[StrictBool] = None


class TelemetryRecordOut(BaseModel):
    twin_id: str
    name: str
    timestamp: datetime
    numeric_value: Optional[float] = None
    string_value: Optional[str] = None
    boolean_value: Optional[bool] = None

    @classmethod
    def from_record(cls, record: TelemetryRecord) -> "TelemetryRecordOut":
        return cls(
            twin_id=record.twin_id,
            name=record.name,
            timestamp=record.timestamp,
            numeric_value=record.numeric_value,
            string_value=record.string_value,
            boolean_value=record.boolean_value,
        )
