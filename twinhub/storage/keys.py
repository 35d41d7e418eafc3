"""Redis key layout and small decoding helpers shared by the stores."""

import json
from typing import Any, Optional
from urllib.parse import quote

MODEL_PREFIX = "twinhub:model:"
MODEL_INDEX = "twinhub:models"
MODEL_TWINS_PREFIX = "twinhub:model_twins:"

TWIN_PREFIX = "twinhub:twin:"
TWIN_INDEX = "twinhub:twins"

TELEMETRY_PREFIX = "twinhub:telemetry:"
TELEMETRY_NAMES_PREFIX = "twinhub:telemetry_names:"


def model_key(model_id: str) -> str:
    return f"{MODEL_PREFIX}{model_id}"


def model_twins_key(model_id: str) -> str:
    return f"{MODEL_TWINS_PREFIX}{model_id}"


def twin_key(twin_id: str) -> str:
    return f"{TWIN_PREFIX}{twin_id}"


def series_key(twin_id: str, name: str) -> str:
    # Both parts are quoted so ids containing ':' cannot collide.
    return f"{TELEMETRY_PREFIX}{quote(twin_id, safe='')}:{quote(name, safe='')}"


def telemetry_names_key(twin_id: str) -> str:
    return f"{TELEMETRY_NAMES_PREFIX}{quote(twin_id, safe='')}"


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def decode_hash(raw: Any) -> dict[str, str]:
    """Decode an HGETALL reply, either a mapping or a flat field/value list."""
    if isinstance(raw, dict):
        items = raw.items()
    else:
        items = zip(raw[0::2], raw[1::2])
    return {_text(field): _text(value) for field, value in items}


def dump_document(document: Optional[dict]) -> str:
    return json.dumps(document or {})


def load_document(text: Optional[str]) -> dict:
    if text is None:
        return {}
    document = json.loads(text)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document
