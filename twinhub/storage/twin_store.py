import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from twinhub.core.errors import (
    ConflictError,
    InternalError,
    InvalidReferenceError,
    NotFoundError,
    storage_operation,
)
from twinhub.core.redis_client import get_redis_client
from twinhub.models.twin import TwinInstance
from twinhub.storage.keys import (
    MODEL_PREFIX,
    MODEL_TWINS_PREFIX,
    TWIN_INDEX,
    decode_hash,
    dump_document,
    load_document,
    model_key,
    model_twins_key,
    twin_key,
)

logger = logging.getLogger(__name__)

# KEYS: twin, twin index, model, model's twins. ARGV: id, then field/value pairs.
CREATE_TWIN_SCRIPT = """
if redis.call('EXISTS', KEYS[3]) == 0 then
    return -1
end
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
for i = 2, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
redis.call('ZADD', KEYS[2], '0', ARGV[1])
redis.call('ZADD', KEYS[4], '0', ARGV[1])
return 1
"""

# KEYS: twin. ARGV: id, updated_at, new model id or '', model prefix,
# model twins prefix, then field/value pairs.
# Model keys are built from ARGV, so this needs a single Redis node, not Cluster.
UPDATE_TWIN_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
local new_model = ARGV[3]
if new_model ~= '' then
    if redis.call('EXISTS', ARGV[4] .. new_model) == 0 then
        return -1
    end
    local current = redis.call('HGET', KEYS[1], 'model_id')
    if current ~= new_model then
        if current then
            redis.call('ZREM', ARGV[5] .. current, ARGV[1])
        end
        redis.call('ZADD', ARGV[5] .. new_model, '0', ARGV[1])
        redis.call('HSET', KEYS[1], 'model_id', new_model)
    end
end
for i = 6, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
redis.call('HSET', KEYS[1], 'updated_at', ARGV[2])
return redis.call('HGETALL', KEYS[1])
"""

# KEYS: twin. ARGV: field, document, updated_at.
SET_CONTAINER_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2], 'updated_at', ARGV[3])
return redis.call('HGETALL', KEYS[1])
"""

# KEYS: twin, twin index. ARGV: id, model twins prefix.
# Single node only; the model twins key is built from ARGV.
DELETE_TWIN_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
local model = redis.call('HGET', KEYS[1], 'model_id')
if model then
    redis.call('ZREM', ARGV[2] .. model, ARGV[1])
end
redis.call('DEL', KEYS[1])
redis.call('ZREM', KEYS[2], ARGV[1])
return 1
"""

REPORTED = "reported_properties"
DESIRED = "desired_properties"
TAGS = "tags"


def _twin_fields(twin: TwinInstance) -> list[str]:
    return [
        "id", twin.id,
        "model_id", twin.model_id,
        REPORTED, dump_document(twin.reported_properties),
        DESIRED, dump_document(twin.desired_properties),
        TAGS, dump_document(twin.tags),
        "created_at", twin.created_at.isoformat(),
        "updated_at", twin.updated_at.isoformat(),
    ]


def _twin_from_hash(raw) -> TwinInstance:
    fields = decode_hash(raw)
    return TwinInstance(
        id=fields.get("id"),
        model_id=fields.get("model_id"),
        reported_properties=load_document(fields.get(REPORTED)),
        desired_properties=load_document(fields.get(DESIRED)),
        tags=load_document(fields.get(TAGS)),
        created_at=fields.get("created_at"),
        updated_at=fields.get("updated_at"),
    )


def _decoded(twin_id: str, raw) -> TwinInstance:
    try:
        return _twin_from_hash(raw)
    except (ValidationError, ValueError) as exc:
        raise InternalError(f"Twin '{twin_id}' is corrupted: {exc}") from exc


class TwinStore:
    @storage_operation
    async def create_twin(self, twin: TwinInstance) -> TwinInstance:
        redis = await get_redis_client()
        result = await redis.eval(
            CREATE_TWIN_SCRIPT,
            4,
            twin_key(twin.id),
            TWIN_INDEX,
            model_key(twin.model_id),
            model_twins_key(twin.model_id),
            twin.id,
            *_twin_fields(twin),
        )
        if result == -1:
            raise InvalidReferenceError(f"Model '{twin.model_id}' does not exist")
        if result == 0:
            raise ConflictError(f"Twin '{twin.id}' already exists")
        return twin

    @storage_operation
    async def get_twin(self, twin_id: str) -> Optional[TwinInstance]:
        redis = await get_redis_client()
        raw = await redis.hgetall(twin_key(twin_id))
        if not raw:
            return None
        return _decoded(twin_id, raw)

    @storage_operation
    async def list_twins(self, model_id: Optional[str] = None) -> list[TwinInstance]:
        redis = await get_redis_client()
        index = model_twins_key(model_id) if model_id is not None else TWIN_INDEX
        twin_ids = [t.decode() for t in await redis.zrange(index, 0, -1)]

        async with redis.pipeline(transaction=False) as pipe:
            for twin_id in twin_ids:
                pipe.hgetall(twin_key(twin_id))
            rows = await pipe.execute()

        twins = []
        for twin_id, raw in zip(twin_ids, rows):
            if not raw:
                continue
            try:
                twins.append(_twin_from_hash(raw))
            except (ValidationError, ValueError) as exc:
                logger.warning("Skipping malformed twin row %s: %s", twin_id, exc)
        return twins

    @storage_operation
    async def update_twin(
        self,
        twin_id: str,
        updated_at: datetime,
        model_id: Optional[str] = None,
        desired_properties: Optional[dict[str, Any]] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> TwinInstance:
        """General update. Reported properties are not a parameter here."""
        fields = []
        if desired_properties is not None:
            fields += [DESIRED, dump_document(desired_properties)]
        if tags is not None:
            fields += [TAGS, dump_document(tags)]

        redis = await get_redis_client()
        result = await redis.eval(
            UPDATE_TWIN_SCRIPT,
            1,
            twin_key(twin_id),
            twin_id,
            updated_at.isoformat(),
            model_id or "",
            MODEL_PREFIX,
            MODEL_TWINS_PREFIX,
            *fields,
        )
        if result == 0:
            raise NotFoundError(f"Twin '{twin_id}' not found")
        if result == -1:
            raise InvalidReferenceError(f"Model '{model_id}' does not exist")
        return _decoded(twin_id, result)

    async def set_reported_properties(
        self, twin_id: str, properties: dict[str, Any], updated_at: datetime
    ) -> TwinInstance:
        return await self._set_container(twin_id, REPORTED, properties, updated_at)

    async def set_desired_properties(
        self, twin_id: str, properties: dict[str, Any], updated_at: datetime
    ) -> TwinInstance:
        return await self._set_container(twin_id, DESIRED, properties, updated_at)

    async def set_tags(
        self, twin_id: str, tags: dict[str, str], updated_at: datetime
    ) -> TwinInstance:
        return await self._set_container(twin_id, TAGS, tags, updated_at)

    @storage_operation
    async def _set_container(
        self, twin_id: str, field: str, document: dict, updated_at: datetime
    ) -> TwinInstance:
        redis = await get_redis_client()
        result = await redis.eval(
            SET_CONTAINER_SCRIPT,
            1,
            twin_key(twin_id),
            field,
            dump_document(document),
            updated_at.isoformat(),
        )
        if isinstance(result, int):
            raise NotFoundError(f"Twin '{twin_id}' not found")
        return _decoded(twin_id, result)

    @storage_operation
    async def delete_twin(self, twin_id: str) -> None:
        redis = await get_redis_client()
        deleted = await redis.eval(
            DELETE_TWIN_SCRIPT,
            2,
            twin_key(twin_id),
            TWIN_INDEX,
            twin_id,
            MODEL_TWINS_PREFIX,
        )
        if not deleted:
            raise NotFoundError(f"Twin '{twin_id}' not found")


_store = TwinStore()


def get_twin_store() -> TwinStore:
    return _store
