import logging
from typing import Optional

from pydantic import ValidationError

from twinhub.core.errors import ConflictError, InternalError, NotFoundError, storage_operation
from twinhub.core.redis_client import get_redis_client
from twinhub.models.twin_model import TwinModel
from twinhub.storage.keys import MODEL_INDEX, decode_hash, model_key, model_twins_key

logger = logging.getLogger(__name__)

# KEYS: model, index. ARGV: id, then field/value pairs.
CREATE_MODEL_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
for i = 2, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
redis.call('ZADD', KEYS[2], '0', ARGV[1])
return 1
"""

# KEYS: model. ARGV: display_name, updated_at, has_description, description.
UPDATE_MODEL_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('HSET', KEYS[1], 'display_name', ARGV[1], 'updated_at', ARGV[2])
if ARGV[3] == '1' then
    redis.call('HSET', KEYS[1], 'description', ARGV[4])
else
    redis.call('HDEL', KEYS[1], 'description')
end
return redis.call('HGETALL', KEYS[1])
"""

# KEYS: model, index, referencing twins. ARGV: id.
DELETE_MODEL_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
if redis.call('ZCARD', KEYS[3]) > 0 then
    return -1
end
redis.call('DEL', KEYS[1])
redis.call('ZREM', KEYS[2], ARGV[1])
return 1
"""


def _model_fields(model: TwinModel) -> list[str]:
    fields = [
        "id", model.id,
        "display_name", model.display_name,
        "created_at", model.created_at.isoformat(),
        "updated_at", model.updated_at.isoformat(),
    ]
    if model.description is not None:
        fields += ["description", model.description]
    return fields


def _model_from_hash(raw) -> TwinModel:
    return TwinModel.model_validate(decode_hash(raw))


class ModelStore:
    @storage_operation
    async def create_model(self, model: TwinModel) -> TwinModel:
        redis = await get_redis_client()
        created = await redis.eval(
            CREATE_MODEL_SCRIPT,
            2,
            model_key(model.id),
            MODEL_INDEX,
            model.id,
            *_model_fields(model),
        )
        if not created:
            raise ConflictError(f"Model '{model.id}' already exists")
        return model

    @storage_operation
    async def get_model(self, model_id: str) -> Optional[TwinModel]:
        redis = await get_redis_client()
        raw = await redis.hgetall(model_key(model_id))
        if not raw:
            return None
        try:
            return _model_from_hash(raw)
        except (ValidationError, ValueError) as exc:
            raise InternalError(f"Model '{model_id}' is corrupted: {exc}") from exc

    @storage_operation
    async def list_models(self) -> list[TwinModel]:
        redis = await get_redis_client()
        model_ids = [m.decode() for m in await redis.zrange(MODEL_INDEX, 0, -1)]

        async with redis.pipeline(transaction=False) as pipe:
            for model_id in model_ids:
                pipe.hgetall(model_key(model_id))
            rows = await pipe.execute()

        models = []
        for model_id, raw in zip(model_ids, rows):
            if not raw:
                continue
            try:
                models.append(_model_from_hash(raw))
            except (ValidationError, ValueError) as exc:
                logger.warning("Skipping malformed model row %s: %s", model_id, exc)
        return models

    @storage_operation
    async def update_model(
        self,
        model_id: str,
        display_name: str,
        description: Optional[str],
        updated_at,
    ) -> TwinModel:
        redis = await get_redis_client()
        result = await redis.eval(
            UPDATE_MODEL_SCRIPT,
            1,
            model_key(model_id),
            display_name,
            updated_at.isoformat(),
            "0" if description is None else "1",
            description or "",
        )
        if isinstance(result, int):
            raise NotFoundError(f"Model '{model_id}' not found")
        try:
            return _model_from_hash(result)
        except (ValidationError, ValueError) as exc:
            raise InternalError(f"Model '{model_id}' is corrupted: {exc}") from exc

    @storage_operation
    async def delete_model(self, model_id: str) -> None:
        redis = await get_redis_client()
        result = await redis.eval(
            DELETE_MODEL_SCRIPT,
            3,
            model_key(model_id),
            MODEL_INDEX,
            model_twins_key(model_id),
            model_id,
        )
        if result == 0:
            raise NotFoundError(f"Model '{model_id}' not found")
        if result == -1:
            raise ConflictError(
                f"Model '{model_id}' is still referenced by twin instances"
            )


_store = ModelStore()


def get_model_store() -> ModelStore:
    return _store
