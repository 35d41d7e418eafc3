import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from twinhub.core.errors import storage_operation
from twinhub.core.redis_client import get_redis_client
from twinhub.models.telemetry import SortOrder, TelemetryRecord
from twinhub.storage.keys import series_key, telemetry_names_key

logger = logging.getLogger(__name__)


def _encode(record: TelemetryRecord) -> str:
    # The per-record id keeps identical readings distinct in the sorted set.
    member = record.model_dump(mode="json")
    member["id"] = uuid.uuid4().hex
    return json.dumps(member)


def _decode(members: list) -> list[TelemetryRecord]:
    records = []
    for member in members:
        try:
            records.append(TelemetryRecord.model_validate_json(member))
        except ValidationError as exc:
            logger.warning("Skipping malformed telemetry row: %s", exc)
    return records


class TelemetryStore:
    """Append-only telemetry log.

    Each (twin, name) series is a sorted set scored by epoch seconds, which
    serves as the (twin, name, timestamp) index for range and latest queries.
    """

    @storage_operation
    async def append(self, record: TelemetryRecord) -> TelemetryRecord:
        redis = await get_redis_client()

        async with redis.pipeline() as pipe:
            pipe.zadd(
                series_key(record.twin_id, record.name),
                {_encode(record): record.timestamp.timestamp()},
            )
            pipe.sadd(telemetry_names_key(record.twin_id), record.name)
            await pipe.execute()

        return record

    @storage_operation
    async def query_range(
        self,
        twin_id: str,
        name: str,
        start: datetime,
        end: datetime,
        order: SortOrder = SortOrder.ASC,
        limit: int = 0,
    ) -> list[TelemetryRecord]:
        redis = await get_redis_client()
        key = series_key(twin_id, name)
        window = {"start": 0, "num": limit} if limit > 0 else {}

        if order == SortOrder.DESC:
            members = await redis.zrevrangebyscore(
                key, end.timestamp(), start.timestamp(), **window
            )
        else:
            members = await redis.zrangebyscore(
                key, start.timestamp(), end.timestamp(), **window
            )

        return _decode(members)

    @storage_operation
    async def list_names(self, twin_id: str) -> list[str]:
        redis = await get_redis_client()
        names = await redis.smembers(telemetry_names_key(twin_id))
        return sorted(n.decode() for n in names)

    @storage_operation
    async def query_latest(
        self, twin_id: str, names: Optional[list[str]] = None
    ) -> dict[str, TelemetryRecord]:
        if names:
            names = list(dict.fromkeys(names))
        else:
            names = await self.list_names(twin_id)

        redis = await get_redis_client()
        async with redis.pipeline(transaction=False) as pipe:
            for name in names:
                pipe.zrevrange(series_key(twin_id, name), 0, 0)
            heads = await pipe.execute()

        latest = {}
        for name, members in zip(names, heads):
            for record in _decode(members):
                latest[name] = record
        return latest


_store = TelemetryStore()


def get_telemetry_store() -> TelemetryStore:
    return _store
