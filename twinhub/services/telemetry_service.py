import asyncio
import logging
from datetime import datetime
from typing import Optional

from twinhub.config.settings import get_settings
from twinhub.core.clock import ensure_utc, utcnow
from twinhub.core.errors import InvalidArgumentError, QueryCancelledError
from twinhub.models.telemetry import (
    SortOrder,
    TelemetryIngest,
    TelemetryRecord,
    telemetry_value,
)
from twinhub.storage.telemetry_store import get_telemetry_store

logger = logging.getLogger(__name__)


class TelemetryService:
    """Telemetry ingest and queries.

    Ingest does not look the twin up: readings may arrive before the twin
    is created and the append path takes no locks.
    """

    def __init__(self):
        self.store = get_telemetry_store()
        self.settings = get_settings()

    async def append(self, twin_id: str, reading: TelemetryIngest) -> TelemetryRecord:
        if not reading.name:
            raise InvalidArgumentError("telemetry name is required")

        record = TelemetryRecord(
            twin_id=twin_id,
            name=reading.name,
            timestamp=reading.timestamp or utcnow(),
            value=telemetry_value(
                numeric=reading.numeric_value,
                text=reading.string_value,
                boolean=reading.boolean_value,
            ),
        )
        return await self.store.append(record)

    async def query_range(
        self,
        twin_id: str,
        name: str,
        start: datetime,
        end: datetime,
        order: SortOrder = SortOrder.ASC,
        limit: int = 0,
        timeout: Optional[float] = None,
    ) -> list[TelemetryRecord]:
        """Readings with ``start <= timestamp <= end``.

        ``limit`` of 0 means unbounded. ``timeout`` is the deadline in seconds;
        when it is spent the call raises ``QueryCancelledError`` and returns
        nothing.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if start > end:
            raise InvalidArgumentError("start must not be after end")
        if limit < 0:
            raise InvalidArgumentError("limit must not be negative")

        if timeout is None:
            timeout = self.settings.telemetry_query_timeout_seconds
        if timeout <= 0:
            raise QueryCancelledError("deadline expired before the query started")

        try:
            return await asyncio.wait_for(
                self.store.query_range(twin_id, name, start, end, order, limit),
                timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Range query %s/%s exceeded its %.2fs deadline", twin_id, name, timeout
            )
            raise QueryCancelledError(
                f"range query for {twin_id}/{name} exceeded its deadline"
            ) from exc

    async def query_latest(
        self, twin_id: str, names: Optional[list[str]] = None
    ) -> dict[str, TelemetryRecord]:
        return await self.store.query_latest(twin_id, names or [])


_service = TelemetryService()


def get_telemetry_service() -> TelemetryService:
    return _service
