from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Query

from twinhub.config.settings import get_settings
from twinhub.core.clock import utcnow
from twinhub.models.telemetry import SortOrder, TelemetryIngest, TelemetryRecordOut
from twinhub.services.telemetry_service import get_telemetry_service

router = APIRouter()


@router.post(
    "/{twin_id}/telemetry",
    response_model=TelemetryRecordOut,
    response_model_exclude_none=True,
    status_code=202,
)
async def append_telemetry(twin_id: str, reading: TelemetryIngest):
    service = get_telemetry_service()
    record = await service.append(twin_id, reading)
    return TelemetryRecordOut.from_record(record)


# Declared before the per-name route so "latest" is not taken as a name.
@router.get(
    "/{twin_id}/telemetry/latest",
    response_model=dict[str, TelemetryRecordOut],
    response_model_exclude_none=True,
)
async def query_latest(twin_id: str, name: list[str] = Query(default=[])):
    service = get_telemetry_service()
    latest = await service.query_latest(twin_id, name)
    return {n: TelemetryRecordOut.from_record(r) for n, r in latest.items()}


@router.get(
    "/{twin_id}/telemetry/{name}",
    response_model=list[TelemetryRecordOut],
    response_model_exclude_none=True,
)
async def query_range(
    twin_id: str,
    name: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    order: SortOrder = SortOrder.ASC,
    limit: int = 0,
):
    service = get_telemetry_service()
    end = end or utcnow()
    start = start or end - timedelta(
        seconds=get_settings().telemetry_default_window_seconds
    )
    records = await service.query_range(twin_id, name, start, end, order, limit)
    return [TelemetryRecordOut.from_record(r) for r in records]
