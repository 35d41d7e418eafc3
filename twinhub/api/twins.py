from typing import Any, Optional

from fastapi import APIRouter, Body, Response

from twinhub.models.twin import TwinCreate, TwinInstance, TwinUpdate
from twinhub.services.twin_registry import get_twin_registry

router = APIRouter()


@router.post("", response_model=TwinInstance, status_code=201)
async def create_twin(request: TwinCreate):
    service = get_twin_registry()
    return await service.create_twin(request)


@router.get("", response_model=list[TwinInstance])
async def list_twins(model_id: Optional[str] = None):
    service = get_twin_registry()
    if model_id is not None:
        return await service.list_twins_by_model(model_id)
    return await service.list_twins()


@router.get("/{twin_id}", response_model=TwinInstance)
async def get_twin(twin_id: str):
    service = get_twin_registry()
    return await service.get_twin(twin_id)


@router.patch("/{twin_id}", response_model=TwinInstance)
async def update_twin(twin_id: str, request: TwinUpdate):
    service = get_twin_registry()
    return await service.update_twin(twin_id, request)


@router.put("/{twin_id}/properties/reported", response_model=TwinInstance)
async def update_reported_properties(
    twin_id: str, properties: Optional[dict[str, Any]] = Body(None)
):
    service = get_twin_registry()
    return await service.update_reported_properties(twin_id, properties)


@router.put("/{twin_id}/properties/desired", response_model=TwinInstance)
async def update_desired_properties(
    twin_id: str, properties: Optional[dict[str, Any]] = Body(None)
):
    service = get_twin_registry()
    return await service.update_desired_properties(twin_id, properties)


@router.put("/{twin_id}/tags", response_model=TwinInstance)
async def update_tags(twin_id: str, tags: Optional[dict[str, str]] = Body(None)):
    service = get_twin_registry()
    return await service.update_tags(twin_id, tags)


@router.delete("/{twin_id}", status_code=204)
async def delete_twin(twin_id: str):
    service = get_twin_registry()
    await service.delete_twin(twin_id)
    return Response(status_code=204)
