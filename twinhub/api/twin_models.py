from fastapi import APIRouter, Response

from twinhub.models.twin_model import TwinModel, TwinModelCreate, TwinModelUpdate
from twinhub.services.model_registry import get_model_registry

router = APIRouter()


@router.post("", response_model=TwinModel, status_code=201)
async def create_model(request: TwinModelCreate):
    service = get_model_registry()
    return await service.create_model(request)


@router.get("", response_model=list[TwinModel])
async def list_models():
    service = get_model_registry()
    return await service.list_models()


@router.get("/{model_id}", response_model=TwinModel)
async def get_model(model_id: str):
    service = get_model_registry()
    return await service.get_model(model_id)


@router.put("/{model_id}", response_model=TwinModel)
async def update_model(model_id: str, request: TwinModelUpdate):
    service = get_model_registry()
    return await service.update_model(model_id, request)


@router.delete("/{model_id}", status_code=204)
async def delete_model(model_id: str):
    service = get_model_registry()
    await service.delete_model(model_id)
    return Response(status_code=204)
