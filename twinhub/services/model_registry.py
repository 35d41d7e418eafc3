import logging
import uuid

from twinhub.core.clock import utcnow
from twinhub.core.errors import InvalidArgumentError, NotFoundError
from twinhub.models.twin_model import TwinModel, TwinModelCreate, TwinModelUpdate
from twinhub.storage.model_store import get_model_store

logger = logging.getLogger(__name__)


def _require_display_name(display_name: str) -> None:
    if not display_name or not display_name.strip():
        raise InvalidArgumentError("display_name is required")


class ModelRegistry:
    def __init__(self):
        self.store = get_model_store()

    async def create_model(self, request: TwinModelCreate) -> TwinModel:
        _require_display_name(request.display_name)

        now = utcnow()
        model = TwinModel(
            id=request.id or f"model-{uuid.uuid4()}",
            display_name=request.display_name,
            description=request.description,
            created_at=now,
            updated_at=now,
        )
        await self.store.create_model(model)

        logger.info("Created model %s", model.id)
        return model

    async def get_model(self, model_id: str) -> TwinModel:
        model = await self.store.get_model(model_id)
        if not model:
            raise NotFoundError(f"Model '{model_id}' not found")
        return model

    async def list_models(self) -> list[TwinModel]:
        return await self.store.list_models()

    async def update_model(self, model_id: str, request: TwinModelUpdate) -> TwinModel:
        if request.id is not None and request.id != model_id:
            raise InvalidArgumentError(
                f"Model id '{request.id}' in payload does not match '{model_id}'"
            )
        _require_display_name(request.display_name)

        return await self.store.update_model(
            model_id, request.display_name, request.description, utcnow()
        )

    async def delete_model(self, model_id: str) -> None:
        await self.store.delete_model(model_id)
        logger.info("Deleted model %s", model_id)


_service = ModelRegistry()


def get_model_registry() -> ModelRegistry:
    return _service
