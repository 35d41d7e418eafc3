import logging
import uuid
from typing import Any, Optional

from twinhub.core.clock import utcnow
from twinhub.core.errors import InvalidArgumentError, InvalidReferenceError, NotFoundError
from twinhub.models.twin import TwinCreate, TwinInstance, TwinUpdate
from twinhub.services.model_registry import get_model_registry
from twinhub.storage.twin_store import get_twin_store

logger = logging.getLogger(__name__)


class TwinRegistry:
    """Twin instances and their desired/reported property shadow.

    Reported properties only change through ``update_reported_properties``;
    the general update path has no way to reach them.
    """

    def __init__(self):
        self.store = get_twin_store()
        self.model_registry = get_model_registry()

    async def _resolve_model(self, model_id: str) -> None:
        if not model_id:
            raise InvalidArgumentError("model_id is required")
        try:
            await self.model_registry.get_model(model_id)
        except NotFoundError as exc:
            logger.warning("Rejected reference to unknown model %s", model_id)
            raise InvalidReferenceError(f"Model '{model_id}' does not exist") from exc

    async def create_twin(self, request: TwinCreate) -> TwinInstance:
        await self._resolve_model(request.model_id)

        now = utcnow()
        twin = TwinInstance(
            id=request.id or f"twin-{uuid.uuid4()}",
            model_id=request.model_id,
            reported_properties={},
            desired_properties=request.desired_properties or {},
            tags=request.tags or {},
            created_at=now,
            updated_at=now,
        )
        # The store re-checks the model atomically in case it vanished meanwhile.
        await self.store.create_twin(twin)

        logger.info("Created twin %s of model %s", twin.id, twin.model_id)
        return twin

    async def get_twin(self, twin_id: str) -> TwinInstance:
        twin = await self.store.get_twin(twin_id)
        if not twin:
            raise NotFoundError(f"Twin '{twin_id}' not found")
        return twin

    async def list_twins(self) -> list[TwinInstance]:
        return await self.store.list_twins()

    async def list_twins_by_model(self, model_id: str) -> list[TwinInstance]:
        return await self.store.list_twins(model_id=model_id)

    async def update_twin(self, twin_id: str, request: TwinUpdate) -> TwinInstance:
        if request.model_id is not None:
            await self._resolve_model(request.model_id)

        return await self.store.update_twin(
            twin_id,
            utcnow(),
            model_id=request.model_id,
            desired_properties=request.desired_properties,
            tags=request.tags,
        )

    async def update_reported_properties(
        self, twin_id: str, properties: Optional[dict[str, Any]]
    ) -> TwinInstance:
        return await self.store.set_reported_properties(
            twin_id, properties or {}, utcnow()
        )

    async def update_desired_properties(
        self, twin_id: str, properties: Optional[dict[str, Any]]
    ) -> TwinInstance:
        return await self.store.set_desired_properties(
            twin_id, properties or {}, utcnow()
        )

    async def update_tags(
        self, twin_id: str, tags: Optional[dict[str, str]]
    ) -> TwinInstance:
        return await self.store.set_tags(twin_id, tags or {}, utcnow())

    async def delete_twin(self, twin_id: str) -> None:
        await self.store.delete_twin(twin_id)
        logger.info("Deleted twin %s", twin_id)


_service = TwinRegistry()


def get_twin_registry() -> TwinRegistry:
    return _service
