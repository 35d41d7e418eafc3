import uuid

import fakeredis
import pytest
from fastapi.testclient import TestClient

from twinhub.core import redis_client
from twinhub.main import app


@pytest.fixture(scope="function", autouse=True)
def redis_server():
    """Fresh in-memory Redis for each test."""
    server = fakeredis.FakeServer()
    redis_client.set_redis_client(fakeredis.FakeAsyncRedis(server=server))

    yield server

    redis_client.set_redis_client(None)


@pytest.fixture
def raw_redis(redis_server):
    """Synchronous handle on the same data, for planting rows directly."""
    return fakeredis.FakeRedis(server=redis_server)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def unique_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture
def model_id(client, unique_id):
    response = client.post(
        "/models", json={"id": f"model-{unique_id}", "display_name": "Thermostat"}
    )
    return response.json()["id"]


@pytest.fixture
def twin_id(client, model_id):
    response = client.post("/twins", json={"model_id": model_id})
    return response.json()["id"]
