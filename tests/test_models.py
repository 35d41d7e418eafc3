"""
Twin model registry tests.
"""

from datetime import datetime


def _ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_model_generates_id(client):
    """Model without an id gets a generated one and timestamps."""
    response = client.post(
        "/models",
        json={"display_name": "Thermostat", "description": "Room thermostat"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["id"].startswith("model-")
    assert data["display_name"] == "Thermostat"
    assert data["description"] == "Room thermostat"
    assert data["created_at"] == data["updated_at"]


def test_create_then_get_returns_same_model(client, unique_id):
    """Get returns what was created."""
    created = client.post(
        "/models",
        json={"id": f"dtmi:{unique_id}", "display_name": "Pump"},
    ).json()

    response = client.get(f"/models/dtmi:{unique_id}")

    assert response.status_code == 200
    fetched = response.json()
    assert fetched["id"] == created["id"]
    assert fetched["display_name"] == "Pump"
    assert fetched["description"] is None
    assert _ts(fetched["created_at"]) == _ts(created["created_at"])


def test_create_duplicate_id_conflicts(client, unique_id):
    """A second model with the same id is a conflict."""
    body = {"id": f"model-{unique_id}", "display_name": "Pump"}
    assert client.post("/models", json=body).status_code == 201

    response = client.post("/models", json=body)

    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


def test_create_requires_display_name(client):
    """Empty or missing display name is rejected."""
    assert client.post("/models", json={"display_name": ""}).status_code == 400
    assert client.post("/models", json={"display_name": "   "}).status_code == 400

    response = client.post("/models", json={})
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_argument"


def test_get_unknown_model(client):
    response = client.get("/models/missing")

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_list_models_ordered_by_id(client):
    """Listing is sorted by id regardless of creation order."""
    for model_id in ["model-c", "model-a", "model-b"]:
        client.post("/models", json={"id": model_id, "display_name": model_id})

    response = client.get("/models")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == ["model-a", "model-b", "model-c"]


def test_list_models_skips_malformed_row(client, raw_redis):
    """A corrupted stored model is left out instead of failing the listing."""
    client.post("/models", json={"id": "model-good", "display_name": "Good"})
    raw_redis.hset("twinhub:model:model-bad", mapping={"id": "model-bad"})
    raw_redis.zadd("twinhub:models", {"model-bad": 0})

    response = client.get("/models")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == ["model-good"]


def test_list_models_skips_undecodable_row(client, raw_redis):
    """A row that is not valid UTF-8 is skipped like any other malformed row."""
    client.post("/models", json={"id": "model-good", "display_name": "Good"})
    raw_redis.hset(
        "twinhub:model:model-bad",
        mapping={
            "id": "model-bad",
            "display_name": b"\xff\xfe",
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        },
    )
    raw_redis.zadd("twinhub:models", {"model-bad": 0})

    response = client.get("/models")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == ["model-good"]
    assert client.get("/models/model-bad").json()["kind"] == "internal"


def test_update_model(client, model_id):
    """Update replaces display name and description and keeps created_at."""
    original = client.get(f"/models/{model_id}").json()

    response = client.put(
        f"/models/{model_id}",
        json={"display_name": "Smart Thermostat", "description": "v2"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == model_id
    assert data["display_name"] == "Smart Thermostat"
    assert data["description"] == "v2"
    assert _ts(data["created_at"]) == _ts(original["created_at"])
    assert _ts(data["updated_at"]) >= _ts(original["updated_at"])


def test_update_model_replaces_description(client, unique_id):
    """Omitting description on update clears it."""
    model_id = f"model-{unique_id}"
    client.post(
        "/models",
        json={"id": model_id, "display_name": "Pump", "description": "old"},
    )

    response = client.put(f"/models/{model_id}", json={"display_name": "Pump"})

    assert response.status_code == 200
    assert response.json()["description"] is None
    assert client.get(f"/models/{model_id}").json()["description"] is None


def test_update_model_id_mismatch(client, model_id):
    response = client.put(
        f"/models/{model_id}",
        json={"id": "model-other", "display_name": "Renamed"},
    )

    assert response.status_code == 400
    assert client.get(f"/models/{model_id}").json()["display_name"] == "Thermostat"


def test_update_model_matching_id_accepted(client, model_id):
    response = client.put(
        f"/models/{model_id}",
        json={"id": model_id, "display_name": "Renamed"},
    )

    assert response.status_code == 200
    assert response.json()["display_name"] == "Renamed"


def test_update_model_rejects_created_at(client, model_id):
    """created_at is not an update input."""
    original = client.get(f"/models/{model_id}").json()

    response = client.put(
        f"/models/{model_id}",
        json={"display_name": "Renamed", "created_at": "2000-01-01T00:00:00Z"},
    )

    assert response.status_code == 422
    current = client.get(f"/models/{model_id}").json()
    assert current["display_name"] == "Thermostat"
    assert _ts(current["created_at"]) == _ts(original["created_at"])


def test_update_model_requires_display_name(client, model_id):
    response = client.put(f"/models/{model_id}", json={"display_name": ""})

    assert response.status_code == 400


def test_update_unknown_model(client):
    response = client.put("/models/missing", json={"display_name": "Ghost"})

    assert response.status_code == 404


def test_delete_unreferenced_model(client, model_id):
    """Deleting an unused model succeeds and it is gone afterwards."""
    response = client.delete(f"/models/{model_id}")

    assert response.status_code == 204
    assert client.get(f"/models/{model_id}").status_code == 404
    assert client.get("/models").json() == []


def test_delete_referenced_model_conflicts(client, model_id, twin_id):
    """A model with instances cannot be deleted."""
    response = client.delete(f"/models/{model_id}")

    assert response.status_code == 409
    assert client.get(f"/models/{model_id}").status_code == 200

    client.delete(f"/twins/{twin_id}")
    assert client.delete(f"/models/{model_id}").status_code == 204


def test_delete_unknown_model(client):
    response = client.delete("/models/missing")

    assert response.status_code == 404
