"""
End-to-end integration tests.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone


def test_thermostat_scenario(client):
    """Model, twin, desired state and telemetry working together."""
    model_response = client.post("/models", json={"display_name": "Thermostat"})
    assert model_response.status_code == 201
    model_id = model_response.json()["id"]

    twin_response = client.post("/twins", json={"model_id": model_id})
    assert twin_response.status_code == 201
    twin_id = twin_response.json()["id"]
    assert twin_response.json()["reported_properties"] == {}

    desired_response = client.put(
        f"/twins/{twin_id}/properties/desired", json={"setpoint": 21.5}
    )
    assert desired_response.status_code == 200

    twin = client.get(f"/twins/{twin_id}").json()
    assert twin["desired_properties"] == {"setpoint": 21.5}
    assert twin["reported_properties"] == {}

    t0 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    t1 = t0 + timedelta(seconds=60)
    for ts, value in ((t0, 20.1), (t1, 20.3)):
        response = client.post(
            f"/twins/{twin_id}/telemetry",
            json={"name": "temperature", "timestamp": ts.isoformat(), "numeric_value": value},
        )
        assert response.status_code == 202

    history = client.get(
        f"/twins/{twin_id}/telemetry/temperature",
        params={"start": t0.isoformat(), "end": t1.isoformat(), "order": "asc", "limit": 0},
    )
    assert history.status_code == 200
    assert [r["numeric_value"] for r in history.json()] == [20.1, 20.3]

    latest = client.get(f"/twins/{twin_id}/telemetry/latest").json()
    assert list(latest) == ["temperature"]
    assert latest["temperature"]["numeric_value"] == 20.3
    assert datetime.fromisoformat(
        latest["temperature"]["timestamp"].replace("Z", "+00:00")
    ) == t1

    assert client.delete(f"/models/{model_id}").status_code == 409
    assert client.delete(f"/twins/{twin_id}").status_code == 204
    assert client.delete(f"/models/{model_id}").status_code == 204


def test_concurrent_telemetry_ingestion(client, twin_id):
    """Concurrent writers to one series never lose a reading."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def send_telemetry(i):
        return client.post(
            f"/twins/{twin_id}/telemetry",
            json={
                "name": "temperature",
                "timestamp": (base + timedelta(seconds=i % 5)).isoformat(),
                "numeric_value": 25.0 + i,
            },
        )

    with ThreadPoolExecutor(max_workers=5) as executor:
        results = list(executor.map(send_telemetry, range(25)))

    assert all(r.status_code == 202 for r in results)
    history = client.get(
        f"/twins/{twin_id}/telemetry/temperature",
        params={"start": base.isoformat(), "end": (base + timedelta(seconds=5)).isoformat()},
    ).json()
    assert len(history) == 25
    timestamps = [r["timestamp"] for r in history]
    assert timestamps == sorted(timestamps)


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
