def test_ready(client):
    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["trace_id"]


def test_ready_echoes_incoming_trace_id(client):
    response = client.get("/ready", headers={"X-Trace-ID": "trace-ready-1"})
    assert response.status_code == 200
    assert response.json()["trace_id"] == "trace-ready-1"
    assert response.headers["X-Trace-ID"] == "trace-ready-1"
