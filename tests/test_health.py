
def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_metrics_endpoint(client):
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    body = response.text
    if "metrics_disabled" not in body:
        assert "http_requests_total" in body
        assert "transfer_transitions_total" in body
