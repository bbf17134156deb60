from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.custody.core.error_catalog import AppError, ErrorCatalog
from app.custody.core.errors import setup_exception_handlers
from app.custody.core.metrics import metrics


def _app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/lock-timeout")
    def lock_timeout():
        raise OperationalError("UPDATE transfers", {}, Exception("database is locked"))

    @app.get("/denied")
    def denied():
        raise AppError(ErrorCatalog.NOT_AUTHORIZED, details={"message": "nope"})

    return app


def test_lock_timeout_increments_metric():
    metrics.reset()

    with TestClient(_app(), raise_server_exceptions=False) as client:
        response = client.get("/lock-timeout")

    assert response.status_code == 409
    assert response.json()["code"] == "LOCK_TIMEOUT"

    content = metrics.render().content.decode("utf-8")
    if metrics.enabled:
        assert "lock_wait_timeout_total 1.0" in content
    else:
        assert "metrics_disabled" in content


def test_authorization_denial_increments_metric():
    metrics.reset()

    with TestClient(_app()) as client:
        response = client.get("/denied")

    assert response.status_code == 403
    assert response.json()["details"] == {"message": "nope"}

    content = metrics.render().content.decode("utf-8")
    if metrics.enabled:
        assert "rbac_denied_total 1.0" in content
