import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.custody.core.logging import log_json
from app.custody.middleware.observability import build_request_log_payload


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/transfers/abc/approve",
        "headers": [],
        "route": SimpleNamespace(path="/transfers/{transfer_id}/approve"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.user_id = "user-1"
    request.state.error_code = "INVALID_TRANSITION"
    request.state.error_class = "AppError"
    response = Response(status_code=409)

    payload = build_request_log_payload(request=request, response=response, latency_ms=12.3456)

    assert payload["event"] == "http_request"
    assert payload["trace_id"] == "trace-1"
    assert payload["user_id"] == "user-1"
    assert payload["route"] == "/transfers/{transfer_id}/approve"
    assert payload["method"] == "POST"
    assert payload["status_code"] == 409
    assert payload["latency_ms"] == 12.35
    assert payload["error_code"] == "INVALID_TRANSITION"
    assert payload["error_class"] == "AppError"


def test_payload_without_response_reports_server_error():
    request = Request({"type": "http", "method": "GET", "path": "/transfers", "headers": []})

    payload = build_request_log_payload(request=request, response=None, latency_ms=1.0)

    assert payload["route"] == "/transfers"
    assert payload["status_code"] == 500
    assert payload["user_id"] is None


def test_log_json_emits_single_json_line(caplog):
    logger = logging.getLogger("custody.test")
    with caplog.at_level(logging.INFO, logger="custody.test"):
        log_json(logger, {"event": "transfer_created", "transfer_id": "t-1"})

    assert json.loads(caplog.records[-1].getMessage()) == {"event": "transfer_created", "transfer_id": "t-1"}
