"""API integration tests: HTTP contract of /qr, /save, /send and /status.

Uses the FastAPI ``TestClient`` with the orchestrator functions mocked so
no browser is launched.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from zalobridge import orchestrator
from zalobridge.api.app import create_app
from zalobridge.browser.messenger import NOT_LOGGED_IN, SendResult
from zalobridge.exceptions import (
    BrowserLaunchError,
    OperationTimeoutError,
    QRCodeNotFoundError,
    SelectorNotFoundError,
    TargetNotFoundError,
)

pytestmark = pytest.mark.integration

API_KEY = "test-secret"


@pytest.fixture()
def client(monkeypatch):
    """Fresh TestClient with a known API key."""
    monkeypatch.setenv("ZB_API__API_KEY", API_KEY)
    with TestClient(create_app(), raise_server_exceptions=False) as c:
        yield c


def _send(client: TestClient, body, **kwargs):
    headers = kwargs.pop("headers", {"x-api-key": API_KEY})
    return client.post("/send", json=body, headers=headers, **kwargs)


# ---------------------------------------------------------------------------
# Health / status
# ---------------------------------------------------------------------------


class TestHealthAndStatus:

    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_status_without_browser(self, client: TestClient) -> None:
        resp = client.get("/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["browser_running"] is False


# ---------------------------------------------------------------------------
# /qr and /save
# ---------------------------------------------------------------------------


class TestQr:

    def test_returns_data_url(self, client: TestClient) -> None:
        with patch.object(orchestrator, "request_qr", AsyncMock(return_value="data:image/png;base64,AA==")):
            resp = client.get("/qr")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "qr": "data:image/png;base64,AA=="}

    def test_no_qr_is_500_envelope(self, client: TestClient) -> None:
        with patch.object(orchestrator, "request_qr", AsyncMock(side_effect=QRCodeNotFoundError())):
            resp = client.get("/qr")
        assert resp.status_code == 500
        assert resp.json()["ok"] is False
        assert "UI may have changed" in resp.json()["error"]

    def test_browser_launch_failure_is_500(self, client: TestClient) -> None:
        with patch.object(orchestrator, "request_qr", AsyncMock(side_effect=BrowserLaunchError("no chromium"))):
            resp = client.get("/qr")
        assert resp.status_code == 500
        assert "no chromium" in resp.json()["error"]


class TestSave:

    def test_save_reports_count(self, client: TestClient) -> None:
        with patch.object(orchestrator, "save_session", AsyncMock(return_value=7)):
            resp = client.get("/save")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "message": "Saved cookies", "count": 7}

    def test_save_without_browser_is_409(self, client: TestClient) -> None:
        resp = client.get("/save")
        assert resp.status_code == 409
        assert resp.json()["ok"] is False


# ---------------------------------------------------------------------------
# /send
# ---------------------------------------------------------------------------


class TestSendAuth:

    def test_missing_key_is_401(self, client: TestClient) -> None:
        resp = _send(client, {"target": "0911234567", "message": "hi"}, headers={})
        assert resp.status_code == 401
        assert resp.json() == {"ok": False, "error": "Unauthorized"}

    def test_wrong_key_is_401(self, client: TestClient) -> None:
        resp = _send(client, {"target": "0911234567", "message": "hi"}, headers={"x-api-key": "nope"})
        assert resp.status_code == 401

    def test_query_parameter_key_accepted(self, client: TestClient) -> None:
        ok = SendResult(ok=True, target="0911234567", strategy="search_result")
        with patch.object(orchestrator, "deliver_message", AsyncMock(return_value=ok)):
            resp = client.post(f"/send?api_key={API_KEY}", json={"target": "0911234567", "message": "hi"})
        assert resp.status_code == 200


class TestSendValidation:

    @pytest.mark.parametrize(
        "body",
        [{}, {"target": "0911234567"}, {"message": "hi"}, {"target": "", "message": "hi"}, {"target": "x", "message": ""}],
    )
    def test_missing_fields_are_400_without_automation(self, client: TestClient, body) -> None:
        with patch.object(orchestrator, "send_message", AsyncMock()) as protocol:
            resp = _send(client, body)
        assert resp.status_code == 400
        assert resp.json()["ok"] is False
        protocol.assert_not_awaited()

    def test_numeric_target_accepted(self, client: TestClient) -> None:
        ok = SendResult(ok=True, target="911234567")
        with patch.object(orchestrator, "deliver_message", AsyncMock(return_value=ok)) as deliver:
            resp = _send(client, {"target": 911234567, "message": "hi"})
        assert resp.status_code == 200
        assert deliver.await_args.args[0] == "911234567"

    def test_numeric_message_accepted(self, client: TestClient) -> None:
        ok = SendResult(ok=True, target="0911234567")
        with patch.object(orchestrator, "deliver_message", AsyncMock(return_value=ok)) as deliver:
            resp = _send(client, {"target": "0911234567", "message": 5})
        assert resp.status_code == 200
        assert deliver.await_args.args[1] == "5"

    def test_oversized_body_is_413(self, client: TestClient) -> None:
        resp = client.post(
            "/send",
            content=b" " * (10 * 1024 * 1024 + 1),
            headers={"x-api-key": API_KEY, "content-type": "application/json"},
        )
        assert resp.status_code == 413
        assert resp.json()["ok"] is False

    def test_streamed_oversized_body_is_413(self, monkeypatch) -> None:
        monkeypatch.setenv("ZB_API__API_KEY", API_KEY)
        monkeypatch.setenv("ZB_API__MAX_BODY_BYTES", "100")

        def chunks():
            # No Content-Length: the body goes out chunked.
            yield b'{"target": "0911234567", "message": "'
            yield b"x" * 500
            yield b'"}'

        with patch.object(orchestrator, "deliver_message", AsyncMock()) as deliver:
            with TestClient(create_app(), raise_server_exceptions=False) as c:
                resp = c.post(
                    "/send",
                    content=chunks(),
                    headers={"x-api-key": API_KEY, "content-type": "application/json"},
                )

        assert resp.status_code == 413
        assert resp.json() == {"ok": False, "error": "Request body exceeds 100 bytes"}
        deliver.assert_not_awaited()

    def test_unknown_route_uses_envelope(self, client: TestClient) -> None:
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.json()["ok"] is False


class TestSendOutcomes:

    def test_success(self, client: TestClient) -> None:
        ok = SendResult(ok=True, target="0911234567", strategy="text_scan")
        with patch.object(orchestrator, "deliver_message", AsyncMock(return_value=ok)):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_not_logged_in_without_cookie_file(self, client: TestClient) -> None:
        """No cookie file and no login markers: the protocol reports NOT_LOGGED_IN."""

        async def not_logged_in(session, target, message):
            return SendResult(ok=False, target=target, error=NOT_LOGGED_IN)

        with patch.object(orchestrator, "send_message", AsyncMock(side_effect=not_logged_in)):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "NOT_LOGGED_IN"}

    def test_target_not_found_envelope(self, client: TestClient) -> None:
        with patch.object(orchestrator, "deliver_message", AsyncMock(side_effect=TargetNotFoundError("0911234567"))):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 500
        assert "0911234567" in resp.json()["error"]

    def test_selector_drift_envelope(self, client: TestClient) -> None:
        with patch.object(
            orchestrator, "deliver_message", AsyncMock(side_effect=SelectorNotFoundError("search box"))
        ):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 500
        assert "search box" in resp.json()["error"]

    def test_timeout_is_504(self, client: TestClient) -> None:
        with patch.object(
            orchestrator, "deliver_message", AsyncMock(side_effect=OperationTimeoutError("Sending message", 120))
        ):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 504

    def test_unexpected_error_is_500_envelope(self, client: TestClient) -> None:
        with patch.object(orchestrator, "deliver_message", AsyncMock(side_effect=RuntimeError("boom"))):
            resp = _send(client, {"target": "0911234567", "message": "hi"})
        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "boom"}
