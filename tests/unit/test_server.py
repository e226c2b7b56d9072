# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from server.app import build_signaling, create_app, load_factory
from server.routes import WS_CLOSE_NO_FACTORY

from fakes import app_config, collaborators


def factory(config, session_id):
    return collaborators()


def test_health():
    client = TestClient(create_app(app_config(), factory))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_websocket_session_flow():
    client = TestClient(create_app(app_config(), factory))

    with client.websocket_connect("/ws") as ws:
        init = ws.receive_json()
        assert init["type"] == "SESSION_INIT"
        assert init["state"]["connection"] == "DISCONNECTED"

        ws.send_json({"type": "GET_STATE"})
        assert ws.receive_json()["type"] == "STATE"

        ws.send_json({"type": "START"})
        seen = []
        for _ in range(10):
            msg = ws.receive_json()
            seen.append(msg["type"])
            if msg["type"] == "START_RESULT":
                break

        assert "START_RESULT" in seen
        assert msg["ok"] is True
        assert msg["handle"]["session_id"] == init["session_id"]


def test_websocket_refused_without_factory():
    client = TestClient(create_app(app_config()))

    with client.websocket_connect("/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == WS_CLOSE_NO_FACTORY


def test_load_factory_validates_reference():
    assert load_factory("config:AppConfig") is not None

    with pytest.raises(ValueError):
        load_factory("no_colon")
    with pytest.raises(ValueError):
        load_factory("constants:MAX_RECOVERY_ATTEMPTS")


def test_build_signaling_uses_config():
    signaling = build_signaling(app_config(signaling_api_key="k"), "sess_1")

    payload = signaling.build_payload("v=0 offer")

    assert payload["sdp"] == "v=0 offer"
    assert payload["session"]["model"] == "gpt-realtime"
