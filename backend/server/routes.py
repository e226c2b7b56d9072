"""
Route registration for the coordinator API.

Responsibilities:
- Expose the liveness probe and the per-session control socket
- Bind one SessionGateway (and so one coordinator) to each socket
- Forward coordinator pushes to the client between requests
- Read config and the collaborator factory from app.state
"""

from __future__ import annotations

import asyncio
import json

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event
from session.gateway import GatewayResult, SessionGateway


# Policy violation: server has no collaborators to build sessions with.
WS_CLOSE_NO_FACTORY = 1011


def register_routes(app: FastAPI) -> None:
    """Register /health and the /ws control socket."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        factory = app.state.collaborator_factory
        if factory is None:
            log_event({
                "event_type": "COLLABORATOR_FACTORY_MISSING",
            })
            await ws.close(code=WS_CLOSE_NO_FACTORY)
            return

        gateway = SessionGateway(
            config=app.state.config,
            collaborator_factory=factory,
        )

        sender: asyncio.Task[None] | None = None
        reason = "client_disconnect"
        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result)

            sender = asyncio.create_task(_pump_outbound(ws, gateway))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result)

        except WebSocketDisconnect:
            pass

        except Exception as exc:  # pylint: disable=broad-exception-caught
            reason = "server_error"
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            if sender is not None:
                sender.cancel()
            await gateway.on_ws_disconnect(reason=reason)


async def _pump_outbound(ws: WebSocket, gateway: SessionGateway) -> None:
    """Forward messages pushed by the coordinator between client requests."""
    try:
        while True:
            result = await gateway.wait_outbound()
            await _flush_gateway_result(ws, result)
    except (WebSocketDisconnect, RuntimeError) as exc:
        log_event({
            "event_type": "WS_SEND_STOPPED",
            "session_id": gateway.session_id,
            "exception": type(exc).__name__,
        })


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
) -> None:
    for msg in result.outbound_json:
        await ws.send_text(json.dumps(msg))
