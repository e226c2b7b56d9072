"""HTTP signaling adapter."""
from __future__ import annotations

from typing import Any

import httpx

from adapters.signaling.base import SignalingAdapter
from constants import SIGNALING_CALL_PATH, SIGNALING_DEFAULT_TIMEOUT_S
from errors.kinds import ClassifiedError, TransportDetail, TransportErrorCause
from observability.logger import log_event
from orchestrator.profile import CapabilityProfile


NOISE_REDUCTION_TYPE = "near_field"


class HttpSignalingClient(SignalingAdapter):
    """
    Concrete signaling adapter: POSTs the offer SDP to {base_url}/rtc.

    Request body:
        {"sdp": <offer>, "session": {type, model, instructions, audio}}
    Response body:
        {"callId": ..., "sdpAnswer": <answer>, "status": ...}

    Design notes:
    - One adapter instance serves every negotiation of a session.
    - HTTP errors surface as httpx.HTTPStatusError so the coordinator
      classifies them as UPSTREAM_API failures.
    - A 2xx response without an answer is a transport SDP error.
    """

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        voice: str,
        instructions: str = "",
        api_key: str | None = None,
        timeout_s: float = SIGNALING_DEFAULT_TIMEOUT_S,
        session_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url:
                Signaling server root, without the call path.
            model / voice / instructions:
                Realtime session parameters forwarded to the server.
            api_key:
                Optional bearer token.
            transport:
                Optional httpx transport (tests use httpx.MockTransport).
        """
        self._url = base_url.rstrip("/") + SIGNALING_CALL_PATH
        self._model = model
        self._voice = voice
        self._instructions = instructions
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._session_id = session_id
        self._transport = transport
        self.last_call_id: str | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def exchange_offer(self, offer: str, profile: CapabilityProfile) -> str:
        payload = self.build_payload(offer)
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(
            timeout=self._timeout_s,
            transport=self._transport,
        ) as client:
            response = await client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()
            body: dict[str, Any] = response.json()

        answer = body.get("sdpAnswer")
        if not answer:
            raise ClassifiedError(
                TransportDetail(
                    cause=TransportErrorCause.SDP_ERROR,
                    details="signaling response carried no sdpAnswer",
                )
            )

        self.last_call_id = body.get("callId")
        log_event({
            "event_type": "SIGNALING_EXCHANGED",
            "session_id": self._session_id,
            "call_id": self.last_call_id,
            "status": body.get("status"),
            "video_mode": profile.video_mode.value,
            "answer_len": len(answer),
        })
        return answer

    def build_payload(self, offer: str) -> dict[str, Any]:
        return {
            "sdp": offer,
            "session": {
                "type": "realtime",
                "model": self._model,
                "instructions": self._instructions,
                "audio": {
                    "input": {
                        "noise_reduction": {
                            "type": NOISE_REDUCTION_TYPE,
                        },
                    },
                    "output": {"voice": self._voice},
                },
            },
        }
