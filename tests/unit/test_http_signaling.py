# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import httpx
import pytest

from adapters.signaling.http_signaling import HttpSignalingClient
from errors.classify import classify_exception
from errors.kinds import ClassifiedError, ErrorKind, TransportErrorCause
from orchestrator.enums.capability import VideoMode
from orchestrator.profile import CapabilityProfile


def client(handler, *, api_key=None) -> HttpSignalingClient:
    return HttpSignalingClient(
        base_url="http://signal.test/",
        model="gpt-realtime",
        voice="marin",
        instructions="be brief",
        api_key=api_key,
        session_id="sess_test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_exchange_posts_offer_and_returns_answer():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"callId": "call_1", "sdpAnswer": "v=0 answer", "status": "created"},
        )

    signaling = client(handler, api_key="secret")

    answer = await signaling.exchange_offer(
        "v=0 offer", CapabilityProfile(video_mode=VideoMode.WEBCAM)
    )

    assert answer == "v=0 answer"
    assert signaling.last_call_id == "call_1"

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://signal.test/rtc"
    assert request.headers["Authorization"] == "Bearer secret"

    body = json.loads(request.content)
    assert body["sdp"] == "v=0 offer"
    assert body["session"]["model"] == "gpt-realtime"
    assert body["session"]["instructions"] == "be brief"
    assert body["session"]["audio"]["output"] == {"voice": "marin"}
    assert body["session"]["audio"]["input"]["noise_reduction"] == {"type": "near_field"}


@pytest.mark.asyncio
async def test_no_authorization_header_without_key():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"sdpAnswer": "v=0 answer"})

    await client(handler).exchange_offer("v=0 offer", CapabilityProfile())

    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_missing_answer_is_sdp_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"callId": "call_1"})

    with pytest.raises(ClassifiedError) as exc_info:
        await client(handler).exchange_offer("v=0 offer", CapabilityProfile())

    record = classify_exception(exc_info.value, ts_ms=0)
    assert record.kind is ErrorKind.TRANSPORT_NEGOTIATION
    assert record.detail.cause is TransportErrorCause.SDP_ERROR


@pytest.mark.asyncio
async def test_http_error_status_is_raised_for_classification():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await client(handler).exchange_offer("v=0 offer", CapabilityProfile())

    record = classify_exception(exc_info.value, ts_ms=0)
    assert record.kind is ErrorKind.UPSTREAM_API
    assert record.detail.status_code == 503
    assert record.retryable
