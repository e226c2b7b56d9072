"""
Exception classification at the coordinator boundary.

Responsibilities:
- Convert any exception raised by a collaborator into an ErrorRecord
- Never raise: an unrecognized exception falls back to the caller's
  default kind with an UNKNOWN cause

Non-responsibilities:
- No recovery decisions
- No logging
"""

from __future__ import annotations

import asyncio
import re
import socket
import ssl

import httpx

from errors.kinds import (
    AudioDeviceDetail,
    CameraDetail,
    ClassifiedError,
    ErrorDetail,
    ErrorKind,
    NetworkDetail,
    NetworkErrorCause,
    PermissionDetail,
    PermissionType,
    ScreenCaptureDetail,
    ServiceDetail,
    TransportDetail,
    UpstreamApiDetail,
)
from errors.records import ErrorRecord, make_error_record


# Keyword rules are evaluated in order; first whole-word hit wins.
_KEYWORD_RULES: tuple[tuple[re.Pattern[str], ErrorKind], ...] = tuple(
    (re.compile(r"\b(" + "|".join(words) + r")\b"), kind)
    for words, kind in (
        (("network", "connection", "host"), ErrorKind.NETWORK),
        (("permission", "security"), ErrorKind.PERMISSION),
        (("webrtc", "peer", "sdp", "ice"), ErrorKind.TRANSPORT_NEGOTIATION),
        (("audio", "microphone"), ErrorKind.AUDIO_DEVICE),
        (("camera",), ErrorKind.CAMERA),
        (("screen", "capture"), ErrorKind.SCREEN_CAPTURE),
    )
)


def classify_exception(
    exc: BaseException,
    *,
    ts_ms: int,
    default_kind: ErrorKind = ErrorKind.TRANSPORT_NEGOTIATION,
    service_name: str = "signaling",
) -> ErrorRecord:
    """
    Classify an exception into an ErrorRecord.

    Args:
        exc: The caught exception.
        ts_ms: Occurrence timestamp for the record.
        default_kind: Kind used when nothing more specific matches.
        service_name: Service label for SERVICE fallbacks.
    """
    return make_error_record(
        _detail_for(exc, default_kind=default_kind, service_name=service_name),
        ts_ms=ts_ms,
    )


def _detail_for(
    exc: BaseException,
    *,
    default_kind: ErrorKind,
    service_name: str,
) -> ErrorDetail:
    if isinstance(exc, ClassifiedError):
        return exc.detail

    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamApiDetail(
            status_code=exc.response.status_code,
            message=exc.response.reason_phrase or str(exc),
            endpoint=str(exc.request.url),
        )

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return NetworkDetail(cause=NetworkErrorCause.TIMEOUT, details=str(exc) or None)

    if isinstance(exc, httpx.ConnectError):
        return NetworkDetail(
            cause=NetworkErrorCause.SERVER_UNREACHABLE,
            details=str(exc) or None,
        )

    if isinstance(exc, ssl.SSLError):
        return NetworkDetail(cause=NetworkErrorCause.SSL_ERROR, details=str(exc) or None)

    if isinstance(exc, socket.gaierror):
        return NetworkDetail(cause=NetworkErrorCause.DNS_FAILURE, details=str(exc) or None)

    if isinstance(exc, PermissionError):
        return PermissionDetail(permission=PermissionType.MICROPHONE)

    message = str(exc).lower()
    for pattern, kind in _KEYWORD_RULES:
        if pattern.search(message):
            return _unknown_detail(kind, str(exc), service_name)

    return _unknown_detail(default_kind, str(exc), service_name)


def _unknown_detail(kind: ErrorKind, message: str, service_name: str) -> ErrorDetail:
    details = message or None

    if kind is ErrorKind.NETWORK:
        return NetworkDetail(details=details)
    if kind is ErrorKind.PERMISSION:
        return PermissionDetail(permission=PermissionType.MICROPHONE)
    if kind is ErrorKind.AUDIO_DEVICE:
        return AudioDeviceDetail()
    if kind is ErrorKind.CAMERA:
        return CameraDetail()
    if kind is ErrorKind.SCREEN_CAPTURE:
        return ScreenCaptureDetail(details=details)
    if kind is ErrorKind.SERVICE:
        return ServiceDetail(service_name=service_name, reason=details)
    if kind is ErrorKind.UPSTREAM_API:
        return UpstreamApiDetail(status_code=0, message=message)

    return TransportDetail(details=details)
