"""Classification of transport failures seen through a proxy tunnel."""
from __future__ import annotations

import asyncio
from typing import Optional

import aiohttp
from aiohttp_socks import ProxyError

from ..exceptions import TunnelError
from ..models import TestError

STAGE_VALIDATION = "validation"
STAGE_DNS = "dns"
STAGE_CONNECT = "connect"
STAGE_HANDSHAKE = "handshake"
STAGE_TRANSFER = "transfer"

ERROR_INVALID_CONFIG = "INVALID_CONFIG"
ERROR_DNS_RESOLUTION = "DNS_RESOLUTION_FAILED"
ERROR_CONNECTION_REFUSED = "CONNECTION_REFUSED"
ERROR_CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
ERROR_HANDSHAKE_TIMEOUT = "HANDSHAKE_TIMEOUT"
ERROR_PROTOCOL = "PROTOCOL_ERROR"
ERROR_AUTH_FAILED = "AUTHENTICATION_FAILED"
ERROR_TRANSFER_TIMEOUT = "TRANSFER_TIMEOUT"
ERROR_UNKNOWN = "UNKNOWN_ERROR"

# Anything that means the proxy could not carry a request. SOCKS reply
# errors from aiohttp_socks derive from plain Exception.
TRANSPORT_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    ProxyError,
    TunnelError,
)

# Checked in order; the first rule with a matching marker wins.
_RULES = (
    (
        ("no such host", "dns", "name or service not known", "nodename nor servname",
         "temporary failure in name resolution", "getaddrinfo"),
        STAGE_DNS,
        ERROR_DNS_RESOLUTION,
    ),
    (("connection refused", "connect call failed"), STAGE_CONNECT, ERROR_CONNECTION_REFUSED),
    (("timeout on reading data",), STAGE_TRANSFER, ERROR_TRANSFER_TIMEOUT),
    (
        ("connection timed out", "i/o timeout", "connection timeout", "timeouterror"),
        STAGE_CONNECT,
        ERROR_CONNECTION_TIMEOUT,
    ),
    (("handshake", "tls", "certificate", "sslerror"), STAGE_HANDSHAKE, ERROR_HANDSHAKE_TIMEOUT),
    (("auth",), STAGE_HANDSHAKE, ERROR_AUTH_FAILED),
    (("protocol", "unexpected"), STAGE_HANDSHAKE, ERROR_PROTOCOL),
    (("read", "write", "transfer", "payload"), STAGE_TRANSFER, ERROR_TRANSFER_TIMEOUT),
)


def describe_error(exc: BaseException) -> str:
    """Return a readable message even for exceptions with empty ``str()``."""
    text = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


def analyze_error(
    exc: Optional[BaseException], proxy_name: str, default_stage: str
) -> Optional[TestError]:
    """Classify ``exc`` by the markers in its message."""
    if exc is None:
        return None

    message = describe_error(exc)
    lowered = message.lower()
    stage, code = default_stage, ERROR_UNKNOWN
    for markers, rule_stage, rule_code in _RULES:
        if any(marker in lowered for marker in markers):
            stage, code = rule_stage, rule_code
            break
    return TestError(stage=stage, code=code, message=message, proxy_name=proxy_name)
