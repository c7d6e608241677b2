"""Dialing HTTP traffic through configured proxies."""

from .client import create_client
from .dialers import BridgeFactory, CoreBridge, Dialer, DirectDialer, PortPool, SocksDialer
from .errors import analyze_error, describe_error
from .identity import ProxyIdentity, resolve_ip

__all__ = [
    "BridgeFactory",
    "CoreBridge",
    "Dialer",
    "DirectDialer",
    "PortPool",
    "ProxyIdentity",
    "SocksDialer",
    "analyze_error",
    "create_client",
    "describe_error",
    "resolve_ip",
]
