"""Automation transport module for tuneremote.

Wraps the player's remote debugging endpoint behind a small interface:
connect, enable domains, evaluate, observe disconnects.

Public API:
    AutomationTransport -- Abstract connection factory
    TransportHandle -- Abstract live connection
    CdpTransport -- Chrome DevTools Protocol backend
"""

from tuneremote.transport.base import (
    AutomationTransport,
    TransportConnectionRefused,
    TransportError,
    TransportHandle,
)

__all__ = [
    "AutomationTransport",
    "TransportConnectionRefused",
    "TransportError",
    "TransportHandle",
    "CdpTransport",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "CdpTransport":
        from tuneremote.transport.cdp import CdpTransport
        return CdpTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
