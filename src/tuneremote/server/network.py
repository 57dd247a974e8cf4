"""Network and host helpers for connection descriptors.

Local address discovery, public IP lookup, process memory, and QR
codes that encode how a phone should reach this server.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import platform
import socket
import sys
from datetime import datetime, timezone
from typing import Any

import httpx
import qrcode
import qrcode.image.svg

logger = logging.getLogger(__name__)

DESCRIPTOR_TYPE = "tuneremote"


def get_local_ips() -> list[str]:
    """Return the non-loopback IPv4 addresses of this host."""
    addresses: list[str] = []
    try:
        # No packet is sent; connect() only picks the outbound interface
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("10.255.255.255", 1))
            addresses.append(s.getsockname()[0])
        finally:
            s.close()
    except OSError:
        pass
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            addr = info[4][0]
            if addr not in addresses:
                addresses.append(addr)
    except OSError:
        pass
    return [a for a in addresses if not a.startswith("127.")]


def process_memory() -> int | None:
    """Peak resident memory of this process in bytes; None where unsupported."""
    try:
        import resource
    except ImportError:
        # Not available on Windows
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes
    return peak if sys.platform == "darwin" else peak * 1024


def get_network_info() -> dict[str, Any]:
    return {
        "hostname": socket.gethostname(),
        "platform": platform.system().lower(),
        "local_ips": get_local_ips(),
    }


async def get_public_ip(services: list[str], timeout: float = 3.0) -> str | None:
    """Ask each service in turn for our public address; None if all fail."""
    async with httpx.AsyncClient(timeout=timeout) as client:
        for url in services:
            try:
                resp = await client.get(url)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.debug("Public IP lookup via %s failed: %s", url, e)
                continue
            ip = resp.text.strip()
            if ip:
                return ip
    logger.warning("Public IP not found; tried %d services", len(services))
    return None


def connection_descriptor(host: str, port: int, token: str, mode: str) -> dict[str, Any]:
    """Describe how a client reaches the HTTP and WebSocket endpoints."""
    return {
        "type": DESCRIPTOR_TYPE,
        "mode": mode,
        "server": f"http://{host}:{port}",
        "ws": f"ws://{host}:{port}/ws",
        "token": token,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def qr_data_uri(payload: dict[str, Any]) -> str:
    """Encode ``payload`` as JSON in an SVG QR code data URI."""
    qr = qrcode.QRCode(version=None, box_size=10, border=2)
    qr.add_data(json.dumps(payload, ensure_ascii=False))
    qr.make(fit=True)
    img = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
