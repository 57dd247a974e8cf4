"""FastAPI server exposing the player over HTTP and WebSocket.

``create_app`` is the composition root: it builds the transport, the
session lifecycle, the executor, cache and translator, and hands the
multiplexer to every route. The lifespan makes the initial connection
attempt and runs the periodic reconnect check.

    GET  /health            -> {"status": "ok", "connection": {...}}
    GET  /status            -> player status                  (token)
    GET  /control           <- ?action=next&value=            (token)
    GET  /api               -> endpoint and command reference
    GET  /api/status        -> uptime, WebSocket clients
    GET  /api/stats         -> clients, memory, uptime
    GET  /api/network       -> hostname, local addresses
    GET  /api/ip            -> public address
    GET  /config            -> server / automation summary
    GET  /qr/local          -> LAN connection descriptor + QR
    GET  /qr/global         -> public connection descriptor + QR
    WS   /ws?token=         <- {"command": "next"} / {"type": "ping"}
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import secrets
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tuneremote import __version__
from tuneremote.commands.translator import CommandTranslator
from tuneremote.config.settings import Settings
from tuneremote.domain.models import CommandOutcome, PlayerStatus
from tuneremote.server.multiplexer import ACTION_ALIASES, RequestMultiplexer, UnknownCommandError
from tuneremote.server.network import (
    connection_descriptor,
    get_network_info,
    get_public_ip,
    process_memory,
    qr_data_uri,
)
from tuneremote.session.cache import ResultCache
from tuneremote.session.executor import ExpressionExecutor
from tuneremote.session.lifecycle import SessionLifecycle
from tuneremote.transport.base import AutomationTransport

logger = logging.getLogger(__name__)

MOBILE_UA = re.compile(r"Mobile|Android|iPhone|iPad|iPod", re.IGNORECASE)


class HealthResponse(BaseModel):
    status: str = "ok"
    connection: dict[str, Any]


class ControlResponse(BaseModel):
    action: str
    success: bool
    detail: str | None = None


ENDPOINTS: dict[str, str] = {
    "GET /health": "Liveness and player connection state",
    "GET /api": "This reference",
    "GET /api/ip": "Public IP address",
    "GET /api/status": "Server status",
    "GET /api/stats": "Client count, memory and uptime",
    "GET /api/network": "Host name and local addresses",
    "GET /qr/local": "QR code for the local network",
    "GET /qr/global": "QR code for access over the internet",
    "GET /config": "Server configuration summary",
    "GET /status?token=TOKEN": "Player status",
    "GET /control?action=ACTION&value=VALUE&token=TOKEN": "Player control",
    "WS /ws?token=TOKEN": "WebSocket control channel",
}

VALUE_HINTS = {"volume": "volume?value=PERCENT", "seek": "seek?value=SECONDS"}


def _command_reference() -> dict[str, list[str]]:
    """Client action names grouped by the command they run."""
    groups: dict[str, list[str]] = {}
    for alias, (name, _) in ACTION_ALIASES.items():
        groups.setdefault(name.value, []).append(VALUE_HINTS.get(alias, alias))
    return groups


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _outcome_payload(command: str, outcome: CommandOutcome | PlayerStatus) -> dict[str, Any]:
    if isinstance(outcome, PlayerStatus):
        return {"command": command, **outcome.model_dump(mode="json")}
    return {"command": command, "success": outcome.success, "detail": outcome.detail}


def create_app(
    settings: Settings | None = None,
    transport: AutomationTransport | None = None,
    lifecycle: SessionLifecycle | None = None,
    translator: CommandTranslator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings. Defaults are used when omitted.
        transport: Automation transport (for testing). A CDP transport is
            created when omitted.
        lifecycle: Pre-built session lifecycle (for testing).
        translator: Pre-built command translator (for testing).
    """
    settings = settings or Settings()
    auto = settings.automation

    if lifecycle is None:
        if transport is None:
            from tuneremote.transport.cdp import CdpTransport

            transport = CdpTransport(timeout=auto.evaluate_timeout)
        lifecycle = SessionLifecycle(
            transport,
            host=auto.endpoint_host,
            port=auto.endpoint_port,
            reconnect_base_delay=auto.reconnect_base_delay_ms / 1000,
            max_reconnect_attempts=auto.max_reconnect_attempts,
            auto_connect=auto.auto_connect,
        )
    if translator is None:
        translator = CommandTranslator(
            ExpressionExecutor(lifecycle),
            lifecycle,
            ResultCache(duration=auto.cache_duration_ms / 1000),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        lc: SessionLifecycle = app.state.lifecycle
        if auto.auto_connect:
            if await lc.connect():
                logger.info("Ready to control the player")
        app.state.watch_task = asyncio.create_task(lc.watch(auto.reconnect_check_interval))
        logger.info("Server started on %s:%d", settings.server.host, settings.server.port)
        yield
        app.state.watch_task.cancel()
        try:
            await app.state.watch_task
        except asyncio.CancelledError:
            pass
        await lc.close()
        logger.info("Server stopped")

    app = FastAPI(
        title="tuneremote",
        description="Remote control for a desktop music player",
        version=__version__,
        lifespan=lifespan,
    )

    # Remote pages are served from other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Save-Data"],
    )

    app.state.settings = settings
    app.state.lifecycle = lifecycle
    app.state.multiplexer = RequestMultiplexer(translator)
    app.state.ws_clients = set()
    app.state.started_at = time.monotonic()

    expected_token = settings.auth_token.get_secret_value()

    def _token_ok(token: str | None) -> bool:
        return token is not None and secrets.compare_digest(token, expected_token)

    def require_token(request: Request) -> None:
        token = request.query_params.get("token")
        if token is None:
            auth = request.headers.get("authorization", "")
            if auth.startswith("Bearer "):
                token = auth[len("Bearer "):]
        if not _token_ok(token):
            raise HTTPException(status_code=401, detail="Unauthorized")

    async def _public_ip() -> str | None:
        return await get_public_ip(
            settings.server.public_ip_services,
            timeout=settings.server.public_ip_timeout,
        )

    # -- Player --------------------------------------------------------------

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(connection=app.state.lifecycle.snapshot())

    @app.get("/status", dependencies=[Depends(require_token)])
    async def player_status() -> dict[str, Any]:
        mux: RequestMultiplexer = app.state.multiplexer
        status = await mux.query_status()
        return status.model_dump(mode="json")

    @app.get("/control", dependencies=[Depends(require_token)])
    async def control(action: str, value: str | None = None) -> Any:
        mux: RequestMultiplexer = app.state.multiplexer
        try:
            outcome = await mux.execute(action, value)
        except UnknownCommandError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        if isinstance(outcome, PlayerStatus):
            return outcome.model_dump(mode="json")
        return ControlResponse(action=action, success=outcome.success, detail=outcome.detail)

    # -- Service information ---------------------------------------------------

    @app.get("/api/status")
    async def service_status() -> dict[str, Any]:
        return {
            "status": "running",
            "version": __version__,
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "clients": len(app.state.ws_clients),
            "connection": app.state.lifecycle.snapshot(),
            "timestamp": _now_iso(),
        }

    @app.get("/api")
    async def api_reference() -> dict[str, Any]:
        return {
            "name": "tuneremote",
            "version": __version__,
            "endpoints": ENDPOINTS,
            "commands": _command_reference(),
            "authentication": {
                "method": "token query parameter or Authorization: Bearer header",
                "example": "/status?token=<token>",
            },
        }

    @app.get("/api/stats")
    async def service_stats() -> dict[str, Any]:
        return {
            "clients": len(app.state.ws_clients),
            "memory": process_memory(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "timestamp": _now_iso(),
        }

    @app.get("/api/network")
    async def network() -> dict[str, Any]:
        return get_network_info()

    @app.get("/api/ip")
    async def public_ip() -> dict[str, Any]:
        return {"ip": await _public_ip(), "timestamp": _now_iso()}

    @app.get("/config")
    async def config_summary() -> dict[str, Any]:
        info = get_network_info()
        return {
            "server": {
                "name": "tuneremote",
                "version": __version__,
                "hostname": info["hostname"],
                "platform": info["platform"],
            },
            "network": {
                "local_ips": info["local_ips"],
                "port": settings.server.port,
            },
            "automation": {
                **app.state.lifecycle.snapshot(),
                "cache_duration_ms": auto.cache_duration_ms,
                "reconnect_base_delay_ms": auto.reconnect_base_delay_ms,
            },
            "features": {
                "websocket": True,
                "qr_codes": True,
                "auto_reconnect": auto.auto_connect,
            },
        }

    @app.get("/qr/local")
    async def qr_local() -> dict[str, Any]:
        ips = get_network_info()["local_ips"]
        host = ips[0] if ips else "localhost"
        descriptor = connection_descriptor(host, settings.server.port, expected_token, "local")
        return {"qr": qr_data_uri(descriptor), "config": descriptor, "url": descriptor["server"]}

    @app.get("/qr/global")
    async def qr_global() -> dict[str, Any]:
        ip = await _public_ip()
        if not ip:
            raise HTTPException(
                status_code=400,
                detail="Public IP not found; configure port forwarding on the router",
            )
        descriptor = connection_descriptor(ip, settings.server.port, expected_token, "worldwide")
        return {"qr": qr_data_uri(descriptor), "config": descriptor, "url": descriptor["server"]}

    # -- WebSocket ---------------------------------------------------------------

    @app.websocket("/ws")
    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        if not _token_ok(websocket.query_params.get("token")):
            logger.warning("Rejected WebSocket client with a bad token")
            await websocket.close(code=1008, reason="Unauthorized")
            return

        client_host = websocket.client.host if websocket.client else "unknown"
        user_agent = websocket.headers.get("user-agent", "unknown")
        client_info = {
            "ip": client_host,
            "user_agent": user_agent,
            "mobile": bool(MOBILE_UA.search(user_agent)),
            "connected_at": _now_iso(),
        }
        app.state.ws_clients.add(websocket)
        logger.info("WebSocket client connected: %s", client_host)

        try:
            await websocket.send_json({
                "type": "welcome",
                "server": f"tuneremote {__version__}",
                "connected": app.state.lifecycle.is_connected,
                "client": client_info,
                "timestamp": _now_iso(),
            })
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    raw = (frame.get("bytes") or b"").decode("utf-8", errors="replace")
                try:
                    reply = await _handle_message(raw)
                except Exception as e:
                    logger.error("WebSocket message from %s failed: %s", client_host, e)
                    reply = {"error": str(e)}
                await websocket.send_json(reply)
        except WebSocketDisconnect:
            pass
        finally:
            app.state.ws_clients.discard(websocket)
            logger.info("WebSocket client disconnected: %s", client_host)

    async def _handle_message(raw: str) -> dict[str, Any]:
        try:
            message = json.loads(raw)
        except ValueError:
            return {"error": "Invalid message format"}
        if not isinstance(message, dict):
            return {"error": "Invalid message format"}

        if message.get("type") == "ping":
            return {"type": "pong", "timestamp": int(time.time() * 1000), "server_time": _now_iso()}

        command = message.get("command")
        if command == "info":
            return {
                "command": "info",
                "server": {
                    "version": __version__,
                    "uptime": round(time.monotonic() - app.state.started_at, 3),
                    "clients": len(app.state.ws_clients),
                    "public_ip": await _public_ip(),
                },
                "connection": app.state.lifecycle.snapshot(),
            }
        if not isinstance(command, str):
            return {"error": "Unknown command", "received": message}

        mux: RequestMultiplexer = app.state.multiplexer
        try:
            outcome = await mux.execute(command, message.get("value"))
        except UnknownCommandError:
            return {"error": "Unknown command", "received": message}
        return _outcome_payload(command, outcome)

    return app


def main() -> None:
    """Entry point for running the server standalone."""
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
