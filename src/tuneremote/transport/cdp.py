"""Chrome DevTools Protocol transport.

Finds the player's page target through the endpoint's ``/json`` listing
and talks JSON-RPC to it over the target's debugger WebSocket.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from tuneremote.transport.base import (
    AutomationTransport,
    DisconnectCallback,
    TransportConnectionRefused,
    TransportError,
    TransportHandle,
)

logger = logging.getLogger(__name__)


class CdpHandle(TransportHandle):
    """One debugger WebSocket attached to a page target."""

    def __init__(self, ws: Any, endpoint: str, timeout: float = 10.0) -> None:
        self._ws = ws
        self._endpoint = endpoint
        self._timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._callbacks: list[DisconnectCallback] = []
        self._closing = False
        self._recv_task = asyncio.get_running_loop().create_task(self._recv_loop())

    async def enable_domains(self) -> None:
        await asyncio.gather(
            self._call("Page.enable"),
            self._call("Runtime.enable"),
        )

    async def evaluate(
        self,
        expression: str,
        await_promise: bool = True,
        return_by_value: bool = True,
    ) -> Any:
        response = await self._call(
            "Runtime.evaluate",
            {
                "expression": expression,
                "awaitPromise": await_promise,
                "returnByValue": return_by_value,
            },
        )
        details = response.get("exceptionDetails")
        if details:
            exc = details.get("exception") or {}
            message = exc.get("description") or details.get("text") or "evaluation failed"
            raise TransportError(message, endpoint=self._endpoint)
        return (response.get("result") or {}).get("value")

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self._callbacks.append(callback)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        await self._ws.close()
        self._recv_task.cancel()
        try:
            await self._recv_task
        except asyncio.CancelledError:
            pass
        self._fail_pending("connection closed")

    async def _call(self, method: str, params: dict | None = None) -> dict:
        """Send one request and wait for the matching response."""
        if self._closing:
            raise TransportError("Connection is closed", endpoint=self._endpoint)
        msg_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await self._ws.send(json.dumps({"id": msg_id, "method": method, "params": params or {}}))
            return await asyncio.wait_for(future, timeout=self._timeout)
        except ConnectionClosed as e:
            raise TransportError(f"{method} failed: {e}", endpoint=self._endpoint) from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} timed out", endpoint=self._endpoint) from e
        finally:
            self._pending.pop(msg_id, None)

    async def _recv_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.debug("Ignoring non-JSON frame from %s", self._endpoint)
                    continue
                msg_id = msg.get("id")
                if msg_id is None:
                    # Domain event, nobody subscribes to these
                    continue
                future = self._pending.get(msg_id)
                if future is None or future.done():
                    continue
                if "error" in msg:
                    error = msg["error"]
                    future.set_exception(
                        TransportError(error.get("message", str(error)), endpoint=self._endpoint)
                    )
                else:
                    future.set_result(msg.get("result") or {})
        except ConnectionClosed:
            pass
        finally:
            if not self._closing:
                self._closing = True
                self._fail_pending("connection lost")
                for callback in self._callbacks:
                    try:
                        callback()
                    except Exception:
                        logger.exception("Disconnect callback failed")

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason, endpoint=self._endpoint))
        self._pending.clear()


class CdpTransport(AutomationTransport):
    """Connects to a Chromium remote debugging endpoint."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    async def connect(self, host: str, port: int) -> CdpHandle:
        endpoint = f"{host}:{port}"
        ws_url = await self._find_page_target(host, port)
        try:
            ws = await websockets.connect(ws_url, max_size=None, open_timeout=self._timeout)
        except OSError as e:
            raise TransportConnectionRefused(
                f"Debugger socket refused at {ws_url}: {e}", endpoint=endpoint
            ) from e
        except Exception as e:
            raise TransportError(f"Failed to open {ws_url}: {e}", endpoint=endpoint) from e
        logger.debug("Attached to page target %s", ws_url)
        return CdpHandle(ws, endpoint=endpoint, timeout=self._timeout)

    async def _find_page_target(self, host: str, port: int) -> str:
        """Return the debugger WebSocket URL of the first page target."""
        endpoint = f"{host}:{port}"
        try:
            async with httpx.AsyncClient(base_url=f"http://{endpoint}", timeout=self._timeout) as client:
                resp = await client.get("/json")
                resp.raise_for_status()
                targets = resp.json()
        except httpx.ConnectError as e:
            raise TransportConnectionRefused(
                f"Nothing listening at {endpoint}: {e}", endpoint=endpoint
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"Target listing failed: {e}", endpoint=endpoint) from e

        for target in targets:
            if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
                return target["webSocketDebuggerUrl"]
        raise TransportError("No page target exposed by the endpoint", endpoint=endpoint)
