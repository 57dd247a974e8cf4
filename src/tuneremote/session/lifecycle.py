"""Ownership of the single automation session.

:class:`SessionLifecycle` is the only object that touches the transport
handle. It connects on demand, enables the domains the player needs,
watches for disconnects, and schedules reconnects with a linear backoff
(base delay times attempt number) up to a fixed attempt ceiling. Once
the ceiling is hit the lifecycle rests in ``EXHAUSTED`` until a caller
asks for a session again.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any

from tuneremote.domain.models import ConnectionState
from tuneremote.transport.base import (
    AutomationTransport,
    TransportConnectionRefused,
    TransportHandle,
)

logger = logging.getLogger(__name__)


class Session:
    """A connected session. Only exposes expression evaluation."""

    def __init__(self, handle: TransportHandle) -> None:
        self._handle = handle

    async def evaluate(self, expression: str) -> Any:
        """Evaluate ``expression``, awaiting promises and returning a plain value."""
        return await self._handle.evaluate(expression, await_promise=True, return_by_value=True)


class SessionLifecycle:
    """Connect/disconnect state machine for the automation endpoint.

    States: DISCONNECTED -> CONNECTING -> CONNECTED, and back to
    DISCONNECTED on failure or disconnect. DISCONNECTED with no
    reconnect attempts left is reported as EXHAUSTED.
    """

    def __init__(
        self,
        transport: AutomationTransport,
        host: str = "localhost",
        port: int = 9222,
        reconnect_base_delay: float = 3.0,
        max_reconnect_attempts: int = 10,
        auto_connect: bool = True,
    ) -> None:
        self._transport = transport
        self._host = host
        self._port = port
        self._base_delay = reconnect_base_delay
        self._max_attempts = max_reconnect_attempts
        self._auto_connect = auto_connect

        self._state = ConnectionState.DISCONNECTED
        self._session: Session | None = None
        self._handle: TransportHandle | None = None
        self._attempts = 0
        self._reconnect_task: asyncio.Task | None = None
        self._connect_attempt: asyncio.Task | None = None
        self._connect_waiters = 0
        self._exhaustion_logged = False
        self._closed = False

    # -- Observers ---------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_exhausted(self) -> bool:
        return self._state is ConnectionState.EXHAUSTED

    @property
    def attempts(self) -> int:
        """Reconnect attempts made since the last successful connect."""
        return self._attempts

    @property
    def endpoint(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def snapshot(self) -> dict[str, Any]:
        """Read-only view of the connection for status endpoints."""
        return {
            "state": self._state.value,
            "connected": self.is_connected,
            "endpoint": self.endpoint,
            "reconnect_attempts": self._attempts,
            "max_reconnect_attempts": self._max_attempts,
            "reconnect_pending": self.reconnect_pending,
            "auto_connect": self._auto_connect,
        }

    # -- Lifecycle ---------------------------------------------------------

    async def connect(self) -> bool:
        """Make one connection attempt, or join the one already running.

        Callers that arrive while an attempt is in flight share its
        result, so concurrent callers never queue up extra attempts. On
        failure a reconnect is scheduled when auto-connect is enabled.
        Never raises, except when the caller itself is cancelled.
        """
        if self.is_connected:
            return True
        if self._closed:
            return False

        attempt = self._connect_attempt
        if attempt is None or attempt.done():
            attempt = asyncio.get_running_loop().create_task(self._attempt())
            self._connect_attempt = attempt

        self._connect_waiters += 1
        try:
            await asyncio.wait({attempt})
        except asyncio.CancelledError:
            # The last waiter leaving abandons the attempt
            if self._connect_waiters == 1 and not attempt.done():
                attempt.cancel()
            raise
        finally:
            self._connect_waiters -= 1

        if attempt.cancelled() or not attempt.result():
            if self._auto_connect:
                self.auto_reconnect()
            return False
        return True

    def auto_reconnect(self) -> None:
        """Schedule the next reconnect attempt, or give up past the ceiling.

        The delay grows linearly: attempt 1 waits one base delay,
        attempt 2 waits two, and so on.
        """
        if self._closed or self.is_connected or self.reconnect_pending:
            return
        if self._attempts >= self._max_attempts:
            self._state = ConnectionState.EXHAUSTED
            if not self._exhaustion_logged:
                self._exhaustion_logged = True
                logger.warning(
                    "Giving up on %s after %d reconnect attempts; waiting for a new request",
                    self.endpoint,
                    self._attempts,
                )
            return

        self._attempts += 1
        delay = self._base_delay * self._attempts
        logger.info(
            "Reconnect attempt %d/%d in %.1fs",
            self._attempts,
            self._max_attempts,
            delay,
        )
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._delayed_connect(delay)
        )

    async def get_session(self) -> Session | None:
        """Return the live session, or make one connection attempt.

        Callers get None when the attempt fails and must not retry on
        their own; the lifecycle owns the retry policy.
        """
        if self.is_connected and self._session is not None:
            return self._session
        if await self.connect():
            return self._session
        return None

    async def watch(self, interval: float) -> None:
        """Periodically reconnect while disconnected and auto-connect is on."""
        while True:
            await asyncio.sleep(interval)
            if self._auto_connect and not self.is_connected and not self.reconnect_pending:
                logger.info("Periodic reconnect check for %s", self.endpoint)
                await self.connect()

    async def close(self) -> None:
        """Stop reconnecting, abandon any running attempt and close the handle."""
        self._closed = True
        self._cancel_reconnect()
        attempt = self._connect_attempt
        if attempt is not None and not attempt.done():
            attempt.cancel()
            await asyncio.wait({attempt})
        handle = self._handle
        self._handle = None
        self._session = None
        self._state = ConnectionState.DISCONNECTED
        if handle is not None:
            await self._close_quietly(handle)
            logger.info("Closed player connection at %s", self.endpoint)

    # -- Internals ---------------------------------------------------------

    async def _attempt(self) -> bool:
        """One connection attempt. Only ever runs as the shared attempt task."""
        self._state = ConnectionState.CONNECTING
        logger.info("Connecting to player at %s", self.endpoint)
        handle: TransportHandle | None = None
        try:
            handle = await self._transport.connect(self._host, self._port)
            await handle.enable_domains()
        except asyncio.CancelledError:
            if handle is not None:
                await self._close_quietly(handle)
            self._state = ConnectionState.DISCONNECTED
            raise
        except Exception as e:
            if handle is not None:
                await self._close_quietly(handle)
            self._handle = None
            self._session = None
            self._state = ConnectionState.DISCONNECTED
            self._log_failure(e)
            return False

        if self._closed:
            await self._close_quietly(handle)
            self._state = ConnectionState.DISCONNECTED
            return False

        self._handle = handle
        self._session = Session(handle)
        handle.on_disconnect(functools.partial(self._on_disconnect, handle))
        self._attempts = 0
        self._exhaustion_logged = False
        self._state = ConnectionState.CONNECTED
        self._cancel_reconnect()
        logger.info("Connected to player at %s", self.endpoint)
        return True

    async def _delayed_connect(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Once due, this task no longer counts as pending; a failed
        # attempt below schedules the next one
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None
        await self.connect()

    def _on_disconnect(self, handle: TransportHandle) -> None:
        if handle is not self._handle:
            return
        logger.warning("Player connection at %s lost", self.endpoint)
        self._handle = None
        self._session = None
        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self.auto_reconnect()

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        if task is not None and not task.done():
            task.cancel()
        self._reconnect_task = None

    def _log_failure(self, error: Exception) -> None:
        # Once exhausted, on-demand attempts fail quietly
        quiet = self._exhaustion_logged
        if isinstance(error, TransportConnectionRefused):
            logger.log(
                logging.DEBUG if quiet else logging.WARNING,
                "Could not connect to the player at %s. Make sure it was started with "
                "--remote-debugging-port=%d --remote-debugging-address=0.0.0.0",
                self.endpoint,
                self._port,
            )
        else:
            logger.log(
                logging.DEBUG if quiet else logging.ERROR,
                "Connection to %s failed: %s",
                self.endpoint,
                error,
            )

    @staticmethod
    async def _close_quietly(handle: TransportHandle) -> None:
        try:
            await handle.close()
        except Exception as e:
            logger.debug("Error while closing handle: %s", e)
