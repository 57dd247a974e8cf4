"""Tests for the SessionLifecycle state machine."""

from __future__ import annotations

import asyncio
import logging
import time

import pytest

from tuneremote.domain.models import ConnectionState
from tuneremote.session.lifecycle import Session, SessionLifecycle
from tuneremote.transport.base import TransportConnectionRefused, TransportError


async def _drain(lifecycle: SessionLifecycle) -> None:
    """Run scheduled reconnects until none is pending."""
    while lifecycle.reconnect_pending:
        await lifecycle._reconnect_task


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_success(self, fake_transport) -> None:
        """A successful connect enables domains and registers a disconnect observer."""
        lc = SessionLifecycle(fake_transport, host="player", port=9333)
        assert lc.state is ConnectionState.DISCONNECTED

        assert await lc.connect() is True

        assert lc.state is ConnectionState.CONNECTED
        assert lc.is_connected
        assert fake_transport.calls == [("player", 9333)]
        handle = fake_transport.handles[0]
        assert handle.enabled is True
        assert len(handle.callbacks) == 1
        assert lc.attempts == 0
        await lc.close()

    @pytest.mark.asyncio
    async def test_connect_when_connected_is_noop(self, fake_transport) -> None:
        """Connecting again while connected does not open a second handle."""
        lc = SessionLifecycle(fake_transport)
        await lc.connect()
        assert await lc.connect() is True
        assert len(fake_transport.calls) == 1
        await lc.close()

    @pytest.mark.asyncio
    async def test_refused_returns_false_with_hint(self, refusing_transport, caplog) -> None:
        """A refused connection logs the remote debugging flags to use."""
        lc = SessionLifecycle(refusing_transport, port=9222, auto_connect=False)
        with caplog.at_level(logging.WARNING, logger="tuneremote.session.lifecycle"):
            assert await lc.connect() is False
        assert lc.state is ConnectionState.DISCONNECTED
        assert not lc.reconnect_pending
        assert "--remote-debugging-port=9222" in caplog.text

    @pytest.mark.asyncio
    async def test_other_errors_are_not_fatal(self, fake_transport) -> None:
        """Any transport error is reported as a failed attempt."""
        fake_transport.default = TransportError("boom")
        lc = SessionLifecycle(fake_transport, auto_connect=False)
        assert await lc.connect() is False
        assert lc.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_enable_failure_closes_handle(self, fake_transport, handle_factory) -> None:
        """A handle whose domains cannot be enabled is closed again."""
        handle = handle_factory()
        handle.fail_enable = TransportError("Runtime.enable rejected")
        fake_transport.outcomes.append(handle)
        lc = SessionLifecycle(fake_transport, auto_connect=False)

        assert await lc.connect() is False
        assert handle.closed is True
        assert lc.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_failure_schedules_reconnect_when_auto(self, refusing_transport) -> None:
        """With auto-connect on, a failed attempt schedules the first reconnect."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=60.0)
        await lc.connect()
        assert lc.reconnect_pending
        assert lc.attempts == 1
        await lc.close()
        assert not lc.reconnect_pending


class SlowTransport:
    """Wraps a FakeTransport so every connect takes ``delay`` seconds."""

    def __init__(self, inner, delay: float) -> None:
        self.inner = inner
        self.delay = delay

    async def connect(self, host: str, port: int):
        await asyncio.sleep(self.delay)
        return await self.inner.connect(host, port)


class TestConcurrentConnect:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(self, refusing_transport) -> None:
        """Callers arriving during an attempt wait for it instead of queueing new ones."""
        lc = SessionLifecycle(SlowTransport(refusing_transport, 0.2), auto_connect=False)

        started = time.monotonic()
        results = await asyncio.gather(lc.get_session(), lc.get_session(), lc.get_session())
        elapsed = time.monotonic() - started

        assert results == [None, None, None]
        assert len(refusing_transport.calls) == 1
        assert elapsed < 0.35

    @pytest.mark.asyncio
    async def test_concurrent_success_is_shared(self, fake_transport) -> None:
        """Every waiter sees the session opened by the shared attempt."""
        lc = SessionLifecycle(SlowTransport(fake_transport, 0.05))

        first, second = await asyncio.gather(lc.get_session(), lc.get_session())

        assert first is not None
        assert first is second
        assert len(fake_transport.handles) == 1
        await lc.close()

    @pytest.mark.asyncio
    async def test_next_call_makes_a_fresh_attempt(self, refusing_transport) -> None:
        """A finished attempt is not reused by later callers."""
        lc = SessionLifecycle(refusing_transport, auto_connect=False)
        await lc.connect()
        await lc.connect()
        assert len(refusing_transport.calls) == 2


class HangingHandleTransport:
    """Hands out one handle whose domain enabling never finishes in time."""

    def __init__(self, handle) -> None:
        self.handle = handle

    async def connect(self, host: str, port: int):
        return self.handle


class TestCancellation:
    @pytest.fixture
    def hanging(self, handle_factory):
        handle = handle_factory()

        async def slow_enable() -> None:
            await asyncio.sleep(10)

        handle.enable_domains = slow_enable
        return handle

    @pytest.mark.asyncio
    async def test_cancelled_connect_closes_opened_handle(self, hanging) -> None:
        """Cancelling the only caller abandons the attempt and closes its handle."""
        lc = SessionLifecycle(HangingHandleTransport(hanging), auto_connect=False)

        task = asyncio.create_task(lc.connect())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

        assert hanging.closed is True
        assert lc.state is ConnectionState.DISCONNECTED
        assert not lc.is_connected

    @pytest.mark.asyncio
    async def test_close_during_connect(self, hanging) -> None:
        """close() abandons a running attempt; its caller gets a failed connect."""
        lc = SessionLifecycle(HangingHandleTransport(hanging))

        task = asyncio.create_task(lc.connect())
        await asyncio.sleep(0.05)
        await lc.close()

        assert await task is False
        assert hanging.closed is True
        assert lc.state is ConnectionState.DISCONNECTED
        assert not lc.reconnect_pending

    @pytest.mark.asyncio
    async def test_one_cancelled_waiter_does_not_abort_others(self, fake_transport) -> None:
        """The attempt keeps running while another caller still waits for it."""
        lc = SessionLifecycle(SlowTransport(fake_transport, 0.1))

        quitter = asyncio.create_task(lc.connect())
        stayer = asyncio.create_task(lc.connect())
        await asyncio.sleep(0.02)
        quitter.cancel()

        assert await stayer is True
        assert lc.is_connected
        await lc.close()


class TestAutoReconnect:
    @pytest.mark.asyncio
    async def test_linear_backoff(self, refusing_transport) -> None:
        """Each scheduled attempt waits one more base delay than the last."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=3.0, auto_connect=False)
        delays: list[float] = []

        async def record(delay: float) -> None:
            delays.append(delay)

        lc._delayed_connect = record  # type: ignore[method-assign]
        for _ in range(3):
            lc.auto_reconnect()
            await lc._reconnect_task

        assert delays == [3.0, 6.0, 9.0]
        assert lc.attempts == 3

    @pytest.mark.asyncio
    async def test_only_one_reconnect_pending(self, refusing_transport) -> None:
        """A second request while one reconnect is scheduled is ignored."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=60.0)
        lc.auto_reconnect()
        lc.auto_reconnect()
        assert lc.attempts == 1
        await lc.close()

    @pytest.mark.asyncio
    async def test_exhausts_after_max_attempts(self, refusing_transport) -> None:
        """After the attempt ceiling the lifecycle stops and reports exhaustion."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=0.0, max_reconnect_attempts=3)

        assert await lc.connect() is False
        await _drain(lc)

        # One initial attempt plus three scheduled ones
        assert len(refusing_transport.calls) == 4
        assert lc.attempts == 3
        assert lc.state is ConnectionState.EXHAUSTED
        assert lc.is_exhausted
        assert not lc.reconnect_pending

    @pytest.mark.asyncio
    async def test_get_session_after_exhaustion_tries_once(self, refusing_transport) -> None:
        """Once exhausted, each request makes exactly one attempt and schedules nothing."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=0.0, max_reconnect_attempts=2)
        await lc.connect()
        await _drain(lc)
        calls = len(refusing_transport.calls)

        assert await lc.get_session() is None

        assert len(refusing_transport.calls) == calls + 1
        assert not lc.reconnect_pending
        assert lc.state is ConnectionState.EXHAUSTED

    @pytest.mark.asyncio
    async def test_exhaustion_is_logged_once(self, refusing_transport, caplog) -> None:
        """Repeated requests after exhaustion do not repeat the warnings."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=0.0, max_reconnect_attempts=1)
        with caplog.at_level(logging.WARNING, logger="tuneremote.session.lifecycle"):
            await lc.connect()
            await _drain(lc)
            caplog.clear()
            for _ in range(3):
                await lc.get_session()

        assert lc.is_exhausted
        assert caplog.records == []

    @pytest.mark.asyncio
    async def test_exhaustion_warning_returns_after_recovery(self, refusing_transport, handle_factory, caplog) -> None:
        """A successful connect re-arms the exhaustion warning."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=0.0, max_reconnect_attempts=0)
        with caplog.at_level(logging.WARNING, logger="tuneremote.session.lifecycle"):
            await lc.connect()
            refusing_transport.outcomes.append(handle_factory())
            await lc.connect()
            refusing_transport.handles[0].drop()

        assert sum("Giving up" in r.getMessage() for r in caplog.records) == 2
        assert lc.is_exhausted

    @pytest.mark.asyncio
    async def test_get_session_after_exhaustion_recovers(self, refusing_transport, handle_factory) -> None:
        """A request after exhaustion can still bring the session back."""
        lc = SessionLifecycle(refusing_transport, reconnect_base_delay=0.0, max_reconnect_attempts=1)
        await lc.connect()
        await _drain(lc)
        assert lc.is_exhausted

        refusing_transport.outcomes.append(handle_factory())
        session = await lc.get_session()

        assert isinstance(session, Session)
        assert lc.state is ConnectionState.CONNECTED
        assert lc.attempts == 0
        await lc.close()

    @pytest.mark.asyncio
    async def test_reconnect_succeeds_and_resets_counter(self, fake_transport) -> None:
        """A scheduled attempt that succeeds resets the attempt counter."""
        fake_transport.outcomes.extend([TransportConnectionRefused("no"), TransportConnectionRefused("no")])
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=0.0)

        await lc.connect()
        await _drain(lc)

        assert lc.is_connected
        assert lc.attempts == 0
        assert len(fake_transport.calls) == 3
        await lc.close()

    @pytest.mark.asyncio
    async def test_on_demand_success_cancels_scheduled_reconnect(self, fake_transport) -> None:
        """Connecting on demand drops the reconnect that was waiting."""
        fake_transport.outcomes.append(TransportConnectionRefused("no"))
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=60.0)
        await lc.connect()
        assert lc.reconnect_pending

        assert await lc.get_session() is not None

        assert not lc.reconnect_pending
        await lc.close()


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_schedules_first_attempt(self, fake_transport) -> None:
        """Losing the connection schedules attempt number one."""
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=60.0)
        await lc.connect()

        fake_transport.handles[0].drop()

        assert lc.state is ConnectionState.DISCONNECTED
        assert lc.attempts == 1
        assert lc.reconnect_pending
        await lc.close()

    @pytest.mark.asyncio
    async def test_disconnect_then_reconnect(self, fake_transport) -> None:
        """The scheduled reconnect opens a new handle."""
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=0.0)
        await lc.connect()
        first = fake_transport.handles[0]

        first.drop()
        await _drain(lc)

        assert lc.is_connected
        assert len(fake_transport.handles) == 2
        assert fake_transport.handles[1] is not first
        await lc.close()

    @pytest.mark.asyncio
    async def test_stale_handle_callback_is_ignored(self, fake_transport) -> None:
        """A late notification from a replaced handle changes nothing."""
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=0.0)
        await lc.connect()
        old = fake_transport.handles[0]
        old.drop()
        await _drain(lc)

        old.drop()

        assert lc.is_connected
        assert not lc.reconnect_pending
        await lc.close()

    @pytest.mark.asyncio
    async def test_close_stops_reconnects(self, fake_transport) -> None:
        """After close() nothing reconnects and connect() refuses."""
        lc = SessionLifecycle(fake_transport, reconnect_base_delay=0.0)
        await lc.connect()
        handle = fake_transport.handles[0]

        await lc.close()
        handle.drop()

        assert handle.closed is True
        assert not lc.reconnect_pending
        assert lc.state is ConnectionState.DISCONNECTED
        assert await lc.connect() is False


class TestGetSession:
    @pytest.mark.asyncio
    async def test_returns_same_session_while_connected(self, fake_transport) -> None:
        """The session object is reused while the connection lasts."""
        lc = SessionLifecycle(fake_transport)
        first = await lc.get_session()
        second = await lc.get_session()
        assert first is not None
        assert first is second
        assert len(fake_transport.calls) == 1
        await lc.close()

    @pytest.mark.asyncio
    async def test_connects_on_demand(self, fake_transport) -> None:
        """Without auto-connect the first request opens the connection."""
        lc = SessionLifecycle(fake_transport, auto_connect=False)
        assert not lc.is_connected
        assert await lc.get_session() is not None
        assert lc.is_connected
        await lc.close()

    @pytest.mark.asyncio
    async def test_returns_none_when_unreachable(self, refusing_transport) -> None:
        """An unreachable player yields None after a single attempt."""
        lc = SessionLifecycle(refusing_transport, auto_connect=False)
        assert await lc.get_session() is None
        assert len(refusing_transport.calls) == 1

    @pytest.mark.asyncio
    async def test_session_evaluates_by_value(self, fake_transport) -> None:
        """Session.evaluate awaits promises and returns plain values."""
        fake_transport.responder = lambda expr: 42
        lc = SessionLifecycle(fake_transport)
        session = await lc.get_session()
        assert await session.evaluate("6 * 7") == 42
        assert fake_transport.handles[0].eval_options == [(True, True)]
        await lc.close()


class TestSnapshot:
    def test_snapshot_fields(self, fake_transport) -> None:
        """snapshot() reports state and reconnect settings."""
        lc = SessionLifecycle(fake_transport, host="h", port=1, max_reconnect_attempts=7)
        snap = lc.snapshot()
        assert snap["state"] == "disconnected"
        assert snap["connected"] is False
        assert snap["endpoint"] == "h:1"
        assert snap["max_reconnect_attempts"] == 7
        assert snap["reconnect_pending"] is False
