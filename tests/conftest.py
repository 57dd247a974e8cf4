"""Shared test fixtures for the tuneremote test suite.

Provides in-memory stand-ins for the automation transport, a manual
clock for cache timing, and sample query values.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from tuneremote.domain.models import PlayerStatus, TrackInfo, TrackTime, VolumeInfo
from tuneremote.transport.base import (
    AutomationTransport,
    DisconnectCallback,
    TransportConnectionRefused,
    TransportHandle,
)


# ---------------------------------------------------------------------------
# Transport fakes
# ---------------------------------------------------------------------------


class FakeHandle(TransportHandle):
    """A scripted page connection."""

    def __init__(self, responder: Callable[[str], Any] | None = None) -> None:
        self.responder = responder
        self.expressions: list[str] = []
        self.eval_options: list[tuple[bool, bool]] = []
        self.enabled = False
        self.closed = False
        self.fail_enable: Exception | None = None
        self.callbacks: list[DisconnectCallback] = []

    async def enable_domains(self) -> None:
        if self.fail_enable is not None:
            raise self.fail_enable
        self.enabled = True

    async def evaluate(
        self,
        expression: str,
        await_promise: bool = True,
        return_by_value: bool = True,
    ) -> Any:
        self.expressions.append(expression)
        self.eval_options.append((await_promise, return_by_value))
        if self.responder is None:
            return None
        return self.responder(expression)

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self.callbacks.append(callback)

    async def close(self) -> None:
        self.closed = True

    def drop(self) -> None:
        """Simulate the endpoint going away."""
        for callback in self.callbacks:
            callback()


class FakeTransport(AutomationTransport):
    """Hands out queued outcomes, then ``default`` for every later call.

    An outcome is either a :class:`FakeHandle` or an exception to raise.
    A ``default`` of None means a fresh FakeHandle per call.
    """

    def __init__(self, default: FakeHandle | Exception | None = None) -> None:
        self.outcomes: list[FakeHandle | Exception] = []
        self.default = default
        self.responder: Callable[[str], Any] | None = None
        self.calls: list[tuple[str, int]] = []
        self.handles: list[FakeHandle] = []

    async def connect(self, host: str, port: int) -> FakeHandle:
        self.calls.append((host, port))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        handle = outcome if outcome is not None else FakeHandle(self.responder)
        self.handles.append(handle)
        return handle


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


@pytest.fixture
def handle_factory() -> type[FakeHandle]:
    return FakeHandle


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def refusing_transport() -> FakeTransport:
    return FakeTransport(default=TransportConnectionRefused("refused", endpoint="localhost:9222"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Sample values
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_track() -> TrackInfo:
    return TrackInfo(title="Song", artist="Band", cover_url="https://img.example/400x400")


@pytest.fixture
def sample_status(sample_track: TrackInfo) -> PlayerStatus:
    return PlayerStatus(
        track=sample_track,
        time=TrackTime(current_time="1:00", total_time="3:00", progress=60, max=180, percent=100 / 3),
        volume=VolumeInfo(volume=0.5, percentage=50, is_muted=False),
        connected=True,
    )
