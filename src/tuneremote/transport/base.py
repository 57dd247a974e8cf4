"""Abstract base classes for the automation transport.

The session manager never speaks the debugging protocol directly. It
only needs to open a handle, enable the page and runtime domains,
evaluate an expression, and hear about disconnects. Any backend that
conforms to this interface can be swapped in, including the in-memory
fakes used by the test suite.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)

DisconnectCallback = Callable[[], None]


class TransportHandle(ABC):
    """A live connection to one page of the automation endpoint.

    Example usage::

        handle = await transport.connect("localhost", 9222)
        await handle.enable_domains()
        handle.on_disconnect(lambda: print("gone"))
        title = await handle.evaluate("document.title")
        await handle.close()
    """

    @abstractmethod
    async def enable_domains(self) -> None:
        """Enable page events and runtime evaluation on the target.

        Raises:
            TransportError: If the endpoint rejects either request.
        """
        ...

    @abstractmethod
    async def evaluate(
        self,
        expression: str,
        await_promise: bool = True,
        return_by_value: bool = True,
    ) -> Any:
        """Evaluate ``expression`` in the page and return its value.

        Args:
            expression: Source text to evaluate in the page context.
            await_promise: Wait for a returned promise to settle.
            return_by_value: Return a plain JSON value instead of a
                remote object reference.

        Returns:
            The plain value produced by the expression, or None when the
            expression yields ``undefined``.

        Raises:
            TransportError: If the connection fails or the expression
                throws on the remote side.
        """
        ...

    @abstractmethod
    def on_disconnect(self, callback: DisconnectCallback) -> None:
        """Register ``callback`` to run once when the connection drops."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once.

        Closing deliberately does not fire disconnect callbacks.
        """
        ...


class AutomationTransport(ABC):
    """Factory for :class:`TransportHandle` instances."""

    @abstractmethod
    async def connect(self, host: str, port: int) -> TransportHandle:
        """Open a handle to the automation endpoint at ``host:port``.

        Raises:
            TransportConnectionRefused: If nothing is listening.
            TransportError: For any other connection failure.
        """
        ...


class TransportError(Exception):
    """Raised when the automation transport fails."""

    def __init__(self, message: str, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class TransportConnectionRefused(TransportError):
    """Raised when the automation endpoint is not listening."""
