"""Expression execution against whatever session is available."""

from __future__ import annotations

import logging
from typing import Any

from tuneremote.commands.scripts import render
from tuneremote.domain.models import RemoteAction
from tuneremote.session.lifecycle import SessionLifecycle

logger = logging.getLogger(__name__)


class ExpressionExecutor:
    """Runs expressions through the lifecycle's current session.

    Absence of a value is the only error signal: no session, a transport
    failure, or a remote exception all come back as None.
    """

    def __init__(self, lifecycle: SessionLifecycle) -> None:
        self._lifecycle = lifecycle

    async def execute(self, expression: str) -> Any:
        session = await self._lifecycle.get_session()
        if session is None:
            return None
        try:
            return await session.evaluate(expression)
        except Exception as e:
            logger.error("Expression evaluation failed: %s", e)
            return None

    async def run(self, action: RemoteAction) -> Any:
        """Serialize a structured remote action and execute it."""
        return await self.execute(render(action))
