"""Session manager for tuneremote.

Owns the single connection to the player's automation endpoint,
executes expressions through it, and caches read-only query results.

Public API:
    SessionLifecycle -- Connect/reconnect state machine
    Session -- A connected session (evaluate only)
    ExpressionExecutor -- Null-on-failure expression execution
    ResultCache -- Shared-timestamp query cache
"""

from tuneremote.session.cache import QueryKind, ResultCache
from tuneremote.session.executor import ExpressionExecutor
from tuneremote.session.lifecycle import Session, SessionLifecycle

__all__ = [
    "ExpressionExecutor",
    "QueryKind",
    "ResultCache",
    "Session",
    "SessionLifecycle",
]
