"""Command translation module for tuneremote.

Turns abstract player commands into structured remote actions and
normalizes what the player sends back.

Public API:
    render -- Serialize a remote action to a page expression
    CommandTranslator -- Command policy and result normalization
"""

from tuneremote.commands.scripts import not_found, render

__all__ = ["render", "not_found", "CommandTranslator"]


def __getattr__(name: str) -> type:
    """Lazy import so the session package can depend on the script renderer."""
    if name == "CommandTranslator":
        from tuneremote.commands.translator import CommandTranslator
        return CommandTranslator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
