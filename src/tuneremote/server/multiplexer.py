"""Routing of client requests onto the shared command translator.

HTTP handlers and WebSocket handlers both come through here. Commands
carry no client state, so there is no per-client queue and no lock;
concurrent commands may interleave at the player.
"""

from __future__ import annotations

import logging

from tuneremote.commands.translator import CommandTranslator
from tuneremote.domain.models import Command, CommandName, CommandOutcome, PlayerStatus

logger = logging.getLogger(__name__)

VOLUME_STEP = 10.0
DEFAULT_VOLUME = 50.0
DEFAULT_SEEK = 0.0

# Client action name -> (command, fixed value)
ACTION_ALIASES: dict[str, tuple[CommandName, float | None]] = {
    "play": (CommandName.PLAYBACK_TOGGLE, None),
    "pause": (CommandName.PLAYBACK_TOGGLE, None),
    "toggle": (CommandName.PLAYBACK_TOGGLE, None),
    "next": (CommandName.NEXT, None),
    "previous": (CommandName.PREVIOUS, None),
    "prev": (CommandName.PREVIOUS, None),
    "like": (CommandName.LIKE, None),
    "dislike": (CommandName.DISLIKE, None),
    "mute": (CommandName.MUTE_TOGGLE, None),
    "volumeup": (CommandName.CHANGE_VOLUME, VOLUME_STEP),
    "volumedown": (CommandName.CHANGE_VOLUME, -VOLUME_STEP),
    "volume": (CommandName.SET_VOLUME, None),
    "seek": (CommandName.SEEK, None),
    "status": (CommandName.GET_STATUS, None),
}

_DEFAULTS: dict[CommandName, float] = {
    CommandName.SET_VOLUME: DEFAULT_VOLUME,
    CommandName.SEEK: DEFAULT_SEEK,
}


class UnknownCommandError(Exception):
    """Raised when a client names a command that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name}")
        self.name = name


def _coerce(value: object) -> float | None:
    """Parse a client-supplied value; blanks and garbage become None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def parse_command(name: str, value: object = None) -> Command:
    """Build a :class:`Command` from a client action name and raw value.

    Accepts the short client vocabulary (``toggle``, ``volumeup``, ...)
    as well as canonical command names. Missing volume and seek values
    fall back to 50 and 0.

    Raises:
        UnknownCommandError: If ``name`` is not recognised.
    """
    key = (name or "").strip().lower()
    if key in ACTION_ALIASES:
        command_name, fixed = ACTION_ALIASES[key]
    else:
        try:
            command_name, fixed = CommandName(key), None
        except ValueError:
            raise UnknownCommandError(name) from None

    if fixed is not None:
        return Command(name=command_name, value=fixed)
    parsed = _coerce(value)
    if command_name in _DEFAULTS:
        # Only a missing value falls back; an explicit 0 is kept
        return Command(name=command_name, value=_DEFAULTS[command_name] if parsed is None else parsed)
    if command_name is CommandName.CHANGE_VOLUME:
        return Command(name=command_name, value=0.0 if parsed is None else parsed)
    return Command(name=command_name)


class RequestMultiplexer:
    """Single entry point for every caller of the command API."""

    def __init__(self, translator: CommandTranslator) -> None:
        self._translator = translator

    async def execute(self, name: str, value: object = None) -> CommandOutcome | PlayerStatus:
        """Parse and run one client command.

        Raises:
            UnknownCommandError: If ``name`` is not recognised.
        """
        command = parse_command(name, value)
        logger.debug("Executing %s (value=%s)", command.name.value, command.value)
        outcome = await self._translator.execute(command)
        if isinstance(outcome, CommandOutcome) and not outcome.success:
            logger.info("Command %s failed: %s", command.name.value, outcome.detail)
        return outcome

    async def query_status(self) -> PlayerStatus:
        return await self._translator.query_status()
