"""Translation of abstract player commands into remote actions.

The translator owns all command policy: value clamping, the pause-over-
play preference of the playback toggle, read-before-write for relative
volume changes, and cached status queries. Remote results are
normalized into typed outcomes; nothing here raises for a missing
control or a failed evaluation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from tuneremote.commands.scripts import not_found
from tuneremote.domain.models import (
    VALUED_COMMANDS,
    ClickAction,
    Command,
    CommandName,
    CommandOutcome,
    Control,
    PlayerStatus,
    ReadSliderMaxAction,
    ReadTrackInfoAction,
    ReadTrackTimeAction,
    ReadVolumeAction,
    SetSliderAction,
    TrackInfo,
    TrackTime,
    VolumeInfo,
)
from tuneremote.session.cache import QueryKind, ResultCache
from tuneremote.session.executor import ExpressionExecutor
from tuneremote.session.lifecycle import SessionLifecycle

logger = logging.getLogger(__name__)

NO_RESULT = "no result from player"

_SINGLE_CLICKS: dict[CommandName, Control] = {
    CommandName.NEXT: Control.NEXT_BUTTON,
    CommandName.PREVIOUS: Control.PREV_BUTTON,
    CommandName.LIKE: Control.LIKE_BUTTON,
    CommandName.DISLIKE: Control.DISLIKE_BUTTON,
    CommandName.MUTE_TOGGLE: Control.MUTE_BUTTON,
}


# ---------------------------------------------------------------------------
# Pure policy helpers
# ---------------------------------------------------------------------------


def clamp_percent(percent: float) -> float:
    """Clamp a volume percentage to [0, 100]."""
    return min(100.0, max(0.0, percent))


def clamp_seek(target: float, total: float) -> float:
    """Clamp a seek target in seconds to [0, total]."""
    return min(total, max(0.0, target))


def upgrade_cover_url(url: str | None) -> str | None:
    """Ask the image CDN for a larger thumbnail than the player bar uses."""
    if url and "/100x100" in url:
        return url.replace("/100x100", "/400x400")
    return url


def _detail(result: Any) -> str:
    if isinstance(result, dict):
        return str(result.get("message") or NO_RESULT)
    return NO_RESULT


def _succeeded(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("success"))


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class CommandTranslator:
    """Turns :class:`Command` objects into outcomes via the executor."""

    def __init__(
        self,
        executor: ExpressionExecutor,
        lifecycle: SessionLifecycle,
        cache: ResultCache | None = None,
    ) -> None:
        self._executor = executor
        self._lifecycle = lifecycle
        self._cache = cache or ResultCache()

    async def execute(self, command: Command) -> CommandOutcome | PlayerStatus:
        """Execute one command and return its outcome."""
        name = command.name
        if name in VALUED_COMMANDS and command.value is None:
            raise ValueError(f"{name.value} requires a numeric value")
        if name is CommandName.GET_STATUS:
            return await self.query_status()
        if name is CommandName.PLAYBACK_TOGGLE:
            return await self.toggle_playback()
        if name in _SINGLE_CLICKS:
            control = _SINGLE_CLICKS[name]
            return await self._click(ClickAction(controls=(control,), missing_detail=not_found(control)))
        if name is CommandName.SET_VOLUME:
            return await self.set_volume(command.value)
        if name is CommandName.CHANGE_VOLUME:
            return await self.change_volume(command.value)
        if name is CommandName.SEEK:
            return await self.seek(command.value)
        raise ValueError(f"Unhandled command: {name.value}")

    # -- Actions -----------------------------------------------------------

    async def toggle_playback(self) -> CommandOutcome:
        """Click pause when it is shown, otherwise play."""
        return await self._click(
            ClickAction(
                controls=(Control.PAUSE_BUTTON, Control.PLAY_BUTTON),
                missing_detail="play/pause controls not found",
            )
        )

    async def set_volume(self, percent: float) -> CommandOutcome:
        level = clamp_percent(percent) / 100
        result = await self._executor.run(SetSliderAction(control=Control.VOLUME_SLIDER, value=level))
        return self._outcome(result)

    async def change_volume(self, delta: float) -> CommandOutcome:
        current = await self.get_volume()
        if current is None:
            return CommandOutcome(success=False, detail="current volume unavailable")
        return await self.set_volume(clamp_percent(current.percentage + delta))

    async def seek(self, seconds: float) -> CommandOutcome:
        bound = await self._executor.run(ReadSliderMaxAction(control=Control.PROGRESS_SLIDER))
        if not _succeeded(bound):
            return CommandOutcome(success=False, detail=_detail(bound))
        total = float(round(bound.get("max") or 100))
        target = clamp_seek(seconds, total)
        result = await self._executor.run(SetSliderAction(control=Control.PROGRESS_SLIDER, value=target))
        return self._outcome(result)

    # -- Queries -----------------------------------------------------------

    async def get_track_info(self) -> TrackInfo | None:
        cached = self._cache.get(QueryKind.TRACK_INFO)
        if cached is not None:
            return cached.value
        now = self._cache.now()
        result = await self._executor.run(ReadTrackInfoAction())
        if not _succeeded(result):
            logger.debug("Track info unavailable: %s", _detail(result))
            return None
        info = TrackInfo(
            title=result.get("title") or "",
            artist=result.get("artist") or "",
            cover_url=upgrade_cover_url(result.get("coverUrl")),
        )
        self._cache.put(QueryKind.TRACK_INFO, info, now)
        return info

    async def get_track_time(self) -> TrackTime | None:
        cached = self._cache.get(QueryKind.TRACK_TIME)
        if cached is not None:
            return cached.value
        now = self._cache.now()
        result = await self._executor.run(ReadTrackTimeAction())
        if not _succeeded(result):
            logger.debug("Track time unavailable: %s", _detail(result))
            return None
        progress = max(0.0, float(result.get("progress") or 0))
        maximum = max(0.0, float(result.get("max") or 0))
        time_info = TrackTime(
            current_time=result.get("currentTime") or "",
            total_time=result.get("totalTime") or "",
            progress=progress,
            max=maximum,
            percent=(progress / maximum) * 100 if maximum > 0 else 0.0,
        )
        self._cache.put(QueryKind.TRACK_TIME, time_info, now)
        return time_info

    async def get_volume(self) -> VolumeInfo | None:
        cached = self._cache.get(QueryKind.VOLUME)
        if cached is not None:
            return cached.value
        now = self._cache.now()
        result = await self._executor.run(ReadVolumeAction())
        if not _succeeded(result):
            logger.debug("Volume unavailable: %s", _detail(result))
            return None
        volume = min(1.0, max(0.0, float(result.get("volume") or 0)))
        info = VolumeInfo(
            volume=volume,
            percentage=round(volume * 100),
            is_muted=bool(result.get("isMuted")),
        )
        self._cache.put(QueryKind.VOLUME, info, now)
        return info

    async def query_status(self) -> PlayerStatus:
        """Run the three cached queries concurrently and assemble a snapshot."""
        track, time_info, volume = await asyncio.gather(
            self.get_track_info(),
            self.get_track_time(),
            self.get_volume(),
        )
        return PlayerStatus(
            track=track,
            time=time_info,
            volume=volume,
            connected=self._lifecycle.is_connected,
        )

    # -- Internals ---------------------------------------------------------

    async def _click(self, action: ClickAction) -> CommandOutcome:
        result = await self._executor.run(action)
        return self._outcome(result)

    @staticmethod
    def _outcome(result: Any) -> CommandOutcome:
        if _succeeded(result):
            return CommandOutcome(success=True)
        return CommandOutcome(success=False, detail=_detail(result))
