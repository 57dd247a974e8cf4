"""Core domain models for the tuneremote system.

These models represent the data flowing through the session manager:
connection state, abstract player commands, the structured remote
actions they translate into, and the typed values read back from the
player.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Annotated, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConnectionState(str, enum.Enum):
    """Connectivity of the automation session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXHAUSTED = "exhausted"  # Disconnected and automatic reconnects have stopped


class CommandName(str, enum.Enum):
    """The closed set of player commands."""

    PLAYBACK_TOGGLE = "playback-toggle"
    NEXT = "next"
    PREVIOUS = "previous"
    LIKE = "like"
    DISLIKE = "dislike"
    MUTE_TOGGLE = "mute-toggle"
    SET_VOLUME = "set-volume"
    CHANGE_VOLUME = "change-volume"
    SEEK = "seek"
    GET_STATUS = "get-status"


class Control(str, enum.Enum):
    """Player UI affordances the remote actions target."""

    PLAY_BUTTON = "play_button"
    PAUSE_BUTTON = "pause_button"
    NEXT_BUTTON = "next_button"
    PREV_BUTTON = "prev_button"
    LIKE_BUTTON = "like_button"
    DISLIKE_BUTTON = "dislike_button"
    MUTE_BUTTON = "mute_button"
    VOLUME_SLIDER = "volume_slider"
    PROGRESS_SLIDER = "progress_slider"


# Commands that carry a numeric payload
VALUED_COMMANDS = frozenset(
    {CommandName.SET_VOLUME, CommandName.CHANGE_VOLUME, CommandName.SEEK}
)


# ---------------------------------------------------------------------------
# Commands and outcomes
# ---------------------------------------------------------------------------


class Command(BaseModel):
    """An abstract, single-shot request against the player."""

    model_config = ConfigDict(frozen=True)

    name: CommandName = Field(description="Which operation to perform")
    value: float | None = Field(
        default=None,
        description="Numeric payload: percent for set-volume, delta for change-volume, seconds for seek",
    )


class CommandOutcome(BaseModel):
    """Result of an action command."""

    model_config = ConfigDict(frozen=True)

    success: bool
    detail: str | None = None


# ---------------------------------------------------------------------------
# Query values
# ---------------------------------------------------------------------------


class TrackInfo(BaseModel):
    """Metadata of the track currently loaded in the player."""

    model_config = ConfigDict(frozen=True)

    title: str
    artist: str
    cover_url: str | None = None


class TrackTime(BaseModel):
    """Playback position as displayed by the player's progress bar."""

    model_config = ConfigDict(frozen=True)

    current_time: str = Field(description="Elapsed time label, e.g. '1:23'")
    total_time: str = Field(description="Duration label, e.g. '3:45'")
    progress: float = Field(ge=0.0, description="Progress slider value in seconds")
    max: float = Field(ge=0.0, description="Progress slider upper bound in seconds")
    percent: float = Field(ge=0.0, description="progress / max as a percentage")


class VolumeInfo(BaseModel):
    """Volume slider state."""

    model_config = ConfigDict(frozen=True)

    volume: float = Field(ge=0.0, le=1.0, description="Raw slider value on the player's 0..1 scale")
    percentage: int = Field(ge=0, le=100)
    is_muted: bool = False


class PlayerStatus(BaseModel):
    """Aggregate status snapshot returned to HTTP and WebSocket clients."""

    model_config = ConfigDict(frozen=True)

    track: TrackInfo | None = None
    time: TrackTime | None = None
    volume: VolumeInfo | None = None
    connected: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


T = TypeVar("T")


class CachedResult(BaseModel, Generic[T]):
    """A query value paired with the time it was captured (seconds, monotonic)."""

    model_config = ConfigDict(frozen=True)

    value: T
    captured_at: float


# ---------------------------------------------------------------------------
# Remote actions (discriminated union)
# ---------------------------------------------------------------------------


class ClickAction(BaseModel):
    """Click the first of ``controls`` that is present on the page."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["click"] = "click"
    controls: tuple[Control, ...] = Field(min_length=1, description="Candidates in preference order")
    missing_detail: str = Field(description="Failure detail when no candidate exists")


class SetSliderAction(BaseModel):
    """Assign a slider value and fire the input/change event pair."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["set_slider"] = "set_slider"
    control: Control
    value: float


class ReadSliderMaxAction(BaseModel):
    """Read the upper bound of a slider at call time."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["read_slider_max"] = "read_slider_max"
    control: Control


class ReadTrackInfoAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["read_track_info"] = "read_track_info"


class ReadTrackTimeAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["read_track_time"] = "read_track_time"


class ReadVolumeAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["read_volume"] = "read_volume"


RemoteAction = Annotated[
    Union[
        ClickAction,
        SetSliderAction,
        ReadSliderMaxAction,
        ReadTrackInfoAction,
        ReadTrackTimeAction,
        ReadVolumeAction,
    ],
    Field(discriminator="kind"),
]
