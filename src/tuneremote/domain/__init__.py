"""Domain models for tuneremote.

This package contains the core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from tuneremote.domain.models import (
    CachedResult,
    ClickAction,
    Command,
    CommandName,
    CommandOutcome,
    ConnectionState,
    Control,
    PlayerStatus,
    ReadSliderMaxAction,
    ReadTrackInfoAction,
    ReadTrackTimeAction,
    ReadVolumeAction,
    RemoteAction,
    SetSliderAction,
    TrackInfo,
    TrackTime,
    VolumeInfo,
)

__all__ = [
    "CachedResult",
    "ClickAction",
    "Command",
    "CommandName",
    "CommandOutcome",
    "ConnectionState",
    "Control",
    "PlayerStatus",
    "ReadSliderMaxAction",
    "ReadTrackInfoAction",
    "ReadTrackTimeAction",
    "ReadVolumeAction",
    "RemoteAction",
    "SetSliderAction",
    "TrackInfo",
    "TrackTime",
    "VolumeInfo",
]
