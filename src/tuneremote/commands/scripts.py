"""Serialization of remote actions into page expressions.

Every remote action is rendered just before it reaches the transport.
Selectors and values are embedded as JSON literals, so no caller ever
splices raw text into an expression. Each script returns a plain object
with ``success`` and, on failure, a ``message``.
"""

from __future__ import annotations

import json
from typing import Any

from tuneremote.domain.models import (
    ClickAction,
    Control,
    ReadSliderMaxAction,
    ReadTrackInfoAction,
    ReadTrackTimeAction,
    ReadVolumeAction,
    SetSliderAction,
)

# Player markup, keyed by the affordance each selector targets
CONTROL_SELECTORS: dict[Control, str] = {
    Control.PLAY_BUTTON: '[data-test-id="PLAY_BUTTON"]',
    Control.PAUSE_BUTTON: '[data-test-id="PAUSE_BUTTON"]',
    Control.NEXT_BUTTON: '[data-test-id="NEXT_TRACK_BUTTON"]',
    Control.PREV_BUTTON: '[data-test-id="PREVIOUS_TRACK_BUTTON"]',
    Control.LIKE_BUTTON: '[data-test-id="LIKE_BUTTON"]',
    Control.DISLIKE_BUTTON: '[data-test-id="DISLIKE_BUTTON"]',
    Control.MUTE_BUTTON: 'button[data-test-id="CHANGE_VOLUME_BUTTON"]',
    Control.VOLUME_SLIDER: 'input[data-test-id="CHANGE_VOLUME_SLIDER"]',
    Control.PROGRESS_SLIDER: '[data-test-id="TIMECODE_SLIDER"]',
}

CONTROL_LABELS: dict[Control, str] = {
    Control.PLAY_BUTTON: "play button",
    Control.PAUSE_BUTTON: "pause button",
    Control.NEXT_BUTTON: "next button",
    Control.PREV_BUTTON: "previous button",
    Control.LIKE_BUTTON: "like button",
    Control.DISLIKE_BUTTON: "dislike button",
    Control.MUTE_BUTTON: "mute button",
    Control.VOLUME_SLIDER: "volume slider",
    Control.PROGRESS_SLIDER: "progress slider",
}

TRACK_TITLE_SELECTOR = '[data-test-id="TRACK_TITLE"] .Meta_title__GGBnH'
ARTIST_NAME_SELECTOR = '[data-test-id="SEPARATED_ARTIST_TITLE"] .Meta_artistCaption__JESZi'
COVER_IMAGE_SELECTOR = "img.PlayerBarDesktopWithBackgroundProgressBar_cover__MKmEt"
CURRENT_TIME_SELECTOR = '[data-test-id="TIMECODE_TIME_START"]'
TOTAL_TIME_SELECTOR = '[data-test-id="TIMECODE_TIME_END"]'

# aria-label the mute button carries while sound is off
UNMUTE_LABEL = "Включить звук"


def not_found(control: Control) -> str:
    return f"{CONTROL_LABELS[control]} not found"


def _js(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


_CLICK = """(function(candidates, missing) {
    try {
        for (const [name, selector] of candidates) {
            const el = document.querySelector(selector);
            if (el) {
                el.click();
                return { success: true, control: name };
            }
        }
        return { success: false, message: missing };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s)"""

_SET_SLIDER = """(function(selector, value, missing) {
    try {
        const slider = document.querySelector(selector);
        if (!slider) {
            return { success: false, message: missing };
        }
        slider.value = value;
        slider.dispatchEvent(new Event('input', { bubbles: true }));
        slider.dispatchEvent(new Event('change', { bubbles: true }));
        return { success: true, value: value };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s, %s)"""

_READ_SLIDER_MAX = """(function(selector, missing) {
    try {
        const slider = document.querySelector(selector);
        if (!slider) {
            return { success: false, message: missing };
        }
        return { success: true, max: parseFloat(slider.max) || null };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s)"""

_READ_TRACK_INFO = """(function(titleSel, artistSel, coverSel) {
    try {
        const titleElem = document.querySelector(titleSel);
        const artistElem = document.querySelector(artistSel);
        const coverElem = document.querySelector(coverSel);
        if (!titleElem || !artistElem) {
            return { success: false, message: 'track info not found' };
        }
        return {
            success: true,
            title: titleElem.textContent.trim(),
            artist: artistElem.textContent.trim(),
            coverUrl: coverElem ? coverElem.src : null
        };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s, %s)"""

_READ_TRACK_TIME = """(function(currentSel, totalSel, sliderSel) {
    try {
        const currentElem = document.querySelector(currentSel);
        const totalElem = document.querySelector(totalSel);
        const slider = document.querySelector(sliderSel);
        if (!currentElem || !totalElem || !slider) {
            return { success: false, message: 'track time not found' };
        }
        return {
            success: true,
            currentTime: currentElem.textContent.trim(),
            totalTime: totalElem.textContent.trim(),
            progress: parseFloat(slider.value) || 0,
            max: parseFloat(slider.max) || 100
        };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s, %s)"""

_READ_VOLUME = """(function(sliderSel, muteSel, unmuteLabel, missing) {
    try {
        const slider = document.querySelector(sliderSel);
        const muteBtn = document.querySelector(muteSel);
        if (!slider) {
            return { success: false, message: missing };
        }
        const volume = parseFloat(slider.value) || 0;
        let muted = volume === 0;
        if (muteBtn) {
            const label = muteBtn.getAttribute('aria-label');
            if (label && label.includes(unmuteLabel)) {
                muted = true;
            }
        }
        return { success: true, volume: volume, isMuted: muted };
    } catch (err) {
        return { success: false, message: 'Error: ' + err.message };
    }
})(%s, %s, %s, %s)"""


def render(action: Any) -> str:
    """Render a remote action as a self-contained page expression."""
    if isinstance(action, ClickAction):
        candidates = [[c.value, CONTROL_SELECTORS[c]] for c in action.controls]
        return _CLICK % (_js(candidates), _js(action.missing_detail))
    if isinstance(action, SetSliderAction):
        return _SET_SLIDER % (
            _js(CONTROL_SELECTORS[action.control]),
            _js(action.value),
            _js(not_found(action.control)),
        )
    if isinstance(action, ReadSliderMaxAction):
        return _READ_SLIDER_MAX % (
            _js(CONTROL_SELECTORS[action.control]),
            _js(not_found(action.control)),
        )
    if isinstance(action, ReadTrackInfoAction):
        return _READ_TRACK_INFO % (
            _js(TRACK_TITLE_SELECTOR),
            _js(ARTIST_NAME_SELECTOR),
            _js(COVER_IMAGE_SELECTOR),
        )
    if isinstance(action, ReadTrackTimeAction):
        return _READ_TRACK_TIME % (
            _js(CURRENT_TIME_SELECTOR),
            _js(TOTAL_TIME_SELECTOR),
            _js(CONTROL_SELECTORS[Control.PROGRESS_SLIDER]),
        )
    if isinstance(action, ReadVolumeAction):
        return _READ_VOLUME % (
            _js(CONTROL_SELECTORS[Control.VOLUME_SLIDER]),
            _js(CONTROL_SELECTORS[Control.MUTE_BUTTON]),
            _js(UNMUTE_LABEL),
            _js(not_found(Control.VOLUME_SLIDER)),
        )
    raise TypeError(f"Unsupported remote action: {type(action).__name__}")
