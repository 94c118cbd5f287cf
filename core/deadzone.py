"""Axis deadzones

Evaluation plus the handle-drag rules used by the deadzone editor. All edits
clamp to the nearest legal value instead of raising.
"""
from dataclasses import replace
from enum import Enum

from core.models import Deadzone, clamp

SINGLE_TRACK_GAP = 0.2  # 0.1 of the editor width, which spans -1..1
DUAL_TRACK_GAP = 0.02
PRESETS = (0.0, 0.02, 0.05, 0.10)


class DeadzoneHandle(int, Enum):
    MIN = 0
    CENTER_MIN = 1
    CENTER_MAX = 2
    MAX = 3

    @property
    def is_center(self) -> bool:
        return self in (DeadzoneHandle.CENTER_MIN, DeadzoneHandle.CENTER_MAX)


def _apply_centered(dz: Deadzone, value: float) -> float:
    if value >= 0:
        span = abs(dz.max - dz.center_max)
        if span <= 1e-4:
            return 1.0 if value > dz.center_max else 0.0
        return clamp((value - dz.center_max) / span, 0.0, 1.0)
    span = abs(dz.min - dz.center_min)
    if span <= 1e-4:
        return -1.0 if value < dz.center_min else 0.0
    return clamp((value - dz.center_min) / span, -1.0, 0.0)


def apply(dz: Deadzone, raw: float) -> float:
    """Map a raw axis value (-1..1) through the deadzone."""
    raw = clamp(float(raw), -1.0, 1.0)
    if dz.center_enabled:
        return _apply_centered(dz, raw)
    span = dz.max - dz.min
    if span <= 1e-4:
        return raw
    return clamp(2.0 * (raw - dz.min) / span - 1.0, -1.0, 1.0)


def drag_handle(dz: Deadzone, handle: DeadzoneHandle, value: float) -> Deadzone:
    """Move one handle, clamped against its neighbours."""
    value = float(value)
    if not dz.center_enabled:
        if handle == DeadzoneHandle.MIN:
            return replace(dz, min=clamp(value, -1.0, dz.max - SINGLE_TRACK_GAP))
        if handle == DeadzoneHandle.MAX:
            return replace(dz, max=clamp(value, dz.min + SINGLE_TRACK_GAP, 1.0))
        return dz

    if handle == DeadzoneHandle.MIN:
        return replace(dz, min=clamp(value, -1.0, dz.center_min - DUAL_TRACK_GAP))
    if handle == DeadzoneHandle.CENTER_MIN:
        return replace(dz, center_min=clamp(value, dz.min + DUAL_TRACK_GAP, 0.0))
    if handle == DeadzoneHandle.CENTER_MAX:
        return replace(dz, center_max=clamp(value, 0.0, dz.max - DUAL_TRACK_GAP))
    return replace(dz, max=clamp(value, dz.center_max + DUAL_TRACK_GAP, 1.0))


def set_center_enabled(dz: Deadzone, enabled: bool) -> Deadzone:
    if not enabled:
        return replace(dz, center_enabled=False, center_min=0.0, center_max=0.0)
    return replace(
        dz,
        center_enabled=True,
        center_min=0.0,
        center_max=0.0,
        min=min(dz.min, -DUAL_TRACK_GAP),
        max=max(dz.max, DUAL_TRACK_GAP),
    )


def preset_target(handle: DeadzoneHandle, preset: float) -> float:
    if handle == DeadzoneHandle.MIN:
        return -1.0 + preset
    if handle == DeadzoneHandle.CENTER_MIN:
        return -preset
    if handle == DeadzoneHandle.CENTER_MAX:
        return preset
    return 1.0 - preset


def apply_preset(dz: Deadzone, handle: DeadzoneHandle, preset: float) -> Deadzone:
    return drag_handle(dz, handle, preset_target(handle, preset))


def sanitize(dz: Deadzone) -> Deadzone:
    """Clamp externally supplied values (e.g. a hand-edited profile) into a legal deadzone."""
    lo = clamp(dz.min, -1.0, 1.0)
    hi = clamp(dz.max, -1.0, 1.0)
    if not dz.center_enabled:
        if hi - lo < SINGLE_TRACK_GAP:
            lo, hi = -1.0, 1.0
        return Deadzone(min=lo, max=hi)
    lo = min(lo, -DUAL_TRACK_GAP)
    hi = max(hi, DUAL_TRACK_GAP)
    cmin = clamp(dz.center_min, lo + DUAL_TRACK_GAP, 0.0)
    cmax = clamp(dz.center_max, 0.0, hi - DUAL_TRACK_GAP)
    return Deadzone(min=lo, max=hi, center_min=cmin, center_max=cmax, center_enabled=True)
