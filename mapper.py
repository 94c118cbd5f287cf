"""Mapping engine: load YAML profiles and map DeviceState -> VJoyCommand per vJoy device"""
import logging
import threading
import time
from typing import Dict, Iterable, List, Optional

import yaml

from core import curve as curves
from core import deadzone as deadzones
from core.models import ButtonMode, MappingProfile, MergeOperation, OutputKind
from core.profiles import profile_from_dict
from core.state import DeviceState, VJoyCommand, hat_to_degrees

LOG = logging.getLogger("hotasbridge.mapper")

# vJoy axis index -> command axis name (see vjoy.output.AXIS_MAP)
AXIS_NAMES = ("AXIS_X", "AXIS_Y", "AXIS_Z", "AXIS_RX", "AXIS_RY", "AXIS_RZ", "AXIS_SL0", "AXIS_SL1")

def snap_to_discrete(degrees: int) -> int:
    """Snap an angle to the four directions a discrete POV supports."""
    if degrees < 0:
        return -1
    degrees %= 360
    if degrees >= 315 or degrees < 45:
        return 0
    if degrees < 135:
        return 90
    if degrees < 225:
        return 180
    return 270


def merge_values(values: List[float], op: MergeOperation) -> float:
    if op == MergeOperation.MINIMUM:
        return min(values)
    if op == MergeOperation.MAXIMUM:
        return max(values)
    if op == MergeOperation.SUM:
        return max(-1.0, min(1.0, sum(values)))
    return sum(values) / len(values)


def key_combo(key_name: str, modifiers: Iterable[str]) -> str:
    return "+".join(list(modifiers) + [key_name])


class Mapper:
    def __init__(self, profile: MappingProfile, clock=time.time):
        self.profile = profile
        self._clock = clock
        self._lock = threading.Lock()
        self._states: Dict[str, DeviceState] = {}  # latest state per physical device
        self._toggle_state = {}  # mapping id -> latched output
        self._edge_time = {}  # mapping id -> press time, cleared on release
        self._pulse_timers = {}  # mapping id -> pulse end time
        self._thresholds = {}  # axis-to-button mapping id -> pressed
        self._ramps = {}  # button-to-axis mapping id -> (value, time)
        self._active_layers = set()

    @classmethod
    def load_profile(cls, path: str):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(profile_from_dict(data))

    def map_state_to_vjoy_full(self, all_states: dict) -> Dict[int, VJoyCommand]:
        """Map accumulated state from all devices to vJoy commands"""
        commands: Dict[int, VJoyCommand] = {}
        for device_id, state in all_states.items():
            if isinstance(state, dict):
                state = {**state, "device": device_id}
            for vjoy_id, cmd in self.map_state_to_vjoy(state).items():
                commands.setdefault(vjoy_id, VJoyCommand()).merge(cmd)
        return commands

    def map_state_to_vjoy(self, state) -> Dict[int, VJoyCommand]:
        """Update the cached state for one device and recompute every mapping it feeds."""
        state = DeviceState.from_event(state)
        with self._lock:
            self._states[state.device] = state
            return self._evaluate(state.device)

    def _fed_by(self, mapping, device_id: str) -> bool:
        return (mapping.enabled and any(i.device_id == device_id for i in mapping.inputs)
                and self._is_active(mapping))

    def _update_shift_layers(self):
        active = set()
        for layer in self.profile.shift_layers:
            if layer.activator is not None and self._lookup(layer.activator, "buttons"):
                active.add(layer.id)
        if active != self._active_layers:
            LOG.debug("shift layers now %s", sorted(active) or "base")
        self._active_layers = active

    def _is_active(self, mapping) -> bool:
        # the base layer runs only while no shift layer is held
        if mapping.layer_id is None:
            return not self._active_layers
        return mapping.layer_id in self._active_layers

    @property
    def active_layers(self):
        with self._lock:
            return set(self._active_layers)

    def _lookup(self, source, attr: str):
        st = self._states.get(source.device_id)
        if st is None:
            return None
        return getattr(st, attr).get(source.index)

    def _evaluate(self, device_id: str) -> Dict[int, VJoyCommand]:
        commands: Dict[int, VJoyCommand] = {}

        def cmd_for(vjoy_id):
            return commands.setdefault(vjoy_id, VJoyCommand())

        self._update_shift_layers()

        for m in self.profile.axis_mappings:
            if not self._fed_by(m, device_id) or m.output.kind != OutputKind.VJOY_AXIS:
                continue
            try:
                values = [float(v) for v in (self._lookup(i, "axes") for i in m.inputs) if v is not None]
                if not values:
                    continue
                val = merge_values(values, m.merge_op)
                val = deadzones.apply(m.deadzone, val)
                val = curves.shape(m.curve, val)
                if 0 <= m.output.index < len(AXIS_NAMES):
                    cmd_for(m.output.vjoy_device).axes[AXIS_NAMES[m.output.index]] = val
                else:
                    LOG.debug("axis index %d has no vJoy axis", m.output.index)
            except Exception:
                LOG.exception("failed to map axis binding %s", m.name)

        for m in self.profile.button_mappings:
            if not self._fed_by(m, device_id):
                continue
            try:
                pressed = any(bool(self._lookup(i, "buttons")) for i in m.inputs)
                out = self._apply_mode(m, pressed)
                if m.output.kind == OutputKind.KEYBOARD:
                    if m.output.key_name:
                        cmd_for(m.output.vjoy_device).keys[key_combo(m.output.key_name, m.output.modifiers)] = out
                else:
                    # vJoy buttons are 1-based
                    cmd_for(m.output.vjoy_device).buttons[m.output.index + 1] = out
            except Exception:
                LOG.exception("failed to map button binding %s", m.name)

        for m in self.profile.hat_mappings:
            if not self._fed_by(m, device_id):
                continue
            deg = -1
            for i in m.inputs:
                value = hat_to_degrees(self._lookup(i, "hats"))
                if value >= 0:
                    deg = value
                    break
            if not m.use_continuous:
                deg = snap_to_discrete(deg)
            # vJoy POVs are 1-based
            cmd_for(m.output.vjoy_device).povs[m.output.index + 1] = deg
            LOG.debug("mapped hat -> vJoy %d pov %d (%d deg)", m.output.vjoy_device, m.output.index + 1, deg)

        for m in self.profile.axis_to_button_mappings:
            if not self._fed_by(m, device_id):
                continue
            value = next((v for v in (self._lookup(i, "axes") for i in m.inputs) if v is not None), None)
            if value is None:
                continue
            out = self._crossed(m, float(value))
            if m.output.kind == OutputKind.KEYBOARD:
                if m.output.key_name:
                    cmd_for(m.output.vjoy_device).keys[key_combo(m.output.key_name, m.output.modifiers)] = out
            else:
                cmd_for(m.output.vjoy_device).buttons[m.output.index + 1] = out

        for m in self.profile.button_to_axis_mappings:
            if not self._fed_by(m, device_id):
                continue
            pressed = any(bool(self._lookup(i, "buttons")) for i in m.inputs)
            val = self._ramp(m, pressed)
            if 0 <= m.output.index < len(AXIS_NAMES):
                cmd_for(m.output.vjoy_device).axes[AXIS_NAMES[m.output.index]] = -val if m.invert else val

        return commands

    def _crossed(self, m, value: float) -> bool:
        """Threshold test with hysteresis: once on, the release point backs off by `hysteresis`."""
        on = self._thresholds.get(m.id, False)
        if m.activate_above:
            threshold = m.threshold - m.hysteresis if on else m.threshold
            on = value > threshold
        else:
            threshold = m.threshold + m.hysteresis if on else m.threshold
            on = value < threshold
        self._thresholds[m.id] = on
        return not on if m.invert else on

    def _ramp(self, m, pressed: bool) -> float:
        now = self._clock()
        target = m.pressed_value if pressed else m.released_value
        last = self._ramps.get(m.id)
        if m.smoothing_ms > 0 and last is not None:
            value, then = last
            rate = min(1.0, (now - then) * 1000.0 / m.smoothing_ms)
            value += rate * (target - value)
        else:
            value = target
        self._ramps[m.id] = (value, now)
        return value

    def _ramping(self) -> bool:
        for m in self.profile.button_to_axis_mappings:
            last = self._ramps.get(m.id)
            if last is None or m.smoothing_ms <= 0 or not (m.enabled and self._is_active(m)):
                continue
            if abs(last[0] - m.pressed_value) > 1e-3 and abs(last[0] - m.released_value) > 1e-3:
                return True
        return False

    def _apply_mode(self, m, pressed: bool) -> bool:
        now = self._clock()
        if m.mode == ButtonMode.TOGGLE:
            if pressed and m.id not in self._edge_time:
                self._toggle_state[m.id] = not self._toggle_state.get(m.id, False)
                self._edge_time[m.id] = now
                LOG.debug("%s toggled -> %s", m.name, self._toggle_state[m.id])
            elif not pressed:
                self._edge_time.pop(m.id, None)
            return self._toggle_state.get(m.id, False)

        if m.mode == ButtonMode.PULSE:
            if pressed and m.id not in self._edge_time:
                self._edge_time[m.id] = now
                self._pulse_timers[m.id] = now + m.pulse_duration_ms / 1000.0
            if m.id in self._pulse_timers:
                if now < self._pulse_timers[m.id]:
                    return True
                del self._pulse_timers[m.id]
            if not pressed:
                self._edge_time.pop(m.id, None)
            return False

        if m.mode == ButtonMode.HOLD_TO_ACTIVATE:
            if not pressed:
                self._edge_time.pop(m.id, None)
                return False
            started = self._edge_time.setdefault(m.id, now)
            return (now - started) * 1000.0 >= m.hold_duration_ms

        return pressed

    def pending_pulses(self) -> Optional[float]:
        """Seconds until the next pulse ends, so the caller can re-run the mapping.

        Zero while a smoothed button-to-axis output is still travelling.
        """
        with self._lock:
            if self._ramping():
                return 0.0
            if not self._pulse_timers:
                return None
            return max(0.0, min(self._pulse_timers.values()) - self._clock())

    def refresh(self) -> Dict[int, VJoyCommand]:
        """Recompute every device from cached state (expires pulses without new input)."""
        with self._lock:
            commands: Dict[int, VJoyCommand] = {}
            for device_id in list(self._states):
                for vjoy_id, cmd in self._evaluate(device_id).items():
                    commands.setdefault(vjoy_id, VJoyCommand()).merge(cmd)
            return commands
