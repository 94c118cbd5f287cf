"""Generic joystick reader using DirectInput via pygame.joystick

`JoystickReader` polls every connected stick, throttle and pedal set and emits
normalized DeviceState dictionaries to subscribers. It also answers direct
polls, which is what input capture uses.
"""
import logging
import threading
import time
from typing import Dict, List

try:
    import pygame
except Exception:
    pygame = None

from core.models import PhysicalDeviceInfo
from core.reader import DeviceReader, InputProvider
from core.state import hat_to_degrees

LOG = logging.getLogger("hotasbridge.joystick")

POLL_HZ = 120


def _device_id(js, index: int, seen: set) -> str:
    guid = js.get_guid() if hasattr(js, "get_guid") else ""
    base = guid or f"{js.get_name()}:{index}"
    device_id = base
    n = 2
    # identical devices share a guid
    while device_id in seen:
        device_id = f"{base}#{n}"
        n += 1
    seen.add(device_id)
    return device_id


class JoystickReader(DeviceReader, InputProvider):
    """Reads all DirectInput joysticks via pygame.

    Emits dictionaries like:
      {
        'device': '<guid>',
        'axes': {0: float, 1: float, ...},
        'buttons': {0: bool, 1: bool, ...},
        'hats': {0: (x,y), ...}
      }
    """

    def __init__(self, hz: int = POLL_HZ):
        self.hz = hz
        self._subs = []
        self._t = None
        self._stop = threading.Event()
        self._lock = threading.RLock()
        self._joysticks: Dict[str, object] = {}
        self._names: Dict[str, str] = {}
        self._latest: Dict[str, dict] = {}

    def _open_all(self) -> Dict[str, object]:
        if pygame is None:
            LOG.warning("pygame not available, JoystickReader disabled")
            return {}
        pygame.init()
        pygame.joystick.init()
        found = {}
        seen = set()
        for i in range(pygame.joystick.get_count()):
            js = pygame.joystick.Joystick(i)
            js.init()
            device_id = _device_id(js, i, seen)
            found[device_id] = js
            LOG.info("Found joystick: %s (index %d, axes=%d, buttons=%d, hats=%d)",
                     js.get_name(), i, js.get_numaxes(), js.get_numbuttons(), js.get_numhats())
        if not found:
            LOG.warning("No joysticks found via pygame")
        return found

    def _ensure_open(self):
        with self._lock:
            if not self._joysticks:
                self._joysticks = self._open_all()
                self._names = {d: js.get_name() or d for d, js in self._joysticks.items()}

    def devices(self) -> List[PhysicalDeviceInfo]:
        # DirectInput via pygame does not report axis usages, so axis_types stays empty
        self._ensure_open()
        with self._lock:
            return [
                PhysicalDeviceInfo(
                    device_id=device_id,
                    name=self._names[device_id],
                    axis_count=js.get_numaxes(),
                    button_count=js.get_numbuttons(),
                    hat_count=js.get_numhats(),
                )
                for device_id, js in self._joysticks.items()
            ]

    def _read(self, device_id: str, js) -> dict:
        return {
            "device": device_id,
            "axes": {i: js.get_axis(i) for i in range(js.get_numaxes())},
            "buttons": {i: bool(js.get_button(i)) for i in range(js.get_numbuttons())},
            "hats": {i: js.get_hat(i) for i in range(js.get_numhats())},
        }

    def read_all(self) -> List[dict]:
        with self._lock:
            if pygame is not None:
                pygame.event.pump()
            states = [self._read(device_id, js) for device_id, js in self._joysticks.items()]
            for state in states:
                self._latest[state["device"]] = state
            return states

    def _current(self, device_id: str) -> dict:
        self._ensure_open()
        if self._t is None or not self._t.is_alive():
            self.read_all()
        with self._lock:
            return self._latest.get(device_id, {})

    def poll_axis(self, device_id: str, index: int) -> float:
        return float(self._current(device_id).get("axes", {}).get(index, 0.0))

    def poll_button(self, device_id: str, index: int) -> bool:
        return bool(self._current(device_id).get("buttons", {}).get(index, False))

    def poll_hat(self, device_id: str, index: int) -> int:
        return hat_to_degrees(self._current(device_id).get("hats", {}).get(index))

    def subscribe(self, callback):
        self._subs.append(callback)

    def start(self):
        self._stop.clear()
        self._ensure_open()
        self._t = threading.Thread(target=self._loop, name="JoystickReader", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        if self._t:
            self._t.join(timeout=1.0)

    def _emit(self, state):
        LOG.debug("raw state -> %s", state)
        for cb in self._subs:
            try:
                cb(state)
            except Exception:
                LOG.exception("subscriber callback failed")

    def _loop(self):
        # reconnect until at least one device shows up
        while not self._joysticks and not self._stop.is_set():
            time.sleep(1.0)
            self._ensure_open()
        while not self._stop.is_set():
            try:
                for state in self.read_all():
                    self._emit(state)
                time.sleep(1.0 / self.hz)
            except Exception:
                LOG.exception("error reading joysticks; will attempt reconnect")
                with self._lock:
                    self._joysticks = {}
                time.sleep(1.0)
                self._ensure_open()
