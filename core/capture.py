"""Input capture

Waits in a background thread for the operator to press a button or move an
axis. One capture runs per listening target; starting another for the same
target cancels the first. Timeout and cancellation both resolve to None.
"""
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Dict, Optional

from core.models import Category, InputKind, InputSource

LOG = logging.getLogger("hotasbridge.capture")

SETTLE_DELAY = 0.2  # let a button still held from the last click be released
DEFAULT_TIMEOUT_MS = 15000
DEFAULT_THRESHOLD = 0.15
POLL_INTERVAL = 1.0 / 120.0


@dataclass(frozen=True)
class CapturedInput:
    source: InputSource
    magnitude: float  # axis travel, 1.0 for buttons and hats


def _wants(category: Optional[Category], kind: InputKind) -> bool:
    if category is None:
        return True
    if category == Category.AXES:
        return kind == InputKind.AXIS
    return kind == InputKind.BUTTON


def _snapshot(provider, devices, category):
    snap = {}
    for dev in devices:
        if _wants(category, InputKind.AXIS):
            for i in range(dev.axis_count):
                snap[(dev.device_id, InputKind.AXIS, i)] = provider.poll_axis(dev.device_id, i)
        if _wants(category, InputKind.BUTTON):
            for i in range(dev.button_count):
                snap[(dev.device_id, InputKind.BUTTON, i)] = provider.poll_button(dev.device_id, i)
        if _wants(category, InputKind.HAT):
            for i in range(dev.hat_count):
                snap[(dev.device_id, InputKind.HAT, i)] = provider.poll_hat(dev.device_id, i)
    return snap


def _changed(baseline, current, threshold):
    """Best candidate in `current`: button press, hat push or largest axis travel."""
    best_key, best_mag = None, 0.0
    for key, value in current.items():
        kind = key[1]
        before = baseline.get(key)
        if kind == InputKind.BUTTON:
            if value and not before:
                return key, 1.0
        elif kind == InputKind.HAT:
            if value != -1 and before == -1:
                return key, 1.0
        else:
            travel = abs(value - (before or 0.0))
            if travel > threshold and travel > best_mag:
                best_key, best_mag = key, travel
    return best_key, best_mag


def detect_input(provider, category: Optional[Category] = None, threshold: float = DEFAULT_THRESHOLD,
                 timeout_ms: int = DEFAULT_TIMEOUT_MS, cancel: Optional[threading.Event] = None,
                 clock=time.monotonic) -> Optional[CapturedInput]:
    """Poll `provider` until an input changes against the starting snapshot."""
    cancel = cancel or threading.Event()
    devices = provider.devices()
    if not devices:
        LOG.warning("input capture: no devices connected")
        return None
    names = {d.device_id: d.name for d in devices}
    baseline = _snapshot(provider, devices, category)
    deadline = clock() + timeout_ms / 1000.0
    while clock() < deadline:
        key, magnitude = _changed(baseline, _snapshot(provider, devices, category), threshold)
        if key is not None:
            device_id, kind, index = key
            source = InputSource(device_id, names.get(device_id, device_id), kind, index)
            LOG.info("captured %s (%.2f)", source, magnitude)
            return CapturedInput(source, magnitude)
        if cancel.wait(POLL_INTERVAL):
            LOG.debug("input capture cancelled")
            return None
    LOG.info("input capture timed out after %d ms", timeout_ms)
    return None


class CaptureHandle:
    def __init__(self, target):
        self.target = target
        self.future = Future()
        self._cancel = threading.Event()

    def cancel(self):
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> Optional[CapturedInput]:
        return self.future.result(timeout)


class InputCapture:
    """Runs captures on behalf of UI targets (an output row, a binding cell)."""

    def __init__(self, provider, settle_delay: float = SETTLE_DELAY):
        self._provider = provider
        self._settle_delay = settle_delay
        self._lock = threading.Lock()
        self._pending: Dict[object, CaptureHandle] = {}

    def start(self, target, category: Optional[Category] = None, threshold: float = DEFAULT_THRESHOLD,
              timeout_ms: int = DEFAULT_TIMEOUT_MS, on_result=None) -> CaptureHandle:
        """Begin listening for `target`. `on_result` only runs for a captured input."""
        handle = CaptureHandle(target)
        with self._lock:
            previous = self._pending.get(target)
            self._pending[target] = handle
        if previous is not None:
            LOG.debug("cancelling previous capture for %s", target)
            previous.cancel()
        t = threading.Thread(
            target=self._run,
            args=(handle, category, threshold, timeout_ms, on_result),
            name=f"InputCapture-{target}",
            daemon=True,
        )
        t.start()
        return handle

    def cancel(self, target) -> bool:
        with self._lock:
            handle = self._pending.get(target)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self):
        with self._lock:
            handles = list(self._pending.values())
        for handle in handles:
            handle.cancel()

    def is_listening(self, target) -> bool:
        with self._lock:
            handle = self._pending.get(target)
        return handle is not None and not handle.cancelled

    def _run(self, handle: CaptureHandle, category, threshold, timeout_ms, on_result):
        result = None
        try:
            if not handle._cancel.wait(self._settle_delay):
                result = detect_input(self._provider, category, threshold, timeout_ms, cancel=handle._cancel)
        except Exception as exc:
            LOG.exception("input capture for %s failed", handle.target)
            self._finish(handle)
            handle.future.set_exception(exc)
            return
        if handle.cancelled:
            result = None
        self._finish(handle)
        handle.future.set_result(result)
        if result is not None and on_result is not None:
            try:
                on_result(result)
            except Exception:
                LOG.exception("capture callback failed")

    def _finish(self, handle):
        with self._lock:
            if self._pending.get(handle.target) is handle:
                del self._pending[handle.target]
