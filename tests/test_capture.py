import threading

from core.capture import InputCapture, detect_input
from core.models import Category, InputKind, PhysicalDeviceInfo
from core.reader import InputProvider


class ScriptedProvider(InputProvider):
    """Each poll of an input returns the next scripted value; the last one repeats."""

    def __init__(self, script=None, axes=2, buttons=4, hats=1):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.info = PhysicalDeviceInfo("stick", "Stick", axis_count=axes, button_count=buttons, hat_count=hats)

    def devices(self):
        return [self.info]

    def _next(self, key, default):
        values = self.script.get(key)
        if not values:
            return default
        return values.pop(0) if len(values) > 1 else values[0]

    def poll_axis(self, device_id, index):
        return self._next(("axis", index), 0.0)

    def poll_button(self, device_id, index):
        return self._next(("button", index), False)

    def poll_hat(self, device_id, index):
        return self._next(("hat", index), -1)


def test_detects_button_press():
    provider = ScriptedProvider({("button", 2): [False, False, True]})
    captured = detect_input(provider, timeout_ms=2000)
    assert captured.source.kind == InputKind.BUTTON
    assert captured.source.index == 2
    assert captured.source.device_name == "Stick"
    assert str(captured.source) == "Stick Button 3"


def test_held_button_is_not_a_press():
    provider = ScriptedProvider({("button", 0): [True]})
    assert detect_input(provider, timeout_ms=50) is None


def test_axis_needs_threshold_and_picks_largest_travel():
    provider = ScriptedProvider({("axis", 0): [0.0, 0.1, 0.3], ("axis", 1): [0.0, 0.05, 0.8]})
    captured = detect_input(provider, category=Category.AXES, timeout_ms=2000)
    assert captured.source.kind == InputKind.AXIS
    assert captured.source.index == 1
    assert captured.magnitude > 0.7


def test_category_filters_inputs():
    provider = ScriptedProvider({("button", 1): [False, True], ("axis", 0): [0.0, 0.9]})
    captured = detect_input(provider, category=Category.BUTTONS, timeout_ms=2000)
    assert captured.source.kind == InputKind.BUTTON


def test_hat_push_is_captured_when_unfiltered():
    provider = ScriptedProvider({("hat", 0): [-1, 90]})
    captured = detect_input(provider, timeout_ms=2000)
    assert captured.source.kind == InputKind.HAT


def test_no_devices_returns_none():
    provider = ScriptedProvider()
    provider.info = None
    provider.devices = lambda: []
    assert detect_input(provider, timeout_ms=2000) is None


def test_await_input_uses_provider():
    provider = ScriptedProvider({("button", 3): [False, True]})
    assert provider.await_input(timeout_ms=2000).source.index == 3


def test_capture_calls_back_with_result():
    provider = ScriptedProvider({("button", 0): [False, True]})
    got = []
    done = threading.Event()

    def on_result(captured):
        got.append(captured)
        done.set()

    capture = InputCapture(provider, settle_delay=0.01)
    handle = capture.start("row-1", on_result=on_result)
    assert handle.result(timeout=5).source.index == 0
    assert done.wait(5)
    assert got[0].source.index == 0
    assert not capture.is_listening("row-1")


def test_capture_times_out_to_none():
    capture = InputCapture(ScriptedProvider(), settle_delay=0.0)
    handle = capture.start("row-1", timeout_ms=50)
    assert handle.result(timeout=5) is None


def test_new_capture_cancels_previous_for_same_target():
    capture = InputCapture(ScriptedProvider(), settle_delay=0.0)
    first = capture.start("row-1", timeout_ms=10000)
    second = capture.start("row-1", timeout_ms=10000)
    assert first.result(timeout=5) is None
    assert first.cancelled
    assert capture.is_listening("row-1")
    assert capture.cancel("row-1")
    assert second.result(timeout=5) is None
    assert not capture.cancel("row-2")


def test_cancel_all():
    capture = InputCapture(ScriptedProvider(), settle_delay=0.0)
    handles = [capture.start(t, timeout_ms=10000) for t in ("a", "b")]
    capture.cancel_all()
    assert [h.result(timeout=5) for h in handles] == [None, None]
