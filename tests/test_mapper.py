import pytest
import yaml

from core.models import (
    AxisCurve,
    AxisMapping,
    AxisToButtonMapping,
    ButtonMapping,
    ButtonMode,
    ButtonToAxisMapping,
    CurveType,
    Deadzone,
    HatMapping,
    InputKind,
    InputSource,
    MappingProfile,
    MergeOperation,
    OutputKind,
    OutputTarget,
    ShiftLayer,
)
from core.profiles import profile_to_dict
from mapper import Mapper, merge_values, snap_to_discrete


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def src(kind, index, device="x55"):
    return InputSource(device, device.upper(), kind, index)


def axis_profile(**kwargs):
    m = AxisMapping(name="x", output=OutputTarget(OutputKind.VJOY_AXIS, 1, 0), inputs=[src(InputKind.AXIS, 0)], **kwargs)
    return MappingProfile(name="p", axis_mappings=[m])


def button_profile(mode, **kwargs):
    m = ButtonMapping(name="b", output=OutputTarget(OutputKind.VJOY_BUTTON, 1, 0),
                      inputs=[src(InputKind.BUTTON, 0)], mode=mode, **kwargs)
    return MappingProfile(name="p", button_mappings=[m])


def press(mapper, pressed):
    return mapper.map_state_to_vjoy({"device": "x55", "buttons": {0: pressed}})[1].buttons[1]


def test_axis_invert_and_curve():
    m = Mapper(axis_profile(curve=AxisCurve(type=CurveType.EXPONENTIAL, inverted=True)))
    cmd = m.map_state_to_vjoy({"device": "x55", "axes": {0: 0.5}, "buttons": {}})
    assert pytest.approx(cmd[1].axes["AXIS_X"], rel=1e-3) == -0.25


def test_deadzone_applies_before_curve():
    dz = Deadzone(center_min=-0.2, center_max=0.2, center_enabled=True)
    m = Mapper(axis_profile(deadzone=dz, curve=AxisCurve(type=CurveType.EXPONENTIAL)))
    assert m.map_state_to_vjoy({"device": "x55", "axes": {0: 0.1}})[1].axes["AXIS_X"] == 0.0
    assert m.map_state_to_vjoy({"device": "x55", "axes": {0: 0.6}})[1].axes["AXIS_X"] == pytest.approx(0.25)


def test_multi_input_axis_merges_across_devices():
    mapping = AxisMapping(
        name="brakes",
        output=OutputTarget(OutputKind.VJOY_AXIS, 2, 6),
        inputs=[src(InputKind.AXIS, 0, "left"), src(InputKind.AXIS, 0, "right")],
        merge_op=MergeOperation.MAXIMUM,
    )
    m = Mapper(MappingProfile(name="p", axis_mappings=[mapping]))
    m.map_state_to_vjoy({"device": "left", "axes": {0: -0.5}})
    cmd = m.map_state_to_vjoy({"device": "right", "axes": {0: 0.25}})
    assert cmd[2].axes["AXIS_SL0"] == pytest.approx(0.25)


def test_merge_values():
    assert merge_values([0.2, 0.4], MergeOperation.AVERAGE) == pytest.approx(0.3)
    assert merge_values([0.2, 0.4], MergeOperation.MINIMUM) == 0.2
    assert merge_values([0.8, 0.4], MergeOperation.SUM) == 1.0


def test_buttons_are_one_based_and_any_input_presses():
    mapping = ButtonMapping(name="fire", output=OutputTarget(OutputKind.VJOY_BUTTON, 1, 4),
                            inputs=[src(InputKind.BUTTON, 0), src(InputKind.BUTTON, 1)])
    m = Mapper(MappingProfile(name="p", button_mappings=[mapping]))
    cmd = m.map_state_to_vjoy({"device": "x55", "buttons": {0: False, 1: True}})
    assert cmd[1].buttons == {5: True}


def test_disabled_mapping_is_skipped():
    profile = button_profile(ButtonMode.NORMAL)
    profile.button_mappings[0].enabled = False
    assert Mapper(profile).map_state_to_vjoy({"device": "x55", "buttons": {0: True}}) == {}


def test_toggle_latches_on_rising_edge():
    m = Mapper(button_profile(ButtonMode.TOGGLE))
    assert press(m, True) is True
    assert press(m, True) is True
    assert press(m, False) is True
    assert press(m, True) is False


def test_pulse_lasts_for_duration():
    clock = FakeClock()
    m = Mapper(button_profile(ButtonMode.PULSE, pulse_duration_ms=200), clock=clock)
    assert press(m, True) is True
    assert m.pending_pulses() == pytest.approx(0.2)
    clock.now += 0.1
    assert press(m, False) is True
    clock.now += 0.15
    assert m.refresh()[1].buttons[1] is False
    assert m.pending_pulses() is None


def test_hold_to_activate():
    clock = FakeClock()
    m = Mapper(button_profile(ButtonMode.HOLD_TO_ACTIVATE, hold_duration_ms=500), clock=clock)
    assert press(m, True) is False
    clock.now += 0.6
    assert press(m, True) is True
    assert press(m, False) is False


def test_keyboard_output_goes_to_keys():
    profile = button_profile(ButtonMode.NORMAL)
    profile.button_mappings[0].output = OutputTarget(OutputKind.KEYBOARD, 1, 0, key_name="F1", modifiers=["LCtrl"])
    cmd = Mapper(profile).map_state_to_vjoy({"device": "x55", "buttons": {0: True}})
    assert cmd[1].keys == {"LCtrl+F1": True}
    assert cmd[1].buttons == {}


def test_hats_continuous_and_discrete():
    hats = [
        HatMapping(name="h1", output=OutputTarget(OutputKind.VJOY_POV, 1, 0), inputs=[src(InputKind.HAT, 0)]),
        HatMapping(name="h2", output=OutputTarget(OutputKind.VJOY_POV, 1, 1), inputs=[src(InputKind.HAT, 0)],
                   use_continuous=False),
    ]
    m = Mapper(MappingProfile(name="p", hat_mappings=hats))
    cmd = m.map_state_to_vjoy({"device": "x55", "hats": {0: (1, 1)}})
    assert cmd[1].povs == {1: 45, 2: 90}
    cmd = m.map_state_to_vjoy({"device": "x55", "hats": {0: (0, 0)}})
    assert cmd[1].povs == {1: -1, 2: -1}


def test_snap_to_discrete():
    assert snap_to_discrete(-1) == -1
    assert snap_to_discrete(100) == 90
    assert snap_to_discrete(200) == 180
    assert snap_to_discrete(300) == 270
    assert snap_to_discrete(350) == 0


def test_full_state_merges_devices():
    profile = axis_profile()
    profile.button_mappings = button_profile(ButtonMode.NORMAL).button_mappings
    cmds = Mapper(profile).map_state_to_vjoy_full({"x55": {"axes": {0: 0.5}, "buttons": {0: True}}})
    assert cmds[1].axes["AXIS_X"] == pytest.approx(0.5)
    assert cmds[1].buttons[1] is True


def test_load_profile_from_yaml(tmp_path):
    path = tmp_path / "p.yaml"
    path.write_text(yaml.safe_dump(profile_to_dict(axis_profile())), encoding="utf-8")
    m = Mapper.load_profile(str(path))
    assert m.profile.name == "p"
    assert m.map_state_to_vjoy({"device": "x55", "axes": {0: -1.0}})[1].axes["AXIS_X"] == pytest.approx(-1.0)


def axis_value(mapper, value):
    return mapper.map_state_to_vjoy({"device": "x55", "axes": {0: value}})[1].axes["AXIS_X"]


def test_saturation_reaches_full_scale_early():
    m = Mapper(axis_profile(curve=AxisCurve(saturation=0.5)))
    assert axis_value(m, 0.25) == pytest.approx(0.5)
    assert axis_value(m, 0.6) == pytest.approx(1.0)
    assert axis_value(m, -0.75) == pytest.approx(-1.0)


def test_saturation_applies_after_deadzone():
    dz = Deadzone(center_min=-0.2, center_max=0.2, center_enabled=True)
    m = Mapper(axis_profile(deadzone=dz, curve=AxisCurve(saturation=0.5)))
    # deadzone gives 0.25, saturation doubles it
    assert axis_value(m, 0.4) == pytest.approx(0.5)


def threshold_mapper(**kwargs):
    mapping = AxisToButtonMapping(name="afterburner", output=OutputTarget(OutputKind.VJOY_BUTTON, 1, 9),
                                  inputs=[src(InputKind.AXIS, 0)], **kwargs)
    return Mapper(MappingProfile(name="p", axis_to_button_mappings=[mapping]))


def crossed(mapper, value):
    return mapper.map_state_to_vjoy({"device": "x55", "axes": {0: value}})[1].buttons[10]


def test_axis_to_button_hysteresis():
    m = threshold_mapper(threshold=0.5, hysteresis=0.1)
    assert [crossed(m, v) for v in (0.45, 0.55, 0.45, 0.35, 0.45)] == [False, True, True, False, False]


def test_axis_to_button_below_threshold_and_invert():
    m = threshold_mapper(threshold=-0.5, activate_above=False, hysteresis=0.1)
    assert [crossed(m, v) for v in (-0.6, -0.45, -0.35)] == [True, True, False]

    m = threshold_mapper(threshold=0.5, invert=True)
    assert crossed(m, 0.9) is False
    assert crossed(m, 0.0) is True


def test_axis_to_button_keyboard_output():
    mapping = AxisToButtonMapping(name="brake", output=OutputTarget(OutputKind.KEYBOARD, 1, 0, key_name="B"),
                                  inputs=[src(InputKind.AXIS, 0)], threshold=0.0, activate_above=False)
    m = Mapper(MappingProfile(name="p", axis_to_button_mappings=[mapping]))
    assert m.map_state_to_vjoy({"device": "x55", "axes": {0: -0.5}})[1].keys == {"B": True}


def ramp_mapper(clock, **kwargs):
    mapping = ButtonToAxisMapping(name="boost", output=OutputTarget(OutputKind.VJOY_AXIS, 1, 6),
                                  inputs=[src(InputKind.BUTTON, 0)], **kwargs)
    return Mapper(MappingProfile(name="p", button_to_axis_mappings=[mapping]), clock=clock)


def ramp(mapper, pressed):
    return mapper.map_state_to_vjoy({"device": "x55", "buttons": {0: pressed}})[1].axes["AXIS_SL0"]


def test_button_to_axis_instant():
    m = ramp_mapper(FakeClock(), pressed_value=0.8, released_value=-1.0)
    assert ramp(m, False) == pytest.approx(-1.0)
    assert ramp(m, True) == pytest.approx(0.8)


def test_button_to_axis_smoothing():
    clock = FakeClock()
    m = ramp_mapper(clock, smoothing_ms=100)
    assert ramp(m, False) == 0.0
    clock.now += 0.05
    assert ramp(m, True) == pytest.approx(0.5)
    assert m.pending_pulses() == 0.0
    clock.now += 0.05
    assert m.refresh()[1].axes["AXIS_SL0"] == pytest.approx(0.75)
    clock.now += 0.2
    assert ramp(m, True) == pytest.approx(1.0)
    assert m.pending_pulses() is None


def test_button_to_axis_invert():
    m = ramp_mapper(FakeClock(), invert=True)
    assert ramp(m, True) == pytest.approx(-1.0)


def test_shift_layer_swaps_mappings():
    layer = ShiftLayer(name="Shift", activator=src(InputKind.BUTTON, 5))
    base = ButtonMapping(name="base", output=OutputTarget(OutputKind.VJOY_BUTTON, 1, 0), inputs=[src(InputKind.BUTTON, 0)])
    shifted = ButtonMapping(name="shifted", output=OutputTarget(OutputKind.VJOY_BUTTON, 1, 1),
                            inputs=[src(InputKind.BUTTON, 0)], layer_id=layer.id)
    m = Mapper(MappingProfile(name="p", button_mappings=[base, shifted], shift_layers=[layer]))

    assert m.map_state_to_vjoy({"device": "x55", "buttons": {0: True}})[1].buttons == {1: True}
    assert m.active_layers == set()

    assert m.map_state_to_vjoy({"device": "x55", "buttons": {0: True, 5: True}})[1].buttons == {2: True}
    assert m.active_layers == {layer.id}

    assert m.map_state_to_vjoy({"device": "x55", "buttons": {0: False, 5: False}})[1].buttons == {1: False}


def test_mapping_on_unknown_layer_never_runs():
    profile = button_profile(ButtonMode.NORMAL)
    profile.button_mappings[0].layer_id = "gone"
    assert Mapper(profile).map_state_to_vjoy({"device": "x55", "buttons": {0: True}}) == {}
