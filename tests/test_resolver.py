from core import resolver
from core.conflicts import DuplicateResolution
from core.models import (
    AxisToButtonMapping,
    ButtonMapping,
    ButtonMode,
    InputKind,
    InputSource,
    MappingProfile,
    OutputKind,
    OutputTarget,
)
from core.resolver import BindStatus

BTN3 = InputSource("devA", "Device A", InputKind.BUTTON, 3)
BTN4 = InputSource("devA", "Device A", InputKind.BUTTON, 4)
AX0 = InputSource("devA", "Device A", InputKind.AXIS, 0)
AX0_B = InputSource("devB", "Device B", InputKind.AXIS, 0)


def button(index, vjoy=1):
    return OutputTarget(OutputKind.VJOY_BUTTON, vjoy, index)


def test_bind_creates_named_mapping():
    profile = MappingProfile(name="p")
    result = resolver.bind_input(profile, button(1), BTN3)
    assert result.status == BindStatus.BOUND
    assert result.committed
    assert profile.button_mappings == [result.mapping]
    assert result.mapping.name == "Device A Button 4 -> vJoy 1 Button 2"


def test_bind_without_profile_is_reported():
    result = resolver.bind_input(None, button(1), BTN3)
    assert result.status == BindStatus.NO_PROFILE
    assert not result.committed


def test_rebinding_same_input_to_same_slot_is_noop():
    profile = MappingProfile(name="p")
    first = resolver.bind_input(profile, button(1), BTN3)
    again = resolver.bind_input(profile, button(1), BTN3)
    assert again.status == BindStatus.BOUND
    assert again.mapping is first.mapping
    assert first.mapping.inputs == [BTN3]


def test_duplicate_input_needs_resolution_then_replace():
    profile = MappingProfile(name="p")
    existing = resolver.bind_input(profile, button(1), BTN3).mapping

    assert resolver.find_mappings_using_input(profile, BTN3) == [existing]
    pending = resolver.bind_input(profile, button(4), BTN3)
    assert pending.status == BindStatus.NEEDS_RESOLUTION
    assert pending.conflicts == [existing]
    assert len(profile.button_mappings) == 1

    replaced = resolver.bind_input(profile, button(4), BTN3, DuplicateResolution.REPLACE)
    assert replaced.status == BindStatus.REPLACED
    users = resolver.find_mappings_using_input(profile, BTN3)
    assert len(users) == 1
    assert users[0].output.slot == (1, 4)


def test_cancel_leaves_profile_alone():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(1), BTN3)
    result = resolver.bind_input(profile, button(4), BTN3, DuplicateResolution.CANCEL)
    assert result.status == BindStatus.CANCELLED
    assert [m.output.index for m in profile.button_mappings] == [1]


def test_apply_anyway_keeps_both():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(1), BTN3)
    result = resolver.bind_input(profile, button(4), BTN3, DuplicateResolution.APPLY_ANYWAY)
    assert result.status == BindStatus.APPLIED
    assert len(resolver.find_mappings_using_input(profile, BTN3)) == 2


def test_second_input_joins_existing_slot():
    profile = MappingProfile(name="p")
    axis = OutputTarget(OutputKind.VJOY_AXIS, 1, 2)
    resolver.bind_input(profile, axis, AX0)
    result = resolver.bind_input(profile, axis, AX0_B)
    assert len(profile.axis_mappings) == 1
    assert result.mapping.inputs == [AX0, AX0_B]
    assert result.mapping.name == "vJoy 1 Axis 2 (2 inputs)"


def test_keyboard_output_takes_over_button_slot():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(0), BTN3)
    key = OutputTarget(OutputKind.KEYBOARD, 1, 0, key_name="F1", modifiers=["LCtrl"])
    result = resolver.bind_input(profile, key, BTN4, mode=ButtonMode.TOGGLE)
    assert len(profile.button_mappings) == 1
    m = result.mapping
    assert m.output.kind == OutputKind.KEYBOARD
    assert m.output.key_name == "F1"
    assert m.mode == ButtonMode.TOGGLE
    assert m.inputs == [BTN3, BTN4]


def test_removing_last_input_removes_mapping():
    profile = MappingProfile(name="p")
    m = resolver.bind_input(profile, button(5), BTN3).mapping
    assert resolver.remove_input_at(profile, m, 0)
    assert resolver.find_mapping_for_slot(profile, OutputKind.VJOY_BUTTON, 1, 5) is None
    assert profile.button_mappings == []


def test_remove_input_keeps_mapping_with_inputs_left():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(5), BTN3)
    m = resolver.bind_input(profile, button(5), BTN4).mapping
    assert not resolver.remove_input_at(profile, m, 0)
    assert m.inputs == [BTN4]
    assert not resolver.remove_input_at(profile, m, 7)


def test_clear_device_mappings_counts_per_kind():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(0), BTN3)
    resolver.bind_input(profile, button(0, vjoy=2), BTN4)
    resolver.bind_input(profile, OutputTarget(OutputKind.VJOY_AXIS, 1, 0), AX0)
    resolver.bind_input(profile, OutputTarget(OutputKind.VJOY_AXIS, 1, 1), AX0_B)

    counts = resolver.clear_device_mappings(profile, "devA", vjoy_device=1)
    assert counts == {"axes": 1, "buttons": 1, "hats": 0}
    assert len(profile.button_mappings) == 1
    assert profile.axis_mappings[0].inputs == [AX0_B]


def test_remove_mapping_for_slot_and_required_devices():
    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(0), BTN3)
    resolver.bind_input(profile, OutputTarget(OutputKind.VJOY_POV, 3, 0),
                        InputSource("devA", "Device A", InputKind.HAT, 0))
    assert resolver.required_vjoy_devices(profile) == {1, 3}
    assert resolver.vjoy_output_for_input(profile, BTN3).slot == (1, 0)
    assert resolver.remove_mapping_for_slot(profile, OutputKind.VJOY_BUTTON, 1, 0)
    assert not resolver.remove_mapping_for_slot(profile, OutputKind.VJOY_BUTTON, 1, 0)
    assert resolver.required_vjoy_devices(profile) == {3}


def test_button_durations_are_clamped():
    mapping = ButtonMapping(name="b", output=button(0), pulse_duration_ms=20, hold_duration_ms=9000)
    assert (mapping.pulse_duration_ms, mapping.hold_duration_ms) == (100, 2000)

    profile = MappingProfile(name="p")
    resolver.bind_input(profile, button(0), BTN3)
    changed = resolver.set_button_timing(profile, button(0), ButtonMode.PULSE, pulse_ms=1500, hold_ms=250)
    assert changed is profile.button_mappings[0]
    assert changed.mode == ButtonMode.PULSE
    assert (changed.pulse_duration_ms, changed.hold_duration_ms) == (1000, 250)
    assert resolver.set_button_timing(profile, button(5), pulse_ms=200) is None


def test_threshold_mappings_take_part_in_input_lookups():
    profile = MappingProfile(name="p")
    a2b = AxisToButtonMapping(name="afterburner", output=button(9), inputs=[AX0])
    profile.axis_to_button_mappings.append(a2b)
    resolver.bind_input(profile, OutputTarget(OutputKind.VJOY_AXIS, 1, 0), AX0, DuplicateResolution.REPLACE)
    assert profile.axis_to_button_mappings == []
    assert profile.axis_mappings[0].inputs == [AX0]
