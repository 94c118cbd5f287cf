"""Profile mapping lookups and mutations

Every function takes the profile explicitly. At most one mapping owns an
output slot; button and keyboard outputs share the button slots.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Set

from core.conflicts import DuplicateResolution
from core.models import (
    AxisCurve,
    AxisMapping,
    AxisToButtonMapping,
    ButtonMapping,
    ButtonMode,
    ButtonToAxisMapping,
    CurveType,
    HatMapping,
    InputSource,
    MappingProfile,
    OutputKind,
    OutputTarget,
)

LOG = logging.getLogger("hotasbridge.resolver")


class BindStatus(str, Enum):
    BOUND = "bound"
    NEEDS_RESOLUTION = "needs_resolution"
    CANCELLED = "cancelled"
    REPLACED = "replaced"
    APPLIED = "applied"
    NO_PROFILE = "no_profile"


@dataclass
class BindResult:
    status: BindStatus
    mapping: object = None
    conflicts: list = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.status in (BindStatus.BOUND, BindStatus.REPLACED, BindStatus.APPLIED)


def mappings_for_kind(profile: MappingProfile, kind: OutputKind) -> list:
    if kind == OutputKind.VJOY_AXIS:
        return profile.axis_mappings
    if kind == OutputKind.VJOY_POV:
        return profile.hat_mappings
    return profile.button_mappings


def _collection_of(profile: MappingProfile, mapping) -> list:
    if isinstance(mapping, AxisMapping):
        return profile.axis_mappings
    if isinstance(mapping, HatMapping):
        return profile.hat_mappings
    if isinstance(mapping, AxisToButtonMapping):
        return profile.axis_to_button_mappings
    if isinstance(mapping, ButtonToAxisMapping):
        return profile.button_to_axis_mappings
    return profile.button_mappings


def find_mapping_for_slot(profile: MappingProfile, output_kind: OutputKind, vjoy_device: int, index: int):
    for mapping in mappings_for_kind(profile, output_kind):
        if mapping.output.vjoy_device == vjoy_device and mapping.output.index == index:
            return mapping
    return None


def find_mappings_using_input(profile: MappingProfile, source: InputSource, exclude=None) -> list:
    return [m for m in profile.all_mappings() if m is not exclude and source in m.inputs]


def _new_mapping_name(source: InputSource, output: OutputTarget) -> str:
    if output.kind == OutputKind.VJOY_AXIS:
        return f"{source.device_name} Axis {source.index} -> {output}"
    if output.kind == OutputKind.VJOY_POV:
        return f"{source.device_name} Hat {source.index} -> {output}"
    return f"{source.device_name} Button {source.index + 1} -> {output}"


def _multi_input_name(output: OutputTarget, count: int) -> str:
    if output.kind == OutputKind.VJOY_AXIS:
        slot = f"Axis {output.index}"
    elif output.kind == OutputKind.VJOY_POV:
        slot = f"POV {output.index}"
    else:
        slot = f"Button {output.index + 1}"
    return f"vJoy {output.vjoy_device} {slot} ({count} inputs)"


def add_input_to_mapping(profile: MappingProfile, output: OutputTarget, source: InputSource,
                         mode: ButtonMode = ButtonMode.NORMAL):
    """Append `source` to the mapping owning `output`'s slot, creating it if needed."""
    mapping = find_mapping_for_slot(profile, output.kind, output.vjoy_device, output.index)
    if mapping is not None:
        mapping.inputs.append(source)
        if isinstance(mapping, ButtonMapping):
            # the button panel's current output settings win
            mapping.output.kind = output.kind
            mapping.output.key_name = output.key_name if output.kind == OutputKind.KEYBOARD else None
            mapping.output.modifiers = list(output.modifiers) if output.kind == OutputKind.KEYBOARD else []
            mapping.mode = mode
        mapping.name = _multi_input_name(mapping.output, len(mapping.inputs))
        LOG.info("added %s to %s", source, mapping.name)
    else:
        name = _new_mapping_name(source, output)
        if output.kind == OutputKind.VJOY_AXIS:
            mapping = AxisMapping(name=name, output=output, inputs=[source],
                                  curve=AxisCurve(type=CurveType.LINEAR))
        elif output.kind == OutputKind.VJOY_POV:
            mapping = HatMapping(name=name, output=output, inputs=[source])
        else:
            mapping = ButtonMapping(name=name, output=output, inputs=[source], mode=mode)
        mappings_for_kind(profile, output.kind).append(mapping)
        LOG.info("created mapping %s", name)
    profile.touch()
    return mapping


def remove_input_at(profile: MappingProfile, mapping, index: int) -> bool:
    """Remove one input from a mapping. Returns True when the mapping was deleted because it became empty."""
    if not 0 <= index < len(mapping.inputs):
        LOG.debug("remove_input_at: index %d out of range for %s", index, mapping.name)
        return False
    removed = mapping.inputs.pop(index)
    LOG.info("removed %s from %s", removed, mapping.name)
    deleted = False
    if not mapping.inputs:
        collection = _collection_of(profile, mapping)
        if mapping in collection:
            collection.remove(mapping)
        LOG.info("deleted empty mapping %s", mapping.name)
        deleted = True
    profile.touch()
    return deleted


def remove_input_everywhere(profile: MappingProfile, source: InputSource, keep=None) -> int:
    """Strip `source` from every mapping except `keep`. Returns the number of mappings touched."""
    touched = 0
    for mapping in list(profile.all_mappings()):
        if mapping is keep or source not in mapping.inputs:
            continue
        mapping.inputs[:] = [i for i in mapping.inputs if i != source]
        touched += 1
        if not mapping.inputs:
            _collection_of(profile, mapping).remove(mapping)
            LOG.info("deleted mapping %s: no inputs left", mapping.name)
    if touched:
        profile.touch()
    return touched


def bind_input(profile: Optional[MappingProfile], output: OutputTarget, source: InputSource,
               resolution: Optional[DuplicateResolution] = None,
               mode: ButtonMode = ButtonMode.NORMAL) -> BindResult:
    """Bind a captured input to an output slot.

    If the input already drives another mapping nothing is written until the
    caller passes a resolution: CANCEL discards the input, REPLACE removes it
    from every other mapping first and APPLY_ANYWAY keeps both bindings.
    """
    if profile is None:
        LOG.warning("bind_input: no active profile")
        return BindResult(BindStatus.NO_PROFILE)

    target = find_mapping_for_slot(profile, output.kind, output.vjoy_device, output.index)
    if target is not None and source in target.inputs:
        return BindResult(BindStatus.BOUND, target)

    conflicts = find_mappings_using_input(profile, source, exclude=target)
    if conflicts and resolution is None:
        LOG.debug("%s already used by %s", source, [m.name for m in conflicts])
        return BindResult(BindStatus.NEEDS_RESOLUTION, None, conflicts)

    if conflicts and resolution == DuplicateResolution.CANCEL:
        return BindResult(BindStatus.CANCELLED, None, conflicts)

    status = BindStatus.BOUND
    if conflicts and resolution == DuplicateResolution.REPLACE:
        remove_input_everywhere(profile, source)
        status = BindStatus.REPLACED
    elif conflicts:
        status = BindStatus.APPLIED

    mapping = add_input_to_mapping(profile, output, source, mode)
    return BindResult(status, mapping, conflicts)


def remove_mapping_for_slot(profile: MappingProfile, output_kind: OutputKind, vjoy_device: int, index: int) -> bool:
    mapping = find_mapping_for_slot(profile, output_kind, vjoy_device, index)
    if mapping is None:
        return False
    _collection_of(profile, mapping).remove(mapping)
    profile.touch()
    LOG.info("cleared %s", mapping.name)
    return True


def set_button_timing(profile: MappingProfile, output: OutputTarget, mode: Optional[ButtonMode] = None,
                      pulse_ms: Optional[int] = None, hold_ms: Optional[int] = None):
    """Change the mode and durations of the button mapping on `output`'s slot.

    Durations are clamped to the pulse and hold ranges. Returns the mapping,
    or None when the slot is empty.
    """
    mapping = find_mapping_for_slot(profile, output.kind, output.vjoy_device, output.index)
    if not isinstance(mapping, ButtonMapping):
        return None
    if mode is not None:
        mapping.mode = mode
    mapping.set_durations(pulse_ms, hold_ms)
    profile.touch()
    LOG.debug("%s: mode=%s pulse=%dms hold=%dms", mapping.name, mapping.mode.value,
              mapping.pulse_duration_ms, mapping.hold_duration_ms)
    return mapping


def clear_device_mappings(profile: MappingProfile, device_id: str, vjoy_device: Optional[int] = None) -> Dict[str, int]:
    """Delete every mapping fed by `device_id` (optionally only those targeting `vjoy_device`)."""
    def _matches(m):
        if vjoy_device is not None and m.output.vjoy_device != vjoy_device:
            return False
        return any(i.device_id == device_id for i in m.inputs)

    counts = {}
    for key, collection in (("axes", profile.axis_mappings),
                            ("buttons", profile.button_mappings),
                            ("hats", profile.hat_mappings)):
        before = len(collection)
        collection[:] = [m for m in collection if not _matches(m)]
        counts[key] = before - len(collection)
    if any(counts.values()):
        profile.touch()
        LOG.info("cleared mappings for device %s: %s", device_id, counts)
    return counts


def vjoy_output_for_input(profile: MappingProfile, source: InputSource) -> Optional[OutputTarget]:
    """The vJoy output driven by a physical input, if any (first enabled match)."""
    for mapping in profile.all_mappings():
        if mapping.enabled and source in mapping.inputs and mapping.output.kind != OutputKind.KEYBOARD:
            return mapping.output
    return None


def required_vjoy_devices(profile: MappingProfile) -> Set[int]:
    return {m.output.vjoy_device for m in profile.all_mappings() if m.output.kind != OutputKind.KEYBOARD}

