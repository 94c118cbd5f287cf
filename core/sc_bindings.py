"""Star Citizen action bindings for the export profile

Bindings connect a game action to a vJoy input such as `button5` on vJoy 1,
which the game sees as `js1_button5`. Conflicts are reported as
`ExportConflict` values and resolved by the caller's `SharedResolution`.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from core.conflicts import ConflictKind, DialogError, ExportConflict, SharedResolution
from core.models import (
    MappingProfile,
    OutputKind,
    OutputTarget,
    SCActionBinding,
    SCDeviceType,
    SCExportProfile,
    SCInputType,
    SCSharedInput,
)

LOG = logging.getLogger("hotasbridge.sc")

# SC names for vJoy axes 0..7
SC_AXIS_NAMES = ("x", "y", "z", "rotx", "roty", "rotz", "slider1", "slider2")


class AssignStatus(str, Enum):
    BOUND = "bound"
    NEEDS_RESOLUTION = "needs_resolution"
    CANCELLED = "cancelled"
    SHARED = "shared"
    REPLACED = "replaced"


@dataclass
class AssignResult:
    status: AssignStatus
    binding: Optional[SCActionBinding] = None
    conflicts: List[ExportConflict] = field(default_factory=list)
    shared: Optional[SCSharedInput] = None


def input_name_for_output(output: OutputTarget) -> Optional[str]:
    if output.kind == OutputKind.VJOY_BUTTON:
        return f"button{output.index + 1}"
    if output.kind == OutputKind.VJOY_AXIS and 0 <= output.index < len(SC_AXIS_NAMES):
        return SC_AXIS_NAMES[output.index]
    return None


def format_as_sc_input(output: OutputTarget, sc_instance: int) -> Optional[str]:
    """`js1_button5`, `js2_rotz` ... or None for outputs the game cannot see."""
    name = input_name_for_output(output)
    if name is None:
        return None
    return f"js{sc_instance}_{name}"


def parse_button_index(input_name: str) -> int:
    """0-based vJoy button index from `button33`, or -1."""
    if not input_name.lower().startswith("button"):
        return -1
    digits = input_name[6:]
    if not digits.isdigit() or int(digits) < 1:
        return -1
    return int(digits) - 1


def infer_input_type(input_name: str) -> SCInputType:
    lowered = input_name.lower()
    if lowered.startswith("button"):
        return SCInputType.BUTTON
    if lowered.startswith("hat"):
        return SCInputType.HAT
    return SCInputType.AXIS


def _same_modifiers(a: Sequence[str], b: Sequence[str]) -> bool:
    return sorted(m.lower() for m in a) == sorted(m.lower() for m in b)


def input_key(export: SCExportProfile, binding: SCActionBinding) -> str:
    """Game-side identity of the input a binding uses, modifiers included."""
    mods = sorted(binding.modifiers, key=str.lower)
    prefix = "+".join(mods) + "+" if mods else ""
    instance = binding.physical_device_id or export.sc_instance(binding.vjoy_device)
    return f"js{instance}_{prefix}{binding.input_name}".lower()


def find_bindings(export: SCExportProfile, action_map: str, action_name: str) -> List[SCActionBinding]:
    return [b for b in export.bindings if b.action_key == (action_map, action_name)]


def set_binding(export: SCExportProfile, binding: SCActionBinding) -> SCActionBinding:
    """Add a binding, replacing the action's previous binding for the same device."""
    def _same_slot(b):
        if b.action_key != binding.action_key or b.device_type != binding.device_type:
            return False
        if binding.device_type != SCDeviceType.JOYSTICK:
            return True
        if binding.physical_device_id is not None:
            return b.physical_device_id == binding.physical_device_id
        return b.physical_device_id is None and b.vjoy_device == binding.vjoy_device

    export.bindings[:] = [b for b in export.bindings if not _same_slot(b)]
    export.bindings.append(binding)
    export.touch()
    return binding


def remove_binding(export: SCExportProfile, binding: SCActionBinding) -> bool:
    for i, b in enumerate(export.bindings):
        if b is binding:
            del export.bindings[i]
            export.touch()
            return True
    return False


def remove_action_bindings(export: SCExportProfile, action_map: str, action_name: str) -> int:
    before = len(export.bindings)
    export.bindings[:] = [b for b in export.bindings if b.action_key != (action_map, action_name)]
    removed = before - len(export.bindings)
    if removed:
        export.touch()
    return removed


def conflicting_bindings(export: SCExportProfile, vjoy_device: int, input_name: str,
                         exclude: Optional[Tuple[str, str]] = None,
                         modifiers: Sequence[str] = ()) -> List[SCActionBinding]:
    """vJoy bindings already using `input_name` on `vjoy_device` with the same modifiers."""
    return [
        b for b in export.bindings
        if b.is_vjoy
        and b.vjoy_device == vjoy_device
        and b.input_name.lower() == input_name.lower()
        and _same_modifiers(b.modifiers, modifiers)
        and b.action_key != exclude
    ]


def conflicting_action_keys(export: SCExportProfile) -> Set[Tuple[str, str]]:
    """Actions whose joystick input is also used by another action."""
    usage: Dict[str, List[Tuple[str, str]]] = {}
    for b in export.bindings:
        if b.device_type != SCDeviceType.JOYSTICK:
            continue
        usage.setdefault(input_key(export, b), []).append(b.action_key)
    result = set()
    for actions in usage.values():
        if len(set(actions)) > 1:
            result.update(actions)
    return result


def find_export_conflicts(export: SCExportProfile, action_map: str, action_name: str,
                          vjoy_device: int, input_name: str,
                          modifiers: Sequence[str] = ()) -> List[ExportConflict]:
    """Conflicts raised by binding the action to `input_name` on `vjoy_device`."""
    key = (action_map, action_name)
    conflicts = []
    claimed = conflicting_bindings(export, vjoy_device, input_name, exclude=key, modifiers=modifiers)
    if claimed:
        conflicts.append(ExportConflict(ConflictKind.INPUT_CLAIMED, action_map, action_name,
                                        input_name, vjoy_device, tuple(claimed)))
    elsewhere = [b for b in export.bindings
                 if b.action_key == key and b.is_vjoy and b.vjoy_device != vjoy_device]
    if elsewhere:
        conflicts.append(ExportConflict(ConflictKind.ACTION_ON_OTHER_DEVICE, action_map, action_name,
                                        input_name, vjoy_device, tuple(elsewhere[:1])))
    return conflicts


def share(export: SCExportProfile, primary: SCActionBinding, vjoy_slot: int, input_name: str,
          profile: Optional[MappingProfile] = None) -> SCSharedInput:
    """Make `input_name` on `vjoy_slot` trigger `primary`'s action too.

    Button mappings writing the secondary vJoy button are rerouted to the
    primary binding's button; no new action binding is created.
    """
    secondary_index = parse_button_index(input_name)
    primary_index = parse_button_index(primary.input_name)
    rerouted = []
    if profile is not None and secondary_index >= 0 and primary_index >= 0:
        for mapping in profile.button_mappings:
            out = mapping.output
            if out.kind == OutputKind.VJOY_BUTTON and out.vjoy_device == vjoy_slot and out.index == secondary_index:
                out.vjoy_device = primary.vjoy_device
                out.index = primary_index
                rerouted.append(mapping.id)
        if rerouted:
            profile.touch()
            LOG.info("rerouted %d mapping(s) from vJoy%d/%s to vJoy%d/%s",
                     len(rerouted), vjoy_slot, input_name, primary.vjoy_device, primary.input_name)
    entry = SCSharedInput(vjoy_slot=vjoy_slot, input_name=input_name, rerouted_mapping_ids=rerouted)
    primary.shared_with.append(entry)
    export.touch()
    return entry


def unshare(export: SCExportProfile, primary: SCActionBinding, vjoy_slot: int,
            profile: Optional[MappingProfile] = None) -> bool:
    """Undo `share`: rerouted mappings go back to their original vJoy button."""
    entry = next((s for s in primary.shared_with if s.vjoy_slot == vjoy_slot), None)
    if entry is None:
        return False
    index = parse_button_index(entry.input_name)
    if profile is not None and index >= 0:
        ids = set(entry.rerouted_mapping_ids)
        for mapping in profile.button_mappings:
            if mapping.id in ids:
                mapping.output.vjoy_device = entry.vjoy_slot
                mapping.output.index = index
        if ids:
            profile.touch()
    primary.shared_with.remove(entry)
    export.touch()
    LOG.info("unshared vJoy%d/%s from %s", vjoy_slot, entry.input_name, primary.action_name)
    return True


def assign_joystick_binding(export: SCExportProfile, action_map: str, action_name: str,
                            vjoy_device: int, input_name: str,
                            resolution: Optional[SharedResolution] = None,
                            profile: Optional[MappingProfile] = None,
                            modifiers: Sequence[str] = (),
                            sc_instance: Optional[int] = None) -> AssignResult:
    """Bind an action to a vJoy input.

    When conflicts exist nothing changes until a resolution is given; the one
    decision covers every conflict reported for this assignment.
    """
    conflicts = find_export_conflicts(export, action_map, action_name, vjoy_device, input_name, modifiers)
    if conflicts and resolution is None:
        return AssignResult(AssignStatus.NEEDS_RESOLUTION, conflicts=conflicts)
    if conflicts and resolution == SharedResolution.CANCEL:
        LOG.debug("binding %s to js%d_%s cancelled", action_name, vjoy_device, input_name)
        return AssignResult(AssignStatus.CANCELLED, conflicts=conflicts)

    status = AssignStatus.BOUND
    for conflict in conflicts:
        if conflict.kind == ConflictKind.INPUT_CLAIMED:
            if resolution == SharedResolution.REPLACE:
                for b in conflict.conflicting:
                    remove_binding(export, b)
                    LOG.info("removed conflicting binding %s", b.action_name)
                status = AssignStatus.REPLACED
            else:
                status = AssignStatus.SHARED
        else:
            primary = conflict.conflicting[0]
            if resolution == SharedResolution.SHARE:
                entry = share(export, primary, vjoy_device, input_name, profile)
                return AssignResult(AssignStatus.SHARED, primary, conflicts, entry)
            remove_binding(export, primary)
            LOG.info("replaced vJoy%d binding for %s", primary.vjoy_device, action_name)
            status = AssignStatus.REPLACED

    binding = set_binding(export, SCActionBinding(
        action_map=action_map,
        action_name=action_name,
        input_name=input_name,
        vjoy_device=vjoy_device,
        input_type=infer_input_type(input_name),
        modifiers=list(modifiers),
    ))
    if vjoy_device not in export.vjoy_to_sc_instance:
        export.vjoy_to_sc_instance[vjoy_device] = sc_instance if sc_instance is not None else vjoy_device
    LOG.info("bound %s to %s", action_name, input_key(export, binding))
    return AssignResult(status, binding, conflicts)


def assign_physical_binding(export: SCExportProfile, action_map: str, action_name: str,
                            physical_device_id: str, input_name: str,
                            resolution: Optional[SharedResolution] = None,
                            modifiers: Sequence[str] = ()) -> AssignResult:
    """Bind an action directly to an input on a physical device.

    The game takes one joystick binding per action and nothing can be rerouted
    through vJoy here, so a binding on another physical device can only be
    replaced or kept (CANCEL). SHARE raises DialogError.
    """
    key = (action_map, action_name)
    elsewhere = [b for b in export.bindings
                 if b.action_key == key and b.device_type == SCDeviceType.JOYSTICK
                 and b.physical_device_id is not None and b.physical_device_id != physical_device_id]
    conflicts = []
    if elsewhere:
        conflicts.append(ExportConflict(ConflictKind.ACTION_ON_OTHER_DEVICE, action_map, action_name,
                                        input_name, 0, tuple(elsewhere[:1])))
    if conflicts and resolution is None:
        return AssignResult(AssignStatus.NEEDS_RESOLUTION, conflicts=conflicts)
    if conflicts and resolution == SharedResolution.SHARE:
        raise DialogError("physical device bindings can only be replaced")
    if conflicts and resolution == SharedResolution.CANCEL:
        LOG.debug("physical binding %s on %s cancelled", action_name, physical_device_id)
        return AssignResult(AssignStatus.CANCELLED, conflicts=conflicts)

    status = AssignStatus.BOUND
    if conflicts:
        remove_binding(export, elsewhere[0])
        LOG.info("replaced %s binding for %s", elsewhere[0].physical_device_id, action_name)
        status = AssignStatus.REPLACED

    binding = set_binding(export, SCActionBinding(
        action_map=action_map,
        action_name=action_name,
        input_name=input_name,
        input_type=infer_input_type(input_name),
        modifiers=list(modifiers),
        physical_device_id=physical_device_id,
    ))
    LOG.info("bound %s to %s", action_name, input_key(export, binding))
    return AssignResult(status, binding, conflicts)


def export_input_text(export: SCExportProfile) -> Dict[Tuple[str, str], List[str]]:
    """Action key -> game input strings, ready for the action schema writer."""
    result: Dict[Tuple[str, str], List[str]] = {}
    for b in export.bindings:
        if not b.is_vjoy:
            continue
        mods = "+".join(b.modifiers) + "+" if b.modifiers else ""
        instance = export.sc_instance(b.vjoy_device)
        result.setdefault(b.action_key, []).append(f"js{instance}_{mods}{b.input_name}")
    return result
