"""Binding conflict decisions

Two small state machines back the "this input is already in use" prompts:

* `DuplicateInputDialog` for a captured physical input that already drives
  another local mapping (Cancel / Replace / Apply Anyway).
* `SharedBindingDialog` for exported game action bindings, where the vJoy input
  is claimed by another action or the action is bound on another device
  (Cancel / Share / Replace).

Neither touches a profile. They record what the operator chose and the caller
applies it (`core.resolver.bind_input`, `core.sc_bindings.assign_joystick_binding`).
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from core.models import InputSource, SCActionBinding


class DialogState(str, Enum):
    IDLE = "idle"
    AWAITING_DECISION = "awaiting_decision"
    CANCELLED = "cancelled"
    REPLACED = "replaced"
    APPLIED = "applied"
    SHARED = "shared"


class DuplicateResolution(str, Enum):
    CANCEL = "cancel"
    REPLACE = "replace"
    APPLY_ANYWAY = "apply_anyway"


class SharedResolution(str, Enum):
    CANCEL = "cancel"
    SHARE = "share"
    REPLACE = "replace"


class ConflictKind(str, Enum):
    INPUT_CLAIMED = "input_claimed"  # another action already uses this vJoy input
    ACTION_ON_OTHER_DEVICE = "action_on_other_device"  # this action is bound on another device


class DialogError(RuntimeError):
    """Raised on a decision that the dialog's current state does not accept."""


_DUPLICATE_OUTCOME = {
    DuplicateResolution.CANCEL: DialogState.CANCELLED,
    DuplicateResolution.REPLACE: DialogState.REPLACED,
    DuplicateResolution.APPLY_ANYWAY: DialogState.APPLIED,
}

_SHARED_OUTCOME = {
    SharedResolution.CANCEL: DialogState.CANCELLED,
    SharedResolution.SHARE: DialogState.SHARED,
    SharedResolution.REPLACE: DialogState.REPLACED,
}


@dataclass(frozen=True)
class ExportConflict:
    kind: ConflictKind
    action_map: str
    action_name: str
    input_name: str
    vjoy_device: int
    conflicting: Tuple[SCActionBinding, ...]

    @property
    def action_names(self) -> Tuple[str, ...]:
        """The requested action followed by every action already involved."""
        names = [self.action_name]
        for b in self.conflicting:
            if b.action_name not in names:
                names.append(b.action_name)
        return tuple(names)

    def describe(self) -> str:
        others = ", ".join(self.action_names[1:])
        if self.kind == ConflictKind.INPUT_CLAIMED:
            return f"js{self.vjoy_device}_{self.input_name} is already bound to {others}"
        devices = ", ".join(f"vJoy {b.vjoy_device}" for b in self.conflicting)
        return f"{self.action_name} is already bound on {devices}"


@dataclass(frozen=True)
class DuplicateInputDialog:
    state: DialogState = DialogState.IDLE
    captured: Optional[InputSource] = None
    conflicts: Tuple[str, ...] = ()  # names of the mappings already using the input
    resolution: Optional[DuplicateResolution] = None

    def open(self, captured: InputSource, conflict_names: Sequence[str]) -> "DuplicateInputDialog":
        """Ask for a decision. With nothing in conflict the dialog stays idle."""
        if self.state == DialogState.AWAITING_DECISION:
            raise DialogError("a duplicate-input decision is already pending")
        if not conflict_names:
            return DuplicateInputDialog()
        return DuplicateInputDialog(
            state=DialogState.AWAITING_DECISION,
            captured=captured,
            conflicts=tuple(conflict_names),
        )

    def decide(self, resolution: DuplicateResolution) -> "DuplicateInputDialog":
        if self.state != DialogState.AWAITING_DECISION:
            raise DialogError(f"cannot decide from state {self.state.value}")
        return replace(self, state=_DUPLICATE_OUTCOME[resolution], resolution=resolution)

    @property
    def message(self) -> str:
        names = "\n".join(self.conflicts)
        return f"This input is already mapped to:\n\n{names}"


@dataclass(frozen=True)
class SharedBindingDialog:
    state: DialogState = DialogState.IDLE
    conflict: Optional[ExportConflict] = None
    resolution: Optional[SharedResolution] = None

    def open(self, conflict: Optional[ExportConflict]) -> "SharedBindingDialog":
        if self.state == DialogState.AWAITING_DECISION:
            raise DialogError("a shared-binding decision is already pending")
        if conflict is None:
            return SharedBindingDialog()
        return SharedBindingDialog(state=DialogState.AWAITING_DECISION, conflict=conflict)

    def decide(self, resolution: SharedResolution) -> "SharedBindingDialog":
        if self.state != DialogState.AWAITING_DECISION:
            raise DialogError(f"cannot decide from state {self.state.value}")
        return replace(self, state=_SHARED_OUTCOME[resolution], resolution=resolution)
