"""Mapping profile data model

Physical inputs (`InputSource`) are routed to virtual outputs (`OutputTarget`)
by axis, button and hat mappings (plus axis-to-button and button-to-axis
mappings, optionally on shift layers) grouped in a `MappingProfile`. Game
action bindings exported to Star Citizen live in an `SCExportProfile`.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


class InputKind(str, Enum):
    AXIS = "axis"
    BUTTON = "button"
    HAT = "hat"


class OutputKind(str, Enum):
    VJOY_AXIS = "vjoy_axis"
    VJOY_BUTTON = "vjoy_button"
    VJOY_POV = "vjoy_pov"
    KEYBOARD = "keyboard"


class ButtonMode(str, Enum):
    NORMAL = "normal"
    TOGGLE = "toggle"
    PULSE = "pulse"
    HOLD_TO_ACTIVATE = "hold_to_activate"


class CurveType(str, Enum):
    LINEAR = "linear"
    SCURVE = "scurve"
    EXPONENTIAL = "exponential"
    CUSTOM = "custom"


class MergeOperation(str, Enum):
    AVERAGE = "average"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    SUM = "sum"


class Category(str, Enum):
    """Which half of the output grid is being edited."""
    BUTTONS = "buttons"
    AXES = "axes"


class AxisType(str, Enum):
    X = "x"
    Y = "y"
    Z = "z"
    RX = "rx"
    RY = "ry"
    RZ = "rz"
    SLIDER = "slider"
    UNKNOWN = "unknown"


class SCInputType(str, Enum):
    AXIS = "axis"
    BUTTON = "button"
    HAT = "hat"


class SCDeviceType(str, Enum):
    JOYSTICK = "joystick"
    KEYBOARD = "keyboard"
    MOUSE = "mouse"


# vJoy axis indices 0..7
VJOY_AXIS_NAMES = ("X", "Y", "Z", "RX", "RY", "RZ", "Slider0", "Slider1")

PULSE_RANGE_MS = (100, 1000)
HOLD_RANGE_MS = (200, 2000)


def clamp(value, lo, hi):
    return max(lo, min(hi, value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class InputSource:
    """A physical input. Identity is (device_id, kind, index); the name is display only."""
    device_id: str
    device_name: str = field(compare=False)
    kind: InputKind
    index: int

    @property
    def key(self) -> Tuple[str, InputKind, int]:
        return (self.device_id, self.kind, self.index)

    def __str__(self):
        if self.kind == InputKind.BUTTON:
            return f"{self.device_name} Button {self.index + 1}"
        if self.kind == InputKind.HAT:
            return f"{self.device_name} Hat {self.index}"
        return f"{self.device_name} Axis {self.index}"


@dataclass
class OutputTarget:
    kind: OutputKind
    vjoy_device: int
    index: int
    key_name: Optional[str] = None
    modifiers: List[str] = field(default_factory=list)

    @property
    def slot(self) -> Tuple[int, int]:
        return (self.vjoy_device, self.index)

    def __str__(self):
        if self.kind == OutputKind.KEYBOARD:
            combo = "+".join(list(self.modifiers) + [self.key_name or "?"])
            return f"Key {combo}"
        if self.kind == OutputKind.VJOY_BUTTON:
            return f"vJoy {self.vjoy_device} Button {self.index + 1}"
        if self.kind == OutputKind.VJOY_POV:
            return f"vJoy {self.vjoy_device} POV {self.index}"
        return f"vJoy {self.vjoy_device} Axis {self.index}"


@dataclass(frozen=True)
class AxisCurve:
    type: CurveType = CurveType.LINEAR
    control_points: Tuple[Tuple[float, float], ...] = ((0.0, 0.0), (1.0, 1.0))
    symmetrical: bool = False
    inverted: bool = False
    saturation: float = 1.0  # |input| at which output reaches full scale


@dataclass(frozen=True)
class Deadzone:
    """Axis deadzone in raw axis units (-1..1).

    With the centre disabled only `min` and `max` are used: the range between them
    is stretched to the full output. With the centre enabled the band
    `center_min..center_max` outputs zero.
    """
    min: float = -1.0
    max: float = 1.0
    center_min: float = 0.0
    center_max: float = 0.0
    center_enabled: bool = False


@dataclass
class AxisMapping:
    name: str
    output: OutputTarget
    inputs: List[InputSource] = field(default_factory=list)
    curve: AxisCurve = field(default_factory=AxisCurve)
    deadzone: Deadzone = field(default_factory=Deadzone)
    merge_op: MergeOperation = MergeOperation.AVERAGE
    enabled: bool = True
    id: str = field(default_factory=new_id)
    layer_id: Optional[str] = None  # None is the base layer


def clamp_pulse_ms(value) -> int:
    return int(clamp(int(value), *PULSE_RANGE_MS))


def clamp_hold_ms(value) -> int:
    return int(clamp(int(value), *HOLD_RANGE_MS))


@dataclass
class ButtonMapping:
    """Button or key output. Durations are clamped on construction; use
    `set_durations` rather than assigning them directly."""
    name: str
    output: OutputTarget
    inputs: List[InputSource] = field(default_factory=list)
    mode: ButtonMode = ButtonMode.NORMAL
    pulse_duration_ms: int = 100
    hold_duration_ms: int = 500
    enabled: bool = True
    id: str = field(default_factory=new_id)
    layer_id: Optional[str] = None

    def __post_init__(self):
        self.set_durations(self.pulse_duration_ms, self.hold_duration_ms)

    def set_durations(self, pulse_ms=None, hold_ms=None):
        if pulse_ms is not None:
            self.pulse_duration_ms = clamp_pulse_ms(pulse_ms)
        if hold_ms is not None:
            self.hold_duration_ms = clamp_hold_ms(hold_ms)


@dataclass
class HatMapping:
    name: str
    output: OutputTarget
    inputs: List[InputSource] = field(default_factory=list)
    use_continuous: bool = True
    enabled: bool = True
    id: str = field(default_factory=new_id)
    layer_id: Optional[str] = None


@dataclass
class AxisToButtonMapping:
    """Presses a button (or key) while an axis is past `threshold`.

    Once pressed the release point moves back by `hysteresis` so a noisy axis
    resting on the threshold does not chatter.
    """
    name: str
    output: OutputTarget
    inputs: List[InputSource] = field(default_factory=list)
    threshold: float = 0.5
    activate_above: bool = True
    hysteresis: float = 0.05
    invert: bool = False
    enabled: bool = True
    id: str = field(default_factory=new_id)
    layer_id: Optional[str] = None

    def __post_init__(self):
        self.threshold = clamp(float(self.threshold), -1.0, 1.0)
        self.hysteresis = clamp(float(self.hysteresis), 0.0, 0.5)


@dataclass
class ButtonToAxisMapping:
    """Drives an axis to `pressed_value` while any input is held, else `released_value`.

    With `smoothing_ms` the output travels towards the target over that many
    milliseconds instead of jumping.
    """
    name: str
    output: OutputTarget
    inputs: List[InputSource] = field(default_factory=list)
    pressed_value: float = 1.0
    released_value: float = 0.0
    smoothing_ms: int = 0
    invert: bool = False
    enabled: bool = True
    id: str = field(default_factory=new_id)
    layer_id: Optional[str] = None

    def __post_init__(self):
        self.pressed_value = clamp(float(self.pressed_value), -1.0, 1.0)
        self.released_value = clamp(float(self.released_value), -1.0, 1.0)
        self.smoothing_ms = max(0, int(self.smoothing_ms))


@dataclass
class ShiftLayer:
    """While `activator` is held only mappings on this layer run."""
    name: str
    activator: Optional[InputSource] = None
    id: str = field(default_factory=new_id)


@dataclass
class MappingProfile:
    name: str
    description: str = ""
    axis_mappings: List[AxisMapping] = field(default_factory=list)
    button_mappings: List[ButtonMapping] = field(default_factory=list)
    hat_mappings: List[HatMapping] = field(default_factory=list)
    axis_to_button_mappings: List[AxisToButtonMapping] = field(default_factory=list)
    button_to_axis_mappings: List[ButtonToAxisMapping] = field(default_factory=list)
    shift_layers: List[ShiftLayer] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)

    def touch(self):
        self.modified_at = utcnow()

    def all_mappings(self):
        yield from self.axis_mappings
        yield from self.button_mappings
        yield from self.hat_mappings
        yield from self.axis_to_button_mappings
        yield from self.button_to_axis_mappings

    def layer(self, layer_id: Optional[str]) -> Optional[ShiftLayer]:
        return next((layer for layer in self.shift_layers if layer.id == layer_id), None)


@dataclass
class SCSharedInput:
    """A second vJoy input that also drives an action through rerouted button mappings."""
    vjoy_slot: int
    input_name: str
    rerouted_mapping_ids: List[str] = field(default_factory=list)


@dataclass
class SCActionBinding:
    action_map: str
    action_name: str
    input_name: str
    vjoy_device: int = 1
    input_type: SCInputType = SCInputType.BUTTON
    device_type: SCDeviceType = SCDeviceType.JOYSTICK
    modifiers: List[str] = field(default_factory=list)
    inverted: bool = False
    physical_device_id: Optional[str] = None
    shared_with: List[SCSharedInput] = field(default_factory=list)

    @property
    def action_key(self) -> Tuple[str, str]:
        return (self.action_map, self.action_name)

    @property
    def is_vjoy(self) -> bool:
        return self.device_type == SCDeviceType.JOYSTICK and self.physical_device_id is None


@dataclass
class SCExportProfile:
    profile_name: str = ""
    vjoy_to_sc_instance: Dict[int, int] = field(default_factory=dict)
    bindings: List[SCActionBinding] = field(default_factory=list)
    modified_at: datetime = field(default_factory=utcnow)

    def sc_instance(self, vjoy_device: int) -> int:
        return self.vjoy_to_sc_instance.get(vjoy_device, vjoy_device)

    def touch(self):
        self.modified_at = utcnow()


@dataclass
class VJoyDeviceInfo:
    id: int
    exists: bool = True
    button_count: int = 0
    disc_pov_count: int = 0
    cont_pov_count: int = 0
    axes: Tuple[int, ...] = ()  # vJoy axis indices present on the device

    @property
    def axis_count(self) -> int:
        return len(self.axes)

    @property
    def pov_count(self) -> int:
        return self.disc_pov_count + self.cont_pov_count


@dataclass
class PhysicalDeviceInfo:
    device_id: str
    name: str
    axis_count: int = 0
    button_count: int = 0
    hat_count: int = 0
    axis_types: Dict[int, AxisType] = field(default_factory=dict)

    def axis_type(self, index: int) -> AxisType:
        return self.axis_types.get(index, AxisType.UNKNOWN)
