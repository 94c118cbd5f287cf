"""1:1 automatic mapping of a physical device onto a vJoy device"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from core.models import (
    AxisCurve,
    AxisMapping,
    AxisType,
    ButtonMapping,
    ButtonMode,
    CurveType,
    HatMapping,
    InputKind,
    InputSource,
    MappingProfile,
    OutputKind,
    OutputTarget,
    PhysicalDeviceInfo,
    VJOY_AXIS_NAMES,
    VJoyDeviceInfo,
)
from core.resolver import clear_device_mappings

LOG = logging.getLogger("hotasbridge.automap")

# canonical vJoy axis order: X, Y, Z, RX, RY, RZ, Slider0, Slider1
CANONICAL_AXES = tuple(range(len(VJOY_AXIS_NAMES)))
TYPED_AXIS_INDEX = {
    AxisType.X: 0,
    AxisType.Y: 1,
    AxisType.Z: 2,
    AxisType.RX: 3,
    AxisType.RY: 4,
    AxisType.RZ: 5,
}
SLIDER_INDICES = (6, 7)


@dataclass(frozen=True)
class CapacityShortfall:
    """How many more axes/buttons/hats the roomiest vJoy device would need."""
    axes: int = 0
    buttons: int = 0
    hats: int = 0

    def __bool__(self):
        return bool(self.axes or self.buttons or self.hats)

    def describe(self) -> str:
        parts = []
        if self.axes:
            parts.append(f"{self.axes} more axes")
        if self.buttons:
            parts.append(f"{self.buttons} more buttons")
        if self.hats:
            parts.append(f"{self.hats} more POVs")
        return "configure vJoy with " + ", ".join(parts) if parts else "no shortfall"


@dataclass
class AutoMapResult:
    device: Optional[VJoyDeviceInfo] = None
    axes_mapped: int = 0
    axes_total: int = 0
    buttons_mapped: int = 0
    hats_mapped: int = 0
    removed: Dict[str, int] = field(default_factory=dict)
    shortfall: Optional[CapacityShortfall] = None
    missing: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.device is not None and self.missing is None

    @property
    def summary(self) -> str:
        if self.missing:
            return f"nothing mapped: no {self.missing}"
        if self.device is None:
            return f"nothing mapped: {self.shortfall.describe()}"
        return f"{self.axes_mapped} of {self.axes_total} axes mapped"


def _spare(physical: PhysicalDeviceInfo, vjoy: VJoyDeviceInfo):
    return (
        vjoy.axis_count - physical.axis_count,
        vjoy.button_count - physical.button_count,
        vjoy.pov_count - physical.hat_count,
    )


def find_best_vjoy_device(physical: PhysicalDeviceInfo, candidates: Sequence[VJoyDeviceInfo]) -> Optional[VJoyDeviceInfo]:
    """Pick the existing vJoy device that fits the physical device with the least waste."""
    best, best_score = None, None
    for vjoy in candidates:
        if not vjoy.exists:
            continue
        spare = _spare(physical, vjoy)
        if min(spare) < 0:
            continue
        score = 1000 - sum(spare)
        LOG.debug("vJoy %d scores %d for %s", vjoy.id, score, physical.name)
        if best_score is None or score > best_score:
            best, best_score = vjoy, score
    return best


def capacity_shortfall(physical: PhysicalDeviceInfo, candidates: Sequence[VJoyDeviceInfo]) -> Optional[CapacityShortfall]:
    """None when some device fits; otherwise the extra capacity the largest devices would need."""
    existing = [v for v in candidates if v.exists]
    if find_best_vjoy_device(physical, existing) is not None:
        return None
    if not existing:
        return CapacityShortfall(physical.axis_count, physical.button_count, physical.hat_count)
    return CapacityShortfall(
        axes=max(0, physical.axis_count - max(v.axis_count for v in existing)),
        buttons=max(0, physical.button_count - max(v.button_count for v in existing)),
        hats=max(0, physical.hat_count - max(v.pov_count for v in existing)),
    )


def plan_axes(physical: PhysicalDeviceInfo, vjoy: VJoyDeviceInfo) -> Dict[int, int]:
    """Physical axis index -> vJoy axis index.

    Typed axes claim their matching vJoy axis first (sliders in order onto
    Slider0, Slider1). Unknown or displaced axes then take the first free axis
    in canonical order. Axes left over when the device runs out stay unmapped.
    """
    available = [a for a in CANONICAL_AXES if a in vjoy.axes]
    used = set()
    plan = {}
    pending = []
    sliders_seen = 0
    for i in range(physical.axis_count):
        axis_type = physical.axis_type(i)
        if axis_type == AxisType.SLIDER:
            preferred = SLIDER_INDICES[sliders_seen] if sliders_seen < len(SLIDER_INDICES) else None
            sliders_seen += 1
        else:
            preferred = TYPED_AXIS_INDEX.get(axis_type)
        if preferred is not None and preferred in available and preferred not in used:
            plan[i] = preferred
            used.add(preferred)
        else:
            pending.append(i)

    for i in pending:
        free = next((a for a in available if a not in used), None)
        if free is None:
            LOG.debug("no vJoy axis left for %s axis %d", physical.name, i)
            continue
        plan[i] = free
        used.add(free)
    return plan


def create_one_to_one_mappings(profile: MappingProfile, physical: PhysicalDeviceInfo, vjoy: VJoyDeviceInfo) -> AutoMapResult:
    """Replace any mappings from `physical` to `vjoy` with a fresh 1:1 layout."""
    removed = clear_device_mappings(profile, physical.device_id, vjoy.id)

    def source(kind, index):
        return InputSource(physical.device_id, physical.name, kind, index)

    plan = plan_axes(physical, vjoy)
    for i in sorted(plan):
        axis = plan[i]
        profile.axis_mappings.append(AxisMapping(
            name=f"{physical.name} Axis {i} -> vJoy {vjoy.id} {VJOY_AXIS_NAMES[axis]}",
            output=OutputTarget(OutputKind.VJOY_AXIS, vjoy.id, axis),
            inputs=[source(InputKind.AXIS, i)],
            curve=AxisCurve(type=CurveType.LINEAR),
        ))

    buttons = min(physical.button_count, vjoy.button_count)
    for i in range(buttons):
        profile.button_mappings.append(ButtonMapping(
            name=f"{physical.name} Btn {i + 1} -> vJoy {vjoy.id} Btn {i + 1}",
            output=OutputTarget(OutputKind.VJOY_BUTTON, vjoy.id, i),
            inputs=[source(InputKind.BUTTON, i)],
            mode=ButtonMode.NORMAL,
        ))

    hats = min(physical.hat_count, vjoy.pov_count)
    for i in range(hats):
        profile.hat_mappings.append(HatMapping(
            name=f"{physical.name} Hat {i} -> vJoy {vjoy.id} POV {i}",
            output=OutputTarget(OutputKind.VJOY_POV, vjoy.id, i),
            inputs=[source(InputKind.HAT, i)],
            use_continuous=i < vjoy.cont_pov_count,
        ))

    profile.touch()
    result = AutoMapResult(
        device=vjoy,
        axes_mapped=len(plan),
        axes_total=physical.axis_count,
        buttons_mapped=buttons,
        hats_mapped=hats,
        removed=removed,
    )
    LOG.info("1:1 mapping %s -> vJoy %d: %s, %d buttons, %d hats",
             physical.name, vjoy.id, result.summary, buttons, hats)
    return result


def auto_map(profile: Optional[MappingProfile], physical: PhysicalDeviceInfo,
             candidates: List[VJoyDeviceInfo], device: Optional[VJoyDeviceInfo] = None) -> AutoMapResult:
    """Map `physical` onto the best-fitting vJoy device.

    Passing `device` maps onto that device even when it is too small; that is
    the deliberate partial mapping. Without it a shortfall is reported and
    nothing is written.
    """
    if profile is None:
        LOG.warning("auto map skipped: no active profile")
        return AutoMapResult(missing="active profile")
    existing = [v for v in candidates if v.exists]
    if not existing and device is None:
        LOG.warning("auto map skipped: no vJoy devices configured")
        return AutoMapResult(missing="vJoy devices", shortfall=capacity_shortfall(physical, existing))

    if device is None:
        device = find_best_vjoy_device(physical, existing)
        if device is None:
            shortfall = capacity_shortfall(physical, existing)
            LOG.warning("no vJoy device can host %s: %s", physical.name, shortfall.describe())
            return AutoMapResult(axes_total=physical.axis_count, shortfall=shortfall)
        return create_one_to_one_mappings(profile, physical, device)

    result = create_one_to_one_mappings(profile, physical, device)
    result.shortfall = capacity_shortfall(physical, [device])
    return result
