"""State models and lightweight DTOs"""
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass
class DeviceState:
    device: str  # physical device id, matches InputSource.device_id
    axes: Dict[int, float] = field(default_factory=dict)
    buttons: Dict[int, bool] = field(default_factory=dict)
    hats: Dict[int, Tuple[int, int]] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event) -> "DeviceState":
        """Accept either a DeviceState or the plain dict readers emit."""
        if isinstance(event, cls):
            return event
        return cls(
            device=event.get("device"),
            axes=dict(event.get("axes", {})),
            buttons=dict(event.get("buttons", {})),
            hats=dict(event.get("hats", {})),
        )


@dataclass
class VJoyCommand:
    axes: Dict[str, float] = field(default_factory=dict)  # axis name -> -1..1
    buttons: Dict[int, bool] = field(default_factory=dict)  # button id (1-based) -> state
    povs: Dict[int, int] = field(default_factory=dict)  # pov id (1-based) -> degrees or -1
    keys: Dict[str, bool] = field(default_factory=dict)  # key combo -> held

    def merge(self, other: "VJoyCommand"):
        self.axes.update(other.axes)
        self.buttons.update(other.buttons)
        self.povs.update(other.povs)
        self.keys.update(other.keys)


# pygame hat tuple (x, y) -> degrees clockwise from up
HAT_DEGREES = {
    (0, 1): 0,
    (1, 1): 45,
    (1, 0): 90,
    (1, -1): 135,
    (0, -1): 180,
    (-1, -1): 225,
    (-1, 0): 270,
    (-1, 1): 315,
}


def hat_to_degrees(hat) -> int:
    """Hat value as degrees, -1 when centred. Accepts pygame tuples or degrees."""
    if isinstance(hat, (tuple, list)):
        return HAT_DEGREES.get(tuple(hat), -1)
    if hat is None:
        return -1
    return int(hat)
