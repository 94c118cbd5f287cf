"""Collaborator interfaces: device readers, input polling, virtual output, persistence, game actions"""
import abc
from typing import Dict, List, Optional, Tuple

from core.capture import DEFAULT_THRESHOLD, DEFAULT_TIMEOUT_MS, detect_input


class DeviceReader(abc.ABC):
    @abc.abstractmethod
    def start(self):
        raise NotImplementedError

    @abc.abstractmethod
    def stop(self):
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(self, callback):
        raise NotImplementedError


class InputProvider(abc.ABC):
    """Polled access to physical devices."""

    @abc.abstractmethod
    def devices(self) -> list:
        """PhysicalDeviceInfo for every connected device."""
        raise NotImplementedError

    @abc.abstractmethod
    def poll_axis(self, device_id: str, index: int) -> float:
        raise NotImplementedError

    @abc.abstractmethod
    def poll_button(self, device_id: str, index: int) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def poll_hat(self, device_id: str, index: int) -> int:
        """Hat angle in degrees, -1 when centred."""
        raise NotImplementedError

    def await_input(self, category=None, threshold: float = DEFAULT_THRESHOLD,
                    timeout_ms: int = DEFAULT_TIMEOUT_MS, cancel=None):
        return detect_input(self, category, threshold, timeout_ms, cancel=cancel)


class VirtualOutput(abc.ABC):
    @abc.abstractmethod
    def set_axis(self, vjoy_device: int, axis_index: int, value: float):
        raise NotImplementedError

    @abc.abstractmethod
    def set_button(self, vjoy_device: int, button_index: int, pressed: bool):
        raise NotImplementedError

    @abc.abstractmethod
    def set_pov(self, vjoy_device: int, pov_index: int, degrees: int):
        raise NotImplementedError

    @abc.abstractmethod
    def enumerate_devices(self) -> list:
        """VJoyDeviceInfo for vJoy ids 1..16."""
        raise NotImplementedError


class ProfileStore(abc.ABC):
    @abc.abstractmethod
    def load(self, name: str):
        raise NotImplementedError

    @abc.abstractmethod
    def save(self, profile):
        raise NotImplementedError

    @abc.abstractmethod
    def list_profiles(self) -> List[str]:
        raise NotImplementedError


class ActionSchema(abc.ABC):
    """Source of bindable game actions and sink for finished exports."""

    @abc.abstractmethod
    def actions(self) -> List[Tuple[str, str, Optional[str]]]:
        """(action_map, action_name, default input) triples."""
        raise NotImplementedError

    @abc.abstractmethod
    def export(self, inputs: Dict[Tuple[str, str], List[str]]):
        raise NotImplementedError
