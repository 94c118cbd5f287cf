"""vJoy output wrapper using direct ctypes calls to the vJoy DLL

`VJoyOutput` drives one vJoy device from VJoyCommand objects on a background
thread. `VJoyManager` owns one output per device id, enumerates the installed
devices and implements the VirtualOutput interface. Without the DLL (or on
non-Windows hosts) everything runs in dry-run mode and only logs.
"""
import ctypes
import logging
import threading
from typing import Dict, List, Optional

from core.models import VJoyDeviceInfo
from core.reader import VirtualOutput
from core.state import VJoyCommand

LOG = logging.getLogger("hotasbridge.vjoy")

VJOY_DLL_PATH = r"C:\Program Files\vJoy\x64\vJoyInterface.dll"
MAX_DEVICES = 16

# Load vJoy DLL
try:
    vjoy_dll = ctypes.CDLL(VJOY_DLL_PATH)
    VJOY_AVAILABLE = True
    LOG.info("vJoy DLL loaded successfully")
except OSError as e:
    vjoy_dll = None
    VJOY_AVAILABLE = False
    LOG.warning("Failed to load vJoy DLL: %s (vJoy may not be installed or path may be wrong)", e)


class JOYSTICK_POSITION(ctypes.Structure):
    """vJoy joystick position structure matching vJoy SDK"""
    _fields_ = [
        ("bDevice", ctypes.c_ubyte),
        ("wThrottle", ctypes.c_ulong),
        ("wRudder", ctypes.c_ulong),
        ("wAileron", ctypes.c_ulong),
        ("wAxisX", ctypes.c_long),
        ("wAxisY", ctypes.c_long),
        ("wAxisZ", ctypes.c_long),
        ("wAxisXRot", ctypes.c_long),
        ("wAxisYRot", ctypes.c_long),
        ("wAxisZRot", ctypes.c_long),
        ("wSlider", ctypes.c_long),
        ("wDial", ctypes.c_long),
        ("wWheel", ctypes.c_long),
        ("wAxisVX", ctypes.c_long),
        ("wAxisVY", ctypes.c_long),
        ("wAxisVZ", ctypes.c_long),
        ("wAxisVBRX", ctypes.c_long),
        ("wAxisVBRY", ctypes.c_long),
        ("wAxisVBRZ", ctypes.c_long),
        ("lButtons", ctypes.c_ulong),
        ("bHats", ctypes.c_ulong),
        ("bHatsEx1", ctypes.c_ulong),
        ("bHatsEx2", ctypes.c_ulong),
        ("bHatsEx3", ctypes.c_ulong),
        ("lButtonsEx1", ctypes.c_long),
        ("lButtonsEx2", ctypes.c_long),
        ("lButtonsEx3", ctypes.c_long),
    ]


# Map axis names to JOYSTICK_POSITION field names
AXIS_MAP = {
    "AXIS_X": "wAxisX",
    "AXIS_Y": "wAxisY",
    "AXIS_Z": "wAxisZ",
    "AXIS_RX": "wAxisXRot",
    "AXIS_RY": "wAxisYRot",
    "AXIS_RZ": "wAxisZRot",
    "AXIS_SL0": "wSlider",
    "AXIS_SL1": "wDial",
}

# HID usages for vJoy axis indices 0..7, same order as AXIS_MAP
AXIS_USAGES = (0x30, 0x31, 0x32, 0x33, 0x34, 0x35, 0x36, 0x37)
AXIS_NAMES = tuple(AXIS_MAP)

CONT_POV_FIELDS = ("bHats", "bHatsEx1", "bHatsEx2", "bHatsEx3")
# buttons 33..128, 32 per field
BUTTON_EX_FIELDS = ("lButtonsEx1", "lButtonsEx2", "lButtonsEx3")
MAX_BUTTONS = 32 * (1 + len(BUTTON_EX_FIELDS))
POV_CENTERED = 0xFFFFFFFF
DISC_POV_CENTERED = 0xF

VJD_STAT_OWN, VJD_STAT_FREE, VJD_STAT_BUSY, VJD_STAT_MISS, VJD_STAT_UNKN = range(5)
STATUS_NAMES = {0: "OWNED", 1: "FREE", 2: "BUSY", 3: "MISS", 4: "UNKNOWN"}


def _declare(dll):
    dll.AcquireVJD.argtypes = [ctypes.c_uint]
    dll.AcquireVJD.restype = ctypes.c_bool
    dll.RelinquishVJD.argtypes = [ctypes.c_uint]
    dll.RelinquishVJD.restype = None
    dll.UpdateVJD.argtypes = [ctypes.c_uint, ctypes.POINTER(JOYSTICK_POSITION)]
    dll.UpdateVJD.restype = ctypes.c_bool
    dll.GetVJDStatus.argtypes = [ctypes.c_uint]
    dll.GetVJDStatus.restype = ctypes.c_int
    dll.GetVJDButtonNumber.argtypes = [ctypes.c_uint]
    dll.GetVJDButtonNumber.restype = ctypes.c_int
    dll.GetVJDDiscPovNumber.argtypes = [ctypes.c_uint]
    dll.GetVJDDiscPovNumber.restype = ctypes.c_int
    dll.GetVJDContPovNumber.argtypes = [ctypes.c_uint]
    dll.GetVJDContPovNumber.restype = ctypes.c_int
    dll.GetVJDAxisExist.argtypes = [ctypes.c_uint, ctypes.c_uint]
    dll.GetVJDAxisExist.restype = ctypes.c_bool


if VJOY_AVAILABLE:
    _declare(vjoy_dll)


def to_vjoy_axis(val: float) -> int:
    # map -1..1 to 0..0x8000
    iv = int((val + 1.0) / 2.0 * 0x8000)
    return max(0, min(0x8000, iv))


def _signed32(bits: int) -> int:
    return bits - (1 << 32) if bits & 0x80000000 else bits


def enumerate_devices(dll=None) -> List[VJoyDeviceInfo]:
    """Capabilities of vJoy ids 1..16. Empty when the driver is missing."""
    dll = dll if dll is not None else vjoy_dll
    if dll is None:
        return []
    devices = []
    for device_id in range(1, MAX_DEVICES + 1):
        status = dll.GetVJDStatus(device_id)
        if status == VJD_STAT_MISS:
            devices.append(VJoyDeviceInfo(id=device_id, exists=False))
            continue
        axes = tuple(i for i, usage in enumerate(AXIS_USAGES) if dll.GetVJDAxisExist(device_id, usage))
        devices.append(VJoyDeviceInfo(
            id=device_id,
            exists=True,
            button_count=dll.GetVJDButtonNumber(device_id),
            disc_pov_count=dll.GetVJDDiscPovNumber(device_id),
            cont_pov_count=dll.GetVJDContPovNumber(device_id),
            axes=axes,
        ))
        LOG.debug("vJoy %d: status=%s axes=%s", device_id, STATUS_NAMES.get(status, status), axes)
    return devices


class VJoyOutput:
    def __init__(self, device_id: int = 1, hz: int = 60, discrete_povs: bool = False, dll=None):
        self.device_id = device_id
        self.hz = hz
        self.discrete_povs = discrete_povs
        self._dll = dll if dll is not None else vjoy_dll
        self._pending: Optional[VJoyCommand] = None
        self._pending_lock = threading.Lock()
        self._wake = threading.Event()
        self._t = None
        self._stop = threading.Event()
        self._pos = JOYSTICK_POSITION()
        self._pos.bDevice = device_id
        self._buttons = 0
        self._povs: Dict[int, int] = {}
        self._acquired = False

        if self._dll is not None:
            try:
                if self._dll.AcquireVJD(device_id):
                    self._acquired = True
                    LOG.info("vJoy device %d acquired", device_id)
                else:
                    status = self._dll.GetVJDStatus(device_id)
                    LOG.warning("Failed to acquire vJoy device %d, status %s (close vJoy config tools if BUSY)",
                                device_id, STATUS_NAMES.get(status, f"UNKNOWN({status})"))
            except Exception:
                LOG.exception("Error acquiring vJoy device %d", device_id)
        else:
            LOG.warning("vJoy not available, device %d running in dry-run mode", device_id)

    @property
    def acquired(self) -> bool:
        return self._acquired

    def apply(self, cmd: VJoyCommand):
        """Queue a partial update; updates arriving before the next write are merged."""
        with self._pending_lock:
            if self._pending is None:
                self._pending = VJoyCommand()
            self._pending.merge(cmd)
        self._wake.set()

    def start(self):
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name=f"VJoyOutput-{self.device_id}", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        self._wake.set()
        if self._t:
            self._t.join(timeout=1.0)
        if self._acquired:
            try:
                self._dll.RelinquishVJD(self.device_id)
                LOG.info("vJoy device %d released", self.device_id)
            except Exception:
                LOG.exception("Error releasing vJoy device %d", self.device_id)
            self._acquired = False

    def _pov_fields(self):
        """JOYSTICK_POSITION field values for the current POV state."""
        if self.discrete_povs:
            packed = 0
            for i in range(4):
                deg = self._povs.get(i + 1, -1)
                nibble = DISC_POV_CENTERED if deg < 0 else (deg % 360) // 90
                packed |= nibble << (4 * i)
            return {"bHats": packed}
        fields = {}
        for pid, deg in self._povs.items():
            if 1 <= pid <= len(CONT_POV_FIELDS):
                # hundredths of a degree, 0..35999
                fields[CONT_POV_FIELDS[pid - 1]] = POV_CENTERED if deg < 0 else int((deg % 360) * 100)
        return fields

    def _apply_to_device(self, cmd: VJoyCommand):
        for bid, state in cmd.buttons.items():
            if not 1 <= bid <= MAX_BUTTONS:
                LOG.debug("no vJoy button %d", bid)
                continue
            if state:
                self._buttons |= (1 << (bid - 1))
            else:
                self._buttons &= ~(1 << (bid - 1))
        self._povs.update(cmd.povs)

        if not self._acquired:
            LOG.debug("vjoy %d dry-run: axes=%s buttons=0x%x povs=%s", self.device_id, cmd.axes, self._buttons, self._povs)
            return

        try:
            for name, v in cmd.axes.items():
                field_name = AXIS_MAP.get(name)
                if field_name:
                    setattr(self._pos, field_name, to_vjoy_axis(v))
                else:
                    LOG.debug("unknown vjoy axis %s", name)
            # lButtons holds buttons 1..32, the Ex fields are signed longs
            self._pos.lButtons = self._buttons & 0xFFFFFFFF
            for n, field_name in enumerate(BUTTON_EX_FIELDS, start=1):
                setattr(self._pos, field_name, _signed32((self._buttons >> (32 * n)) & 0xFFFFFFFF))
            for field_name, value in self._pov_fields().items():
                setattr(self._pos, field_name, value)

            if not self._dll.UpdateVJD(self.device_id, ctypes.byref(self._pos)):
                LOG.warning("vJoy UpdateVJD failed for device %d", self.device_id)
        except Exception:
            LOG.exception("failed to write to vJoy device %d", self.device_id)

    def flush(self):
        with self._pending_lock:
            cmd, self._pending = self._pending, None
        if cmd is not None:
            self._apply_to_device(cmd)

    def _loop(self):
        period = 1.0 / float(self.hz)
        while not self._stop.is_set():
            try:
                if self._wake.wait(timeout=period):
                    self._wake.clear()
                    self.flush()
            except Exception:
                LOG.exception("error in vjoy output loop")


class VJoyManager(VirtualOutput):
    """One VJoyOutput per vJoy device, created on first use."""

    def __init__(self, hz: int = 60, dll=None):
        self.hz = hz
        self._dll = dll if dll is not None else vjoy_dll
        self._outputs: Dict[int, VJoyOutput] = {}
        self._devices = {d.id: d for d in enumerate_devices(self._dll)}
        self._running = False

    def enumerate_devices(self) -> List[VJoyDeviceInfo]:
        return list(self._devices.values())

    def output(self, vjoy_device: int) -> VJoyOutput:
        out = self._outputs.get(vjoy_device)
        if out is None:
            info = self._devices.get(vjoy_device)
            discrete = info is not None and info.disc_pov_count > 0 and info.cont_pov_count == 0
            out = VJoyOutput(vjoy_device, hz=self.hz, discrete_povs=discrete, dll=self._dll)
            self._outputs[vjoy_device] = out
            if self._running:
                out.start()
        return out

    def apply(self, commands: Dict[int, VJoyCommand]):
        for vjoy_device, cmd in commands.items():
            self.output(vjoy_device).apply(cmd)

    def set_axis(self, vjoy_device: int, axis_index: int, value: float):
        if not 0 <= axis_index < len(AXIS_NAMES):
            LOG.debug("no vJoy axis %d", axis_index)
            return
        self.output(vjoy_device).apply(VJoyCommand(axes={AXIS_NAMES[axis_index]: value}))

    def set_button(self, vjoy_device: int, button_index: int, pressed: bool):
        self.output(vjoy_device).apply(VJoyCommand(buttons={button_index + 1: bool(pressed)}))

    def set_pov(self, vjoy_device: int, pov_index: int, degrees: int):
        self.output(vjoy_device).apply(VJoyCommand(povs={pov_index + 1: degrees}))

    def start(self):
        self._running = True
        for out in self._outputs.values():
            out.start()

    def stop(self):
        self._running = False
        for out in self._outputs.values():
            out.stop()
