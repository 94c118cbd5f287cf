"""YAML profile storage

Mapping profiles live as `<name>.yaml` files in a profiles directory; the SC
export profile for a mapping profile is stored next to it as `<name>.sc.yaml`.
"""
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import yaml

from core import curve as curves
from core import deadzone as deadzones
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
    SCActionBinding,
    SCDeviceType,
    SCExportProfile,
    SCInputType,
    SCSharedInput,
    ShiftLayer,
    clamp,
    clamp_hold_ms,
    clamp_pulse_ms,
    utcnow,
)
from core.reader import ProfileStore

LOG = logging.getLogger("hotasbridge.profiles")

PROFILE_SUFFIX = ".yaml"
EXPORT_SUFFIX = ".sc.yaml"


def _enum(cls, value, where):
    try:
        return cls(value)
    except ValueError:
        raise ValueError(f"{where}: unknown {cls.__name__} {value!r}") from None


def _timestamp(value):
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _input_to_dict(src: InputSource) -> dict:
    return {"device_id": src.device_id, "device_name": src.device_name, "kind": src.kind.value, "index": src.index}


def _input_from_dict(d: dict, where: str) -> InputSource:
    try:
        return InputSource(
            device_id=str(d["device_id"]),
            device_name=d.get("device_name", ""),
            kind=_enum(InputKind, d["kind"], where),
            index=int(d["index"]),
        )
    except KeyError as e:
        raise ValueError(f"{where}: input is missing {e.args[0]!r}") from None


def _output_to_dict(out: OutputTarget) -> dict:
    d = {"kind": out.kind.value, "vjoy_device": out.vjoy_device, "index": out.index}
    if out.key_name:
        d["key_name"] = out.key_name
    if out.modifiers:
        d["modifiers"] = list(out.modifiers)
    return d


def _output_from_dict(d: dict, where: str) -> OutputTarget:
    if not isinstance(d, dict):
        raise ValueError(f"{where}: output must be a mapping")
    try:
        return OutputTarget(
            kind=_enum(OutputKind, d["kind"], where),
            vjoy_device=int(d.get("vjoy_device", 1)),
            index=int(d["index"]),
            key_name=d.get("key_name"),
            modifiers=list(d.get("modifiers") or []),
        )
    except KeyError as e:
        raise ValueError(f"{where}: output is missing {e.args[0]!r}") from None


def _curve_to_dict(curve: AxisCurve) -> dict:
    return {
        "type": curve.type.value,
        "points": [[x, y] for x, y in curve.control_points],
        "symmetrical": curve.symmetrical,
        "inverted": curve.inverted,
        "saturation": curve.saturation,
    }


def _float(d: dict, key: str, default: float, where: str) -> float:
    try:
        return float(d.get(key, default))
    except (TypeError, ValueError):
        raise ValueError(f"{where}: {key} must be a number, got {d.get(key)!r}") from None


def _curve_from_dict(d: Optional[dict], where: str) -> AxisCurve:
    if not d:
        return AxisCurve()
    raw = d.get("points") or []
    try:
        points = [(float(x), float(y)) for x, y in raw]
    except (TypeError, ValueError):
        raise ValueError(f"{where}: bad curve points {raw!r}, expected [x, y] pairs") from None
    return AxisCurve(
        type=_enum(CurveType, d.get("type", "linear"), where),
        control_points=curves.sanitize_points(points),
        symmetrical=bool(d.get("symmetrical", False)),
        inverted=bool(d.get("inverted", False)),
        saturation=clamp(_float(d, "saturation", 1.0, where), 0.0, 1.0),
    )


def _deadzone_to_dict(dz: Deadzone) -> dict:
    return {
        "min": dz.min,
        "max": dz.max,
        "center_min": dz.center_min,
        "center_max": dz.center_max,
        "center_enabled": dz.center_enabled,
    }


def _deadzone_from_dict(d: Optional[dict]) -> Deadzone:
    if not d:
        return Deadzone()
    return deadzones.sanitize(Deadzone(
        min=float(d.get("min", -1.0)),
        max=float(d.get("max", 1.0)),
        center_min=float(d.get("center_min", 0.0)),
        center_max=float(d.get("center_max", 0.0)),
        center_enabled=bool(d.get("center_enabled", False)),
    ))


def _common(m) -> dict:
    d = {
        "id": m.id,
        "name": m.name,
        "enabled": m.enabled,
        "inputs": [_input_to_dict(i) for i in m.inputs],
        "output": _output_to_dict(m.output),
    }
    if m.layer_id:
        d["layer_id"] = m.layer_id
    return d


def profile_to_dict(profile: MappingProfile) -> dict:
    axes = []
    for m in profile.axis_mappings:
        d = _common(m)
        d.update(curve=_curve_to_dict(m.curve), deadzone=_deadzone_to_dict(m.deadzone), merge_op=m.merge_op.value)
        axes.append(d)
    buttons = []
    for m in profile.button_mappings:
        d = _common(m)
        d.update(mode=m.mode.value, pulse_duration_ms=m.pulse_duration_ms, hold_duration_ms=m.hold_duration_ms)
        buttons.append(d)
    hats = []
    for m in profile.hat_mappings:
        d = _common(m)
        d.update(use_continuous=m.use_continuous)
        hats.append(d)
    data = {
        "id": profile.id,
        "name": profile.name,
        "description": profile.description,
        "created_at": profile.created_at.isoformat(),
        "modified_at": profile.modified_at.isoformat(),
        "axis_mappings": axes,
        "button_mappings": buttons,
        "hat_mappings": hats,
    }
    if profile.axis_to_button_mappings:
        data["axis_to_button_mappings"] = [
            dict(_common(m), threshold=m.threshold, activate_above=m.activate_above,
                 hysteresis=m.hysteresis, invert=m.invert)
            for m in profile.axis_to_button_mappings
        ]
    if profile.button_to_axis_mappings:
        data["button_to_axis_mappings"] = [
            dict(_common(m), pressed_value=m.pressed_value, released_value=m.released_value,
                 smoothing_ms=m.smoothing_ms, invert=m.invert)
            for m in profile.button_to_axis_mappings
        ]
    if profile.shift_layers:
        data["shift_layers"] = [
            {"id": layer.id, "name": layer.name,
             "activator": _input_to_dict(layer.activator) if layer.activator else None}
            for layer in profile.shift_layers
        ]
    return data


def _mapping_kwargs(d: dict, where: str) -> dict:
    kwargs = {
        "name": d.get("name", ""),
        "output": _output_from_dict(d.get("output"), where),
        "inputs": [_input_from_dict(i, where) for i in d.get("inputs", [])],
        "enabled": bool(d.get("enabled", True)),
    }
    if d.get("id"):
        kwargs["id"] = str(d["id"])
    if d.get("layer_id"):
        kwargs["layer_id"] = str(d["layer_id"])
    return kwargs


def profile_from_dict(data: dict) -> MappingProfile:
    """Build a profile from its YAML form. Malformed entries raise ValueError naming the entry."""
    if not isinstance(data, dict) or "name" not in data:
        raise ValueError("profile must be a mapping with a 'name'")
    profile = MappingProfile(name=str(data["name"]), description=data.get("description") or "")
    if data.get("id"):
        profile.id = str(data["id"])

    for n, d in enumerate(data.get("axis_mappings") or []):
        where = f"axis_mappings[{n}]"
        profile.axis_mappings.append(AxisMapping(
            curve=_curve_from_dict(d.get("curve"), where),
            deadzone=_deadzone_from_dict(d.get("deadzone")),
            merge_op=_enum(MergeOperation, d.get("merge_op", "average"), where),
            **_mapping_kwargs(d, where),
        ))
    for n, d in enumerate(data.get("button_mappings") or []):
        where = f"button_mappings[{n}]"
        profile.button_mappings.append(ButtonMapping(
            mode=_enum(ButtonMode, d.get("mode", "normal"), where),
            pulse_duration_ms=clamp_pulse_ms(_float(d, "pulse_duration_ms", 100, where)),
            hold_duration_ms=clamp_hold_ms(_float(d, "hold_duration_ms", 500, where)),
            **_mapping_kwargs(d, where),
        ))
    for n, d in enumerate(data.get("hat_mappings") or []):
        where = f"hat_mappings[{n}]"
        profile.hat_mappings.append(HatMapping(
            use_continuous=bool(d.get("use_continuous", True)),
            **_mapping_kwargs(d, where),
        ))
    for n, d in enumerate(data.get("axis_to_button_mappings") or []):
        where = f"axis_to_button_mappings[{n}]"
        profile.axis_to_button_mappings.append(AxisToButtonMapping(
            threshold=_float(d, "threshold", 0.5, where),
            activate_above=bool(d.get("activate_above", True)),
            hysteresis=_float(d, "hysteresis", 0.05, where),
            invert=bool(d.get("invert", False)),
            **_mapping_kwargs(d, where),
        ))
    for n, d in enumerate(data.get("button_to_axis_mappings") or []):
        where = f"button_to_axis_mappings[{n}]"
        profile.button_to_axis_mappings.append(ButtonToAxisMapping(
            pressed_value=_float(d, "pressed_value", 1.0, where),
            released_value=_float(d, "released_value", 0.0, where),
            smoothing_ms=int(_float(d, "smoothing_ms", 0, where)),
            invert=bool(d.get("invert", False)),
            **_mapping_kwargs(d, where),
        ))
    for n, d in enumerate(data.get("shift_layers") or []):
        where = f"shift_layers[{n}]"
        layer = ShiftLayer(
            name=str(d.get("name", "")),
            activator=_input_from_dict(d["activator"], where) if d.get("activator") else None,
        )
        if d.get("id"):
            layer.id = str(d["id"])
        profile.shift_layers.append(layer)

    known = {layer.id for layer in profile.shift_layers}
    for m in profile.all_mappings():
        if m.layer_id is not None and m.layer_id not in known:
            LOG.warning("mapping %s is on unknown layer %s and will never run", m.name, m.layer_id)

    profile.created_at = _timestamp(data.get("created_at"))
    profile.modified_at = _timestamp(data.get("modified_at"))
    return profile


def export_to_dict(export: SCExportProfile) -> dict:
    bindings = []
    for b in export.bindings:
        d = {
            "action_map": b.action_map,
            "action_name": b.action_name,
            "input_name": b.input_name,
            "vjoy_device": b.vjoy_device,
            "input_type": b.input_type.value,
            "device_type": b.device_type.value,
        }
        if b.modifiers:
            d["modifiers"] = list(b.modifiers)
        if b.inverted:
            d["inverted"] = True
        if b.physical_device_id:
            d["physical_device_id"] = b.physical_device_id
        if b.shared_with:
            d["shared_with"] = [
                {"vjoy_slot": s.vjoy_slot, "input_name": s.input_name,
                 "rerouted_mapping_ids": list(s.rerouted_mapping_ids)}
                for s in b.shared_with
            ]
        bindings.append(d)
    return {
        "profile_name": export.profile_name,
        "modified_at": export.modified_at.isoformat(),
        "vjoy_to_sc_instance": {int(k): int(v) for k, v in export.vjoy_to_sc_instance.items()},
        "bindings": bindings,
    }


def export_from_dict(data: dict) -> SCExportProfile:
    export = SCExportProfile(profile_name=data.get("profile_name", ""))
    export.vjoy_to_sc_instance = {int(k): int(v) for k, v in (data.get("vjoy_to_sc_instance") or {}).items()}
    for n, d in enumerate(data.get("bindings") or []):
        where = f"bindings[{n}]"
        export.bindings.append(SCActionBinding(
            action_map=d["action_map"],
            action_name=d["action_name"],
            input_name=d["input_name"],
            vjoy_device=int(d.get("vjoy_device", 1)),
            input_type=_enum(SCInputType, d.get("input_type", "button"), where),
            device_type=_enum(SCDeviceType, d.get("device_type", "joystick"), where),
            modifiers=list(d.get("modifiers") or []),
            inverted=bool(d.get("inverted", False)),
            physical_device_id=d.get("physical_device_id"),
            shared_with=[
                SCSharedInput(int(s["vjoy_slot"]), s["input_name"], list(s.get("rerouted_mapping_ids") or []))
                for s in d.get("shared_with") or []
            ],
        ))
    export.modified_at = _timestamp(data.get("modified_at"))
    return export


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "profile"


def _write_yaml(path: Path, data: dict):
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    os.replace(tmp, path)


def _read_yaml(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class ProfileRepository(ProfileStore):
    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, name: str, suffix: str = PROFILE_SUFFIX) -> Path:
        return self.directory / (_safe_name(name) + suffix)

    def save(self, profile: MappingProfile) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(profile.name)
        _write_yaml(path, profile_to_dict(profile))
        LOG.info("saved profile %s -> %s", profile.name, path)
        return path

    def load(self, name: str) -> Optional[MappingProfile]:
        path = self._path(name)
        if not path.exists():
            LOG.warning("profile %s not found in %s", name, self.directory)
            return None
        return profile_from_dict(_read_yaml(path))

    def list_profiles(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        names = []
        for path in sorted(self.directory.glob("*" + PROFILE_SUFFIX)):
            if path.name.endswith(EXPORT_SUFFIX):
                continue
            try:
                data = _read_yaml(path)
            except yaml.YAMLError:
                LOG.exception("unreadable profile %s", path)
                continue
            if isinstance(data, dict) and data.get("name"):
                names.append(str(data["name"]))
        return names

    def delete(self, name: str) -> bool:
        removed = False
        for suffix in (PROFILE_SUFFIX, EXPORT_SUFFIX):
            path = self._path(name, suffix)
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            LOG.info("deleted profile %s", name)
        return removed

    def save_export(self, name: str, export: SCExportProfile) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(name, EXPORT_SUFFIX)
        _write_yaml(path, export_to_dict(export))
        return path

    def load_export(self, name: str) -> SCExportProfile:
        path = self._path(name, EXPORT_SUFFIX)
        if not path.exists():
            return SCExportProfile(profile_name=name)
        return export_from_dict(_read_yaml(path) or {})
