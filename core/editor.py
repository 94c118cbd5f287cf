"""Editor session state for the axis curve / deadzone panel

`EditorSession` is an immutable snapshot; every operation returns a new session.
Sessions are loaded from an axis mapping and written back with `commit`.
"""
from dataclasses import dataclass, field, replace
from typing import Optional

from core import curve as curves
from core import deadzone as deadzones
from core.deadzone import DeadzoneHandle
from core.models import AxisCurve, AxisMapping, Category, CurveType, Deadzone, MappingProfile


@dataclass(frozen=True)
class EditorSession:
    category: Category = Category.AXES
    selected_row: int = -1
    mapping_id: Optional[str] = None
    curve: AxisCurve = field(default_factory=AxisCurve)
    deadzone: Deadzone = field(default_factory=Deadzone)
    selected_handle: Optional[DeadzoneHandle] = None
    dragging_point: int = -1


def load(mapping: AxisMapping, row: int = -1) -> EditorSession:
    return EditorSession(
        category=Category.AXES,
        selected_row=row,
        mapping_id=mapping.id,
        curve=mapping.curve,
        deadzone=mapping.deadzone,
    )


def commit(session: EditorSession, profile: MappingProfile) -> bool:
    """Write the session's curve and deadzone back to its mapping. Returns False if it no longer exists."""
    if session.mapping_id is None:
        return False
    for mapping in profile.axis_mappings:
        if mapping.id == session.mapping_id:
            mapping.curve = session.curve
            mapping.deadzone = session.deadzone
            profile.touch()
            return True
    return False


def select_row(session: EditorSession, category: Category, row: int) -> EditorSession:
    """Switch the selected output row; curve and handle selection reset."""
    return EditorSession(category=category, selected_row=row)


def select_handle(session: EditorSession, handle: Optional[DeadzoneHandle]) -> EditorSession:
    if handle is not None and handle.is_center and not session.deadzone.center_enabled:
        return session
    return replace(session, selected_handle=handle)


def drag_handle(session: EditorSession, value: float) -> EditorSession:
    if session.selected_handle is None:
        return session
    dz = deadzones.drag_handle(session.deadzone, session.selected_handle, value)
    return replace(session, deadzone=dz)


def apply_preset(session: EditorSession, preset: float) -> EditorSession:
    """Apply a preset size to the selected handle; nothing happens without a selection."""
    if session.selected_handle is None:
        return session
    dz = deadzones.apply_preset(session.deadzone, session.selected_handle, preset)
    return replace(session, deadzone=dz)


def set_center_enabled(session: EditorSession, enabled: bool) -> EditorSession:
    dz = deadzones.set_center_enabled(session.deadzone, enabled)
    handle = session.selected_handle
    if not enabled and handle is not None and handle.is_center:
        handle = None
    return replace(session, deadzone=dz, selected_handle=handle)


def select_curve_type(session: EditorSession, curve_type: CurveType) -> EditorSession:
    return replace(session, curve=curves.select_curve_type(session.curve, curve_type), dragging_point=-1)


def set_symmetrical(session: EditorSession, enabled: bool) -> EditorSession:
    return replace(session, curve=curves.set_symmetrical(session.curve, enabled))


def set_inverted(session: EditorSession, inverted: bool) -> EditorSession:
    return replace(session, curve=replace(session.curve, inverted=inverted))


def add_point(session: EditorSession, x: float, y: float) -> EditorSession:
    return replace(session, curve=curves.add_point(session.curve, x, y))


def remove_point(session: EditorSession, index: int) -> EditorSession:
    return replace(session, curve=curves.remove_point(session.curve, index), dragging_point=-1)


def begin_point_drag(session: EditorSession, index: int) -> EditorSession:
    points = session.curve.control_points
    if session.curve.type != CurveType.CUSTOM or not 0 <= index < len(points):
        return session
    if curves.is_center_point(points[index]):
        return session
    return replace(session, dragging_point=index)


def drag_point(session: EditorSession, x: float, y: float) -> EditorSession:
    if session.dragging_point < 0:
        return session
    return replace(session, curve=curves.move_point(session.curve, session.dragging_point, x, y))


def end_point_drag(session: EditorSession) -> EditorSession:
    return replace(session, dragging_point=-1)
