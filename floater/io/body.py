from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from ..core.types import BodyParams, ProbePoint
from ._json import SCHEMA_DIR, load_json, load_schema, validate


def _vec3(val: Any, default: tuple[float, float, float] = (0.0, 0.0, 0.0)) -> tuple[float, float, float]:
    if val is None:
        return default
    return (float(val[0]), float(val[1]), float(val[2]))


def params_from_dict(data: Mapping[str, Any], source: Optional[str] = None) -> BodyParams:
    """Normalise an already validated body document into BodyParams."""
    probes = tuple(
        ProbePoint(offset_position=_vec3(p["offset"]), weight=float(p.get("weight", 1.0)))
        for p in data.get("probes", [])
    )

    forces = data.get("forces", {}) or {}
    drag = data.get("drag", {}) or {}
    control = data.get("control", {}) or {}
    mp = data.get("mass_properties", {}) or {}

    return BodyParams(
        probes=probes,
        center_of_mass=_vec3(forces.get("center_of_mass")),
        force_height_offset=float(forces.get("force_height_offset", 0.0)),
        force_multiplier=float(forces.get("force_multiplier", 10.0)),
        min_feature_size=float(forces.get("min_feature_size", 12.0)),
        turning_heel=float(forces.get("turning_heel", 0.35)),
        drag_up=float(drag.get("up", 3.0)),
        drag_right=float(drag.get("right", 2.0)),
        drag_forward=float(drag.get("forward", 1.0)),
        engine_power=float(control.get("engine_power", 7.0)),
        turn_power=float(control.get("turn_power", 0.5)),
        control_enabled=bool(control.get("enabled", True)),
        engine_bias=float(control.get("engine_bias", 0.0)),
        turn_bias=float(control.get("turn_bias", 0.0)),
        mass=float(mp.get("mass", 1000.0)),
        inertia=_vec3(mp.get("inertia"), (1000.0, 1000.0, 1000.0)),
        angular_damping=float(mp.get("angular_damping", 0.05)),
        metadata={"source": source, "name": data.get("name"), "schema_version": data.get("schema_version")},
    )


def load(path: str | Path, schema_path: str | Path = SCHEMA_DIR / "body.schema.json") -> BodyParams:
    """Load a Body Definition JSON, validate it and normalise to BodyParams."""
    path = Path(path)
    data = load_json(path)
    schema = load_schema(Path(schema_path))
    validate(data, schema, "Body")
    return params_from_dict(data, source=str(path))
