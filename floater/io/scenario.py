from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Mapping

from ..core.types import InitialPose, SimulationConfig
from ._json import SCHEMA_DIR, load_json, load_schema, validate


def _angle_to_rad(val: float, units: str | None) -> float:
    if units == "deg":
        return val * math.pi / 180.0
    return val


def load(
    path: str | Path, schema_path: str | Path = SCHEMA_DIR / "scenario.schema.json"
) -> tuple[SimulationConfig, InitialPose, Mapping[str, Any]]:
    """Load Scenario JSON, validate against schema, normalise to SI/radians.

    Returns the simulation config, the initial pose and the raw scenario
    mapping (environment and control blocks are built by their factories).
    """
    p = Path(path)
    schema = load_schema(Path(schema_path))
    data = load_json(p)
    validate(data, schema, "Scenario")

    angles_unit = (data.get("units_policy", {}) or {}).get("angles", "rad")
    sim = data["simulation"]
    init = data.get("initial_conditions", {}) or {}
    outputs = data.get("outputs", {}) or {}
    per_tick = outputs.get("per_tick", {}) if isinstance(outputs, dict) else {}

    cfg = SimulationConfig(
        t0=float(sim.get("t0", 0.0)),
        t_end=float(sim["t_end"]),
        dt=float(sim["t_step"]),
        output_decimation=int(per_tick.get("decimation", 1) or 1),
        env=data.get("environment"),
        termination_bounds=data.get("termination_bounds"),
        notes=data.get("notes"),
    )

    pose = InitialPose(
        position=tuple(float(c) for c in init.get("position", (0.0, 0.0, 0.0))),
        heading=_angle_to_rad(float(init.get("heading", 0.0)), angles_unit),
        velocity=tuple(float(c) for c in init.get("velocity", (0.0, 0.0, 0.0))),
    )
    return cfg, pose, data
