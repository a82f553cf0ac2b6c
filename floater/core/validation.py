from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from .types import BodyParams, InitialPose, SimulationConfig
from .exceptions import ConfigError, NumericalInstability


def validate_params(params: BodyParams) -> None:
    for i, p in enumerate(params.probes):
        if len(p.offset_position) != 3 or not all(math.isfinite(c) for c in p.offset_position):
            raise ConfigError("Probe offset must be a finite 3-vector", field_name=f"probes[{i}].offset", field_value=p.offset_position)
        if not math.isfinite(p.weight) or p.weight < 0:
            raise ConfigError("Probe weight must be >= 0", field_name=f"probes[{i}].weight", field_value=p.weight)
    if not math.isfinite(params.min_feature_size) or params.min_feature_size <= 0:
        raise ConfigError("min_feature_size must be > 0", field_name="min_feature_size", field_value=params.min_feature_size)
    if not 0.0 <= params.turning_heel <= 1.0:
        raise ConfigError("turning_heel must be within [0, 1]", field_name="turning_heel", field_value=params.turning_heel)
    if not math.isfinite(params.mass) or params.mass <= 0:
        raise ConfigError("Invalid mass", field_name="mass", field_value=params.mass)
    if any(not math.isfinite(i) or i <= 0 for i in params.inertia):
        raise ConfigError("Inertia components must be > 0", field_name="inertia", field_value=params.inertia)
    for name in ("drag_up", "drag_right", "drag_forward", "force_multiplier"):
        val = getattr(params, name)
        if not math.isfinite(val) or val < 0:
            raise ConfigError(f"{name} must be >= 0", field_name=name, field_value=val)


def validate_config(cfg: SimulationConfig) -> None:
    if not math.isfinite(cfg.dt) or cfg.dt <= 0:
        raise ConfigError("dt must be > 0")
    if not math.isfinite(cfg.t_end) or cfg.t_end <= 0:
        raise ConfigError("t_end must be > 0")
    if not math.isfinite(cfg.t0):
        raise ConfigError("t0 must be finite")
    if cfg.output_decimation <= 0:
        raise ConfigError("decimation factor must be a positive integer")


def validate_initial_pose(pose: InitialPose) -> None:
    check_finite_vector("position", pose.position)
    check_finite_vector("velocity", pose.velocity)
    if not math.isfinite(pose.heading):
        raise NumericalInstability("Non-finite initial heading", component="heading", value=pose.heading)


def check_finite_vector(name: str, vec: Sequence[float] | np.ndarray, t: Optional[float] = None) -> None:
    arr = np.asarray(vec, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise NumericalInstability(f"Non-finite {name}={arr.tolist()}", component=name, simulation_time=t)


def detect_numerical_issue(position_before: np.ndarray, position_after: np.ndarray, t: Optional[float] = None) -> None:
    # NaN/Inf and absurd jumps
    check_finite_vector("position", position_after, t)
    jump = float(np.max(np.abs(np.asarray(position_after) - np.asarray(position_before))))
    if jump > 1e6:
        raise NumericalInstability("Unrealistic position jump detected", component="position", value=jump, simulation_time=t)


def apply_termination_bounds(position: np.ndarray, cfg: SimulationConfig) -> Optional[str]:
    bounds = cfg.termination_bounds or {}
    x, y, z = (float(c) for c in position)
    if "x_min" in bounds and x < bounds["x_min"]:
        return "x below bound"
    if "x_max" in bounds and x > bounds["x_max"]:
        return "x above bound"
    if "y_min" in bounds and y < bounds["y_min"]:
        return "y below bound"
    if "y_max" in bounds and y > bounds["y_max"]:
        return "y above bound"
    if "z_min" in bounds and z < bounds["z_min"]:
        return "z below bound"
    if "z_max" in bounds and z > bounds["z_max"]:
        return "z above bound"
    return None
