from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np


class ForceMode(Enum):
    """How a force/torque is interpreted by the host body."""
    FORCE = "force"                # [N] / [N*m]
    ACCELERATION = "acceleration"  # [m/s^2] / [rad/s^2], mass independent


@dataclass
class ProbePoint:
    """Body-local sample point; weight redistributes buoyancy between probes."""
    offset_position: tuple[float, float, float]
    weight: float = 1.0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in the horizontal plane (x, z)."""
    x_min: float = 0.0
    z_min: float = 0.0
    x_max: float = 0.0
    z_max: float = 0.0

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.z_max - self.z_min

    def is_empty(self) -> bool:
        return self.width <= 0.0 and self.height <= 0.0

    def contains_point(self, x: float, z: float) -> bool:
        return self.x_min <= x <= self.x_max and self.z_min <= z <= self.z_max

    def contains(self, other: "Rect") -> bool:
        return (
            self.x_min <= other.x_min
            and self.z_min <= other.z_min
            and self.x_max >= other.x_max
            and self.z_max >= other.z_max
        )


@dataclass(frozen=True)
class ControlInput:
    """External control axes, nominally in [-1, 1]."""
    throttle: float = 0.0
    steer: float = 0.0
    notes: Optional[str] = None


@dataclass(frozen=True)
class AppliedForce:
    """One force handed to the host body during a tick."""
    source: str                 # "buoyancy", "drag", "engine"
    force: np.ndarray           # world-space vector
    position: np.ndarray        # world-space application point
    mode: ForceMode = ForceMode.FORCE


@dataclass(frozen=True)
class AppliedTorque:
    source: str
    torque: np.ndarray
    mode: ForceMode = ForceMode.FORCE


@dataclass(frozen=True)
class TickResult:
    """Everything one simulator tick produced, for logging and tests."""
    forces: tuple[AppliedForce, ...] = ()
    torques: tuple[AppliedTorque, ...] = ()
    displacement: np.ndarray = field(default_factory=lambda: np.zeros(3))
    water_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    undisplaced_position: Optional[np.ndarray] = None
    used_fallback: bool = False
    submerged_probes: int = 0
    skipped: bool = False

    def total_force(self, source: Optional[str] = None, mode: Optional[ForceMode] = None) -> np.ndarray:
        total = np.zeros(3)
        for f in self.forces:
            if source is not None and f.source != source:
                continue
            if mode is not None and f.mode is not mode:
                continue
            total += f.force
        return total

    def total_torque_about(self, point: np.ndarray, source: Optional[str] = None) -> np.ndarray:
        """Moment of the applied forces about ``point`` (pure torques excluded)."""
        total = np.zeros(3)
        p = np.asarray(point, dtype=float)
        for f in self.forces:
            if source is not None and f.source != source:
                continue
            total += np.cross(f.position - p, f.force)
        return total


@dataclass(frozen=True)
class BodyParams:
    """Authored, static per-body configuration."""
    probes: tuple[ProbePoint, ...] = ()
    center_of_mass: tuple[float, float, float] = (0.0, 0.0, 0.0)
    force_height_offset: float = 0.0
    force_multiplier: float = 10.0
    min_feature_size: float = 12.0
    turning_heel: float = 0.35
    # drag, applied as accelerations
    drag_up: float = 3.0
    drag_right: float = 2.0
    drag_forward: float = 1.0
    # propulsion, applied as accelerations
    engine_power: float = 7.0
    turn_power: float = 0.5
    control_enabled: bool = True
    engine_bias: float = 0.0
    turn_bias: float = 0.0
    # reference host body
    mass: float = 1000.0
    inertia: tuple[float, float, float] = (1000.0, 1000.0, 1000.0)
    angular_damping: float = 0.05
    metadata: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class SimulationConfig:
    """Simulation configuration derived from Scenario JSON."""
    t0: float
    t_end: float
    dt: float
    output_decimation: int = 1
    env: Optional[Mapping[str, Any]] = None
    termination_bounds: Optional[Mapping[str, float]] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class InitialPose:
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    heading: float = 0.0  # yaw about +y [rad]
    velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
