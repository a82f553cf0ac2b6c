from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from ..core.geometry import Pose
from ..core.types import AppliedForce, AppliedTorque, BodyParams, ControlInput


@dataclass
class TickSample:
    """Water samples and body kinematics gathered once per tick, shared by all force modules."""
    pose: Pose
    body_velocity: np.ndarray
    query_points: np.ndarray      # (n_probes, 3), world space
    displacements: np.ndarray     # (n_probes, 3)
    weights: np.ndarray           # (n_probes,), normalised; empty when degenerate
    water_velocity: np.ndarray    # whole-body water velocity incl. flow
    sea_level: float = 0.0
    fluid_density: float = 1000.0
    gravity_magnitude: float = 9.81


@dataclass
class ForceContribution:
    forces: list[AppliedForce] = field(default_factory=list)
    torques: list[AppliedTorque] = field(default_factory=list)


class ForceModule(Protocol):
    def compute(
        self,
        tick: TickSample,
        control: ControlInput,
        params: BodyParams,
    ) -> ForceContribution:
        """
        Return the forces/torques this module applies for one tick.
        World space; units depend on each entry's ForceMode.
        """
        ...
