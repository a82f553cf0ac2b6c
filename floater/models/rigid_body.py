from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from ..core.types import BodyParams, ForceMode, InitialPose
from ..core.geometry import UP


@dataclass
class RigidBody:
    """Minimal host rigid body.
    Responsibilities:
      - Own the pose and velocities of one body
      - Accumulate forces/torques for the current step (FORCE or ACCELERATION mode)
      - Integrate them with gravity by semi-implicit Euler in ``integrate``
    The centre of mass is a body-local offset; forces applied away from it
    produce torque about it.
    """
    mass: float = 1000.0
    inertia: np.ndarray = field(default_factory=lambda: np.full(3, 1000.0))  # principal, body frame
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: Rotation = field(default_factory=Rotation.identity)
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    center_of_mass: np.ndarray = field(default_factory=lambda: np.zeros(3))
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, -9.81, 0.0]))
    angular_damping: float = 0.05
    use_gravity: bool = True

    def __post_init__(self):
        self.inertia = np.asarray(self.inertia, dtype=float)
        self.position = np.asarray(self.position, dtype=float)
        self.velocity = np.asarray(self.velocity, dtype=float)
        self.angular_velocity = np.asarray(self.angular_velocity, dtype=float)
        self.center_of_mass = np.asarray(self.center_of_mass, dtype=float)
        self.gravity = np.asarray(self.gravity, dtype=float)
        self.clear_accumulators()

    @classmethod
    def from_params(cls, params: BodyParams, initial: Optional[InitialPose] = None, gravity: Optional[Sequence[float]] = None) -> "RigidBody":
        initial = initial or InitialPose()
        return cls(
            mass=params.mass,
            inertia=np.asarray(params.inertia, dtype=float),
            position=np.asarray(initial.position, dtype=float),
            rotation=Rotation.from_rotvec(initial.heading * UP),
            velocity=np.asarray(initial.velocity, dtype=float),
            center_of_mass=np.asarray(params.center_of_mass, dtype=float),
            gravity=np.asarray(gravity if gravity is not None else (0.0, -9.81, 0.0), dtype=float),
            angular_damping=params.angular_damping,
        )

    def clear_accumulators(self) -> None:
        self._force = np.zeros(3)
        self._torque = np.zeros(3)

    @property
    def world_center_of_mass(self) -> np.ndarray:
        return self.position + self.rotation.apply(self.center_of_mass)

    @property
    def accumulated_force(self) -> np.ndarray:
        return self._force.copy()

    @property
    def accumulated_torque(self) -> np.ndarray:
        return self._torque.copy()

    def _world_inertia(self) -> np.ndarray:
        R = self.rotation.as_matrix()
        return R @ np.diag(self.inertia) @ R.T

    def add_force_at_position(self, force: np.ndarray, position: np.ndarray, mode: ForceMode = ForceMode.FORCE) -> None:
        f = np.asarray(force, dtype=float)
        if mode is ForceMode.ACCELERATION:
            f = f * self.mass
        self._force += f
        self._torque += np.cross(np.asarray(position, dtype=float) - self.world_center_of_mass, f)

    def add_torque(self, torque: np.ndarray, mode: ForceMode = ForceMode.FORCE) -> None:
        tau = np.asarray(torque, dtype=float)
        if mode is ForceMode.ACCELERATION:
            tau = self._world_inertia() @ tau
        self._torque += tau

    def integrate(self, dt: float) -> None:
        """Advance one step and clear the accumulators."""
        accel = self._force / self.mass
        if self.use_gravity:
            accel = accel + self.gravity
        self.velocity = self.velocity + accel * dt

        I_world = self._world_inertia()
        alpha = np.linalg.solve(I_world, self._torque)
        omega = (self.angular_velocity + alpha * dt) * max(0.0, 1.0 - self.angular_damping * dt)
        self.angular_velocity = omega

        # Pose follows the centre of mass so off-centre rotation stays consistent.
        com_before = self.world_center_of_mass
        self.rotation = Rotation.from_rotvec(omega * dt) * self.rotation
        com_after = com_before + self.velocity * dt
        self.position = com_after - self.rotation.apply(self.center_of_mass)

        self.clear_accumulators()
