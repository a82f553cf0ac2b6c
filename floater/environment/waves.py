'''
Directional wave field built from deep-water linear (Airy) components.

Each component displaces the surface as a Gerstner wave:

- Phase:        theta = k * (d . p) - omega * t + phi
- Dispersion:   omega^2 = g * k            (deep water)
- Vertical:     dy = A * cos(theta)
- Horizontal:   dxz = -c * A * sin(theta) * d     (c = choppiness)

Surface velocity is the time derivative of the displacement. The field is
evaluated directly at the query point's horizontal position.
'''

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from ..core.exceptions import ConfigError
from ..core.types import Rect
from .providers import SamplingToken, TokenTrackingProvider, _check_buffers


@dataclass(frozen=True)
class WaveComponent:
    amplitude: float      # [m]
    wavelength: float     # [m]
    direction: float = 0.0  # [rad], travel direction, from +x towards +z
    phase: float = 0.0    # [rad]

    @property
    def wavenumber(self) -> float:
        return 2.0 * math.pi / self.wavelength

    def angular_frequency(self, gravity: float) -> float:
        return math.sqrt(gravity * self.wavenumber)


class WaveFieldProvider(TokenTrackingProvider):
    """
    Analytic wave provider.

    Components shorter than the token's ``min_feature_size`` are left out of
    the sum: a body cannot respond to waves much smaller than itself.
    """

    def __init__(
        self,
        components: Iterable[WaveComponent],
        choppiness: float = 1.0,
        gravity: float = 9.81,
        coverage: Optional[Rect] = None,
    ) -> None:
        super().__init__(coverage=coverage)
        self.components = tuple(components)
        for c in self.components:
            if c.wavelength <= 0 or c.amplitude < 0:
                raise ConfigError("Wave components need wavelength > 0 and amplitude >= 0", field_name="components", field_value=c)
        self.choppiness = float(choppiness)
        self.gravity = float(gravity)
        self.t = 0.0

    def advance(self, t: float) -> None:
        self.t = float(t)

    def _resolved(self, min_feature_size: float) -> tuple[WaveComponent, ...]:
        return tuple(c for c in self.components if c.wavelength >= min_feature_size)

    def query(
        self,
        caller_id: int,
        token: Optional[SamplingToken],
        points: np.ndarray,
        out_displacements: np.ndarray,
        out_normals: Optional[np.ndarray],
        out_velocities: Optional[np.ndarray],
    ) -> None:
        token = self._require_live(token)
        n = _check_buffers(points, out_displacements, out_normals, out_velocities)
        px = points[:n, 0]
        pz = points[:n, 2]

        disp = np.zeros((n, 3))
        vel = np.zeros((n, 3))
        slope_x = np.zeros(n)
        slope_z = np.zeros(n)

        for comp in self._resolved(token.min_feature_size):
            k = comp.wavenumber
            omega = comp.angular_frequency(self.gravity)
            dx, dz = math.cos(comp.direction), math.sin(comp.direction)
            theta = k * (dx * px + dz * pz) - omega * self.t + comp.phase
            cos_t = np.cos(theta)
            sin_t = np.sin(theta)
            a = comp.amplitude
            horiz = self.choppiness * a

            disp[:, 0] -= horiz * sin_t * dx
            disp[:, 1] += a * cos_t
            disp[:, 2] -= horiz * sin_t * dz

            vel[:, 0] += horiz * omega * cos_t * dx
            vel[:, 1] += a * omega * sin_t
            vel[:, 2] += horiz * omega * cos_t * dz

            slope_x -= a * k * sin_t * dx
            slope_z -= a * k * sin_t * dz

        out_displacements[:n] = disp
        if out_velocities is not None:
            out_velocities[:n] = vel
        if out_normals is not None:
            normals = np.stack([-slope_x, np.ones(n), -slope_z], axis=1)
            out_normals[:n] = normals / np.linalg.norm(normals, axis=1, keepdims=True)
