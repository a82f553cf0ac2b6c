from __future__ import annotations

import numpy as np

from ..core.geometry import UP
from ..core.types import AppliedForce, BodyParams, ControlInput, ForceMode
from .base import ForceContribution, TickSample


def probe_height_differences(tick: TickSample) -> np.ndarray:
    """Water height minus probe height; positive where a probe is submerged."""
    if tick.query_points.shape[0] == 0:
        return np.zeros(0)
    water_height = tick.sea_level + tick.displacements[:, 1]
    return water_height - tick.query_points[:, 1]


class BuoyancyForce:
    """
    Point-sampled buoyancy.

    Every submerged probe pushes straight up at its own position with
        rho * |g| * depth * (w_i / sum(w)) * force_multiplier
    This approximates the submerged volume by probe depth only; accuracy comes
    from probe density, not from integrating the hull shape.
    """

    def compute(
        self,
        tick: TickSample,
        control: ControlInput,
        params: BodyParams,
    ) -> ForceContribution:
        out = ForceContribution()
        # Degenerate layouts (no probes, zero total weight) carry no weights.
        if tick.weights.size == 0:
            return out

        archimedes = tick.fluid_density * tick.gravity_magnitude
        height_diff = probe_height_differences(tick)
        for i in np.flatnonzero(height_diff > 0.0):
            magnitude = archimedes * height_diff[i] * tick.weights[i] * params.force_multiplier
            out.forces.append(
                AppliedForce(
                    source="buoyancy",
                    force=magnitude * UP,
                    position=tick.query_points[i].copy(),
                    mode=ForceMode.FORCE,
                )
            )
        return out
