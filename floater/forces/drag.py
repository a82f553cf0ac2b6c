from __future__ import annotations

import numpy as np

from ..core.types import AppliedForce, BodyParams, ControlInput, ForceMode
from .base import ForceContribution, TickSample


class DragForce:
    """
    Anisotropic linear drag relative to the local water velocity.
    Features:
    - Relative velocity = body velocity minus sampled surface velocity (plus flow)
    - Independent coefficients along body up, right and forward axes
    - Applied as accelerations at the body position lifted by force_height_offset
    """

    def compute(
        self,
        tick: TickSample,
        control: ControlInput,
        params: BodyParams,
    ) -> ForceContribution:
        rel = np.asarray(tick.body_velocity, dtype=float) - tick.water_velocity
        up = tick.pose.up
        position = np.asarray(tick.pose.position, dtype=float) + params.force_height_offset * up

        out = ForceContribution()
        for axis, coeff in (
            (up, params.drag_up),
            (tick.pose.right, params.drag_right),
            (tick.pose.forward, params.drag_forward),
        ):
            out.forces.append(
                AppliedForce(
                    source="drag",
                    force=axis * float(np.dot(axis, -rel)) * coeff,
                    position=position.copy(),
                    mode=ForceMode.ACCELERATION,
                )
            )
        return out
