from __future__ import annotations

import numpy as np

from ..core.types import AppliedForce, AppliedTorque, BodyParams, ControlInput, ForceMode
from .base import ForceContribution, TickSample


class PropulsionForce:
    """
    Engine thrust and steering torque.

    Thrust acts along the body's forward axis at the body position. The turning
    torque axis leans from body-up towards body-forward by ``turning_heel`` so
    the body banks into turns. Control input is ignored unless
    ``control_enabled``; the bias terms always apply.
    """

    def compute(
        self,
        tick: TickSample,
        control: ControlInput,
        params: BodyParams,
    ) -> ForceContribution:
        forward = params.engine_bias
        sideways = params.turn_bias
        if params.control_enabled:
            forward += control.throttle
            sideways += control.steer

        out = ForceContribution()
        out.forces.append(
            AppliedForce(
                source="engine",
                force=tick.pose.forward * params.engine_power * forward,
                position=np.asarray(tick.pose.position, dtype=float).copy(),
                mode=ForceMode.ACCELERATION,
            )
        )
        rot_axis = tick.pose.up + params.turning_heel * tick.pose.forward
        out.torques.append(
            AppliedTorque(
                source="engine",
                torque=rot_axis * params.turn_power * sideways,
                mode=ForceMode.ACCELERATION,
            )
        )
        return out
