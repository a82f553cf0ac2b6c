from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

import numpy as np

from ..core.types import ControlInput, SimulationConfig, TickResult
from ..core.validation import (
    validate_config,
    validate_params,
    detect_numerical_issue,
    apply_termination_bounds,
)
from ..environment.context import WaterContext
from .simulator import BuoyancySimulator

logger = logging.getLogger(__name__)


# Collaborators the runner drives; concrete classes live in models/, control/ and io/.
class HostBody(Protocol):
    position: np.ndarray
    velocity: np.ndarray
    angular_velocity: np.ndarray
    def integrate(self, dt: float) -> None: ...


class ControlProvider(Protocol):
    def compute(self, t: float) -> ControlInput: ...


class TickWriter(Protocol):
    def write_tick(self, record: Mapping[str, Any]) -> None: ...


class SummaryWriter(Protocol):
    def write_summary(self, summary: Mapping[str, Any]) -> None: ...


@dataclass
class Callbacks:
    on_step: Optional[Callable[[float, HostBody, ControlInput, TickResult], None]] = None
    on_tick_logged: Optional[Callable[[int], None]] = None


@dataclass
class RunResult:
    status: str
    reason: Optional[str]
    end_time: float
    ticks: int
    dt: float
    fallback_ticks: int = 0

    def summary(self) -> Mapping[str, Any]:
        return {
            "status": self.status,
            "reason": self.reason,
            "end_time": self.end_time,
            "ticks": self.ticks,
            "dt": self.dt,
            "fallback_ticks": self.fallback_ticks,
        }


def tick_record(t: float, body: HostBody, control: ControlInput, result: TickResult) -> dict[str, Any]:
    buoyancy = result.total_force("buoyancy")
    drag = result.total_force("drag")
    heading = 0.0
    rotation = getattr(body, "rotation", None)
    if rotation is not None:
        fwd = rotation.apply(np.array([0.0, 0.0, 1.0]))
        heading = float(np.arctan2(fwd[0], fwd[2]))
    return {
        "t": t,
        "x": float(body.position[0]),
        "y": float(body.position[1]),
        "z": float(body.position[2]),
        "heading": heading,
        "vx": float(body.velocity[0]),
        "vy": float(body.velocity[1]),
        "vz": float(body.velocity[2]),
        "throttle": control.throttle,
        "steer": control.steer,
        "disp_y": float(result.displacement[1]),
        "buoyancy_y": float(buoyancy[1]),
        "drag_x": float(drag[0]),
        "drag_y": float(drag[1]),
        "drag_z": float(drag[2]),
        "submerged_probes": result.submerged_probes,
        "fallback": int(result.used_fallback),
    }


class SimulationRunner:
    """Fixed-step loop: control, one buoyancy tick, host integration, logging."""

    def run(
        self,
        simulator: BuoyancySimulator,
        body: HostBody,
        context: WaterContext,
        config: SimulationConfig,
        control_provider: ControlProvider,
        writer: Optional[TickWriter] = None,
        summary_writer: Optional[SummaryWriter] = None,
        callbacks: Optional[Callbacks] = None,
    ) -> RunResult:
        # Fail before the first tick rather than mid-run.
        validate_config(config)
        validate_params(simulator.params)

        if not simulator.start(context):
            logger.warning("Simulator disabled at start-up; body will only be integrated")

        logger.info("Run started: t0=%.3f t_end=%.3f dt=%.4f", config.t0, config.t_end, config.dt)
        n_steps = max(0, math.ceil((config.t_end - config.t0) / config.dt - 1e-9))
        t = config.t0
        k = 0
        fallback_ticks = 0
        term_reason: Optional[str] = None

        while k < n_steps:
            t = config.t0 + k * config.dt
            context.advance(t)
            control = control_provider.compute(t)
            result = simulator.step(control=control, context=context)
            if result.used_fallback:
                fallback_ticks += 1

            if callbacks and callbacks.on_step:
                callbacks.on_step(t, body, control, result)

            if writer and (k % config.output_decimation) == 0:
                writer.write_tick(tick_record(t, body, control, result))
                if callbacks and callbacks.on_tick_logged:
                    callbacks.on_tick_logged(k)

            dt = min(config.dt, config.t_end - t)
            position_before = np.array(body.position, dtype=float)
            body.integrate(dt)
            detect_numerical_issue(position_before, body.position, t)

            t += dt
            k += 1

            reason = apply_termination_bounds(body.position, config)
            if reason:
                term_reason = reason
                break

        status = "completed" if term_reason is None else "terminated"
        result = RunResult(
            status=status,
            reason=term_reason,
            end_time=t,
            ticks=k,
            dt=config.dt,
            fallback_ticks=fallback_ticks,
        )
        if summary_writer:
            summary_writer.write_summary(result.summary())
        logger.info("Run %s after %d ticks (%d on still-water fallback)", status, k, fallback_ticks)
        return result
