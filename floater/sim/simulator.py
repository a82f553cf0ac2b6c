from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from ..core.exceptions import MissingDependency
from ..core.geometry import Pose, ProbeSet, compute_world_region
from ..core.types import BodyParams, ControlInput, ForceMode, ProbePoint, Rect, TickResult
from ..environment.context import WaterContext
from ..environment.providers import (
    NULL_PROVIDER,
    FieldProvider,
    SamplingToken,
    SupportsRequestProcessing,
)
from ..forces.base import ForceContribution, ForceModule, TickSample
from ..forces.buoyancy import BuoyancyForce, probe_height_differences
from ..forces.drag import DragForce
from ..forces.propulsion import PropulsionForce

logger = logging.getLogger(__name__)


class RigidBodyHandle(Protocol):
    """What the simulator needs from the host rigid body. The host owns the pose."""

    @property
    def position(self) -> np.ndarray: ...
    @property
    def rotation(self) -> Rotation: ...
    @property
    def velocity(self) -> np.ndarray: ...

    center_of_mass: np.ndarray

    def add_force_at_position(self, force: np.ndarray, position: np.ndarray, mode: ForceMode = ForceMode.FORCE) -> None: ...
    def add_torque(self, torque: np.ndarray, mode: ForceMode = ForceMode.FORCE) -> None: ...


class QueryBatch:
    """Reusable query buffers: one row per probe plus a final row for the body centre."""

    def __init__(self, probe_count: int) -> None:
        self.probe_count = -1
        self.ensure_size(probe_count)

    def ensure_size(self, probe_count: int) -> None:
        if probe_count == self.probe_count:
            return
        self.probe_count = probe_count
        self.points = np.zeros((probe_count + 1, 3))
        self.displacements = np.zeros((probe_count + 1, 3))
        self.velocities = np.zeros((probe_count + 1, 3))

    @property
    def center_index(self) -> int:
        return self.probe_count


@dataclass(frozen=True)
class SamplingLease:
    provider: FieldProvider
    token: Optional[SamplingToken]
    fallback: bool


@contextmanager
def sampling_scope(provider: FieldProvider, region: Rect, min_feature_size: float) -> Iterator[SamplingLease]:
    """
    Acquire sampling data for one tick and always give it back.

    Without coverage the null provider stands in for the rest of the tick; the
    substitution is never remembered.
    """
    token, ok = provider.get_sampling_data(region, min_feature_size)
    fallback = not ok
    if fallback:
        logger.debug("No water coverage for %s, using still water this tick", region)
        provider = NULL_PROVIDER
        token, _ = provider.get_sampling_data(region, min_feature_size)
    try:
        yield SamplingLease(provider=provider, token=token, fallback=fallback)
    finally:
        provider.return_sampling_data(token)


class BuoyancySimulator:
    """
    Floats a host rigid body by sampling the water at several probe points.

    Once per fixed step ``step`` computes the sampling region around the body,
    acquires provider data for it, issues a single batched query, hands
    buoyancy/drag/propulsion forces to the host body and releases the data.

    Also exposes the floating-body capability: ``velocity``,
    ``displacement_to_body``, ``width`` and ``is_submerged``.
    """

    def __init__(
        self,
        body: RigidBodyHandle,
        params: BodyParams,
        context: Optional[WaterContext] = None,
        buoyancy: Optional[ForceModule] = None,
        drag: Optional[ForceModule] = None,
        propulsion: Optional[ForceModule] = None,
        caller_id: Optional[int] = None,
    ) -> None:
        self.body = body
        self.params = params
        self.context = context
        self.buoyancy = buoyancy if buoyancy is not None else BuoyancyForce()
        self.drag = drag if drag is not None else DragForce()
        self.propulsion = propulsion if propulsion is not None else PropulsionForce()
        self.caller_id = caller_id if caller_id is not None else id(self)

        self.probes = ProbeSet(params.probes)
        self.batch = QueryBatch(len(self.probes))
        self.enabled = False
        self._started = False
        self._warned_degenerate = False
        self._displacement_to_body = np.zeros(3)
        self._submerged = False
        self.last_result: Optional[TickResult] = None

    # --- lifecycle ---
    def start(self, context: Optional[WaterContext] = None) -> bool:
        """Bind to the host body and water; disables the simulator if there is no water context."""
        if context is not None:
            self.context = context
        self._started = True
        self.body.center_of_mass = np.asarray(self.params.center_of_mass, dtype=float)
        try:
            self._require_context(self.context)
        except MissingDependency as e:
            logger.warning("%s, buoyancy simulation disabled", e)
            self.enabled = False
            return False
        self.enabled = True
        return True

    def _require_context(self, context: Optional[WaterContext]) -> WaterContext:
        if context is None:
            raise MissingDependency("No water context available", dependency="WaterContext")
        if context.field_provider is None:
            raise MissingDependency("Water context has no field provider", dependency="FieldProvider")
        return context

    def replace_probes(self, probes: Sequence[ProbePoint]) -> None:
        """Re-author the probe layout between ticks; query buffers follow the new count."""
        self.probes.replace(probes)
        self.batch.ensure_size(len(self.probes))
        self._warned_degenerate = False

    # --- floating-body capability ---
    def velocity(self) -> np.ndarray:
        return np.asarray(self.body.velocity, dtype=float).copy()

    def displacement_to_body(self) -> np.ndarray:
        return self._displacement_to_body.copy()

    def width(self) -> float:
        return self.params.min_feature_size

    def is_submerged(self) -> bool:
        return self._submerged

    # --- per tick ---
    def step(self, control: Optional[ControlInput] = None, context: Optional[WaterContext] = None) -> TickResult:
        if not self._started:
            self.start(context)
        if not self.enabled:
            return TickResult(skipped=True)

        ctx = context if context is not None else self.context
        if ctx is None:
            logger.warning("No water context for this tick, skipped")
            return TickResult(skipped=True)
        control = control or ControlInput()
        params = self.params

        # Weights may be tuned live between ticks.
        self.probes.compute_total_weight()
        self.batch.ensure_size(len(self.probes))

        pose = Pose(
            position=np.asarray(self.body.position, dtype=float).copy(),
            rotation=self.body.rotation,
        )
        region = compute_world_region(pose, self.probes.local_rect)

        provider = ctx.field_provider
        no_provider = provider is None
        if no_provider:
            logger.debug("Water context has no field provider, using still water this tick")
            provider = NULL_PROVIDER
        elif isinstance(provider, SupportsRequestProcessing):
            provider.process_requests()

        with sampling_scope(provider, region, params.min_feature_size) as lease:
            self._update_queries(lease, pose)

            n = self.batch.center_index
            displacement = self.batch.displacements[n].copy()
            self._displacement_to_body = displacement
            undisplaced = pose.position - displacement
            undisplaced[1] = ctx.sea_level

            water_velocity = self.batch.velocities[n].copy()
            if ctx.flow_sampler is not None:
                ctx.flow_sampler.init(pose.position, params.min_feature_size)
                flow = np.asarray(ctx.flow_sampler.sample(), dtype=float)
                water_velocity += np.array([flow[0], 0.0, flow[1]])

            weights = self.probes.normalized_weights()
            if self.probes.is_degenerate() and not self._warned_degenerate:
                logger.debug("Probe layout has no usable weight, buoyancy skipped")
                self._warned_degenerate = True

            tick = TickSample(
                pose=pose,
                body_velocity=self.velocity(),
                query_points=self.batch.points[:n],
                displacements=self.batch.displacements[:n],
                weights=weights,
                water_velocity=water_velocity,
                sea_level=ctx.sea_level,
                fluid_density=ctx.fluid_density,
                gravity_magnitude=ctx.gravity_magnitude,
            )

            contributions = [
                self.buoyancy.compute(tick, control, params),
                self.drag.compute(tick, control, params),
                self.propulsion.compute(tick, control, params),
            ]
            self._apply(contributions)

            height_diff = probe_height_differences(tick)
            submerged = int(np.count_nonzero(height_diff > 0.0))
            if n > 0:
                self._submerged = submerged > 0
            else:
                self._submerged = ctx.sea_level + displacement[1] > pose.position[1]

            result = TickResult(
                forces=tuple(f for c in contributions for f in c.forces),
                torques=tuple(t for c in contributions for t in c.torques),
                displacement=displacement,
                water_velocity=water_velocity,
                undisplaced_position=undisplaced,
                used_fallback=lease.fallback or no_provider,
                submerged_probes=submerged,
            )

        self.last_result = result
        return result

    def _update_queries(self, lease: SamplingLease, pose: Pose) -> None:
        n = self.batch.center_index
        if n > 0:
            self.batch.points[:n] = pose.transform_points(
                self.probes.offsets(vertical_offset=self.params.center_of_mass[1])
            )
        self.batch.points[n] = pose.position
        lease.provider.query(
            self.caller_id,
            lease.token,
            self.batch.points,
            self.batch.displacements,
            None,
            self.batch.velocities,
        )

    def _apply(self, contributions: Sequence[ForceContribution]) -> None:
        for c in contributions:
            for f in c.forces:
                self.body.add_force_at_position(f.force, f.position, f.mode)
            for t in c.torques:
                self.body.add_torque(t.torque, t.mode)
