from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import numpy as np

from .flow import FlowSampler, create_flow_sampler_from_config
from .providers import FieldProvider, NULL_PROVIDER, TimeVarying, create_field_provider_from_config

WATER_DENSITY = 1000.0  # [kg/m^3]


@dataclass
class WaterContext:
    """
    Water environment shared by every floating body in a simulation.

    Passed to simulators explicitly; there is no process-wide instance.
    """
    field_provider: FieldProvider = NULL_PROVIDER
    sea_level: float = 0.0
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, -9.81, 0.0]))
    fluid_density: float = WATER_DENSITY
    flow_sampler: Optional[FlowSampler] = None
    t: float = 0.0

    @property
    def gravity_magnitude(self) -> float:
        return abs(float(np.asarray(self.gravity)[1]))

    def advance(self, t: float) -> None:
        """Move time-varying collaborators (waves, tides) to time ``t``."""
        self.t = float(t)
        for collaborator in (self.field_provider, self.flow_sampler):
            if isinstance(collaborator, TimeVarying):
                collaborator.advance(t)


def create_water_context_from_config(env_cfg: Optional[Mapping[str, Any]]) -> WaterContext:
    """
    Factory function to create the water context from scenario configuration.

    Args:
        env_cfg: Environment configuration from scenario JSON

    Returns:
        WaterContext with provider and optional flow sampler selected by the config
    """
    env_cfg = env_cfg or {}
    gravity = np.asarray(env_cfg.get("gravity", (0.0, -9.81, 0.0)), dtype=float)
    return WaterContext(
        field_provider=create_field_provider_from_config(env_cfg.get("water"), gravity=abs(float(gravity[1]))),
        sea_level=float(env_cfg.get("sea_level", 0.0)),
        gravity=gravity,
        fluid_density=float(env_cfg.get("fluid_density", WATER_DENSITY)),
        flow_sampler=create_flow_sampler_from_config(env_cfg.get("flow")),
    )
