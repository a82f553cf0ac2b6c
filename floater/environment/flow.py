from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

import numpy as np


class FlowSampler(Protocol):
    """Optional source of horizontal water current."""

    def init(self, position: Sequence[float], min_feature_size: float) -> None:
        """Prepare a sample at ``position`` resolving features down to ``min_feature_size``."""
        ...

    def sample(self) -> np.ndarray:
        """Horizontal flow (x, z) [m/s] at the initialised position."""
        ...


@dataclass
class CurrentConfig:
    """Current configuration for flow samplers."""
    speed: float = 0.0                    # [m/s]
    dir_to_rad: float = 0.0              # [rad], direction current flowing to, from +x towards +z
    tidal_amplitude: float = 0.0         # [m/s], amplitude of tidal variation
    tidal_period: Optional[float] = None # [s], period for tidal variation


class UniformFlowSampler:
    """
    Spatially uniform current with an optional sinusoidal tidal modulation.
    """

    def __init__(self, current: Optional[CurrentConfig] = None) -> None:
        self._current = current or CurrentConfig()
        self._t = 0.0
        self._position: Optional[np.ndarray] = None
        self._min_feature_size = 0.0

    def advance(self, t: float) -> None:
        self._t = float(t)

    def init(self, position: Sequence[float], min_feature_size: float) -> None:
        self._position = np.asarray(position, dtype=float)
        self._min_feature_size = float(min_feature_size)

    def speed(self) -> float:
        speed = self._current.speed
        if self._current.tidal_period and self._current.tidal_period > 0:
            speed += self._current.tidal_amplitude * math.sin(
                2 * math.pi * self._t / self._current.tidal_period
            )
            speed = max(0.0, speed)
        return speed

    def sample(self) -> np.ndarray:
        v = self.speed()
        theta = self._current.dir_to_rad
        return np.array([v * math.cos(theta), v * math.sin(theta)])


def create_flow_sampler_from_config(flow_cfg: Optional[Mapping[str, Any]]) -> Optional[UniformFlowSampler]:
    """Build a flow sampler from the scenario ``flow`` block; None when absent."""
    if not flow_cfg:
        return None
    return UniformFlowSampler(
        CurrentConfig(
            speed=float(flow_cfg.get("speed", 0.0)),
            dir_to_rad=float(flow_cfg.get("dir_to_rad", 0.0)),
            tidal_amplitude=float(flow_cfg.get("tidal_amplitude", 0.0)),
            tidal_period=flow_cfg.get("tidal_period"),
        )
    )
