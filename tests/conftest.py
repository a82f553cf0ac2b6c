"""Shared fixtures for the floater test-suite."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from floater.core.types import BodyParams, ProbePoint
from floater.environment.context import WaterContext
from floater.environment.providers import UniformFieldProvider
from floater.models.rigid_body import RigidBody

RHO = 1000.0
G = 9.81


class SpyProvider(UniformFieldProvider):
    """Uniform provider that records every query it serves."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.queries = []
        self.regions = []

    def get_sampling_data(self, region, min_feature_size):
        self.regions.append(region)
        return super().get_sampling_data(region, min_feature_size)

    def query(self, caller_id, token, points, out_displacements, out_normals, out_velocities):
        self.queries.append((caller_id, token, points.copy(), out_normals))
        super().query(caller_id, token, points, out_displacements, out_normals, out_velocities)


def square_probes(half: float = 1.0, weight: float = 1.0) -> tuple[ProbePoint, ...]:
    return tuple(
        ProbePoint(offset_position=(sx * half, 0.0, sz * half), weight=weight)
        for sx in (-1.0, 1.0)
        for sz in (-1.0, 1.0)
    )


@pytest.fixture
def square_params() -> BodyParams:
    return BodyParams(probes=square_probes())


@pytest.fixture
def spy_provider() -> SpyProvider:
    return SpyProvider()


@pytest.fixture
def context(spy_provider) -> WaterContext:
    return WaterContext(field_provider=spy_provider, sea_level=0.0, gravity=np.array([0.0, -G, 0.0]), fluid_density=RHO)


def make_body(y: float = -0.5, **kwargs) -> RigidBody:
    return RigidBody(position=np.array([0.0, y, 0.0]), **kwargs)


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Undo ``setup_logging`` calls made by a test (the CLI installs handlers)."""
    yield
    package = logging.getLogger("floater")
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()
    for name in ("floater", "floater.sim"):
        logging.getLogger(name).setLevel(logging.NOTSET)
