from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from .types import ProbePoint, Rect

# Side length of the box seeded around the body origin when building the world region.
ORIGIN_SEED_EXTENT = 1.0

RIGHT = np.array([1.0, 0.0, 0.0])
UP = np.array([0.0, 1.0, 0.0])
FORWARD = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True)
class Pose:
    """World pose of a body: position plus orientation. +y is up, x/z is the horizontal plane."""
    position: np.ndarray
    rotation: Rotation = field(default_factory=Rotation.identity)

    @classmethod
    def from_heading(cls, position: Sequence[float], heading: float = 0.0) -> "Pose":
        return cls(
            position=np.asarray(position, dtype=float),
            rotation=Rotation.from_rotvec(heading * UP),
        )

    def transform_point(self, local: Sequence[float]) -> np.ndarray:
        return np.asarray(self.position, dtype=float) + self.rotation.apply(np.asarray(local, dtype=float))

    def transform_points(self, local: np.ndarray) -> np.ndarray:
        """Vectorised transform of an (n, 3) array of body-local points."""
        local = np.asarray(local, dtype=float).reshape(-1, 3)
        return np.asarray(self.position, dtype=float) + self.rotation.apply(local).reshape(-1, 3)

    @property
    def right(self) -> np.ndarray:
        return self.rotation.apply(RIGHT)

    @property
    def up(self) -> np.ndarray:
        return self.rotation.apply(UP)

    @property
    def forward(self) -> np.ndarray:
        return self.rotation.apply(FORWARD)


def compute_local_rect(probes: Sequence[ProbePoint]) -> Rect:
    """Local x/z bounds of the probe offsets; an empty rect when there are no probes."""
    if len(probes) == 0:
        return Rect()

    xmin = xmax = float(probes[0].offset_position[0])
    zmin = zmax = float(probes[0].offset_position[2])
    for p in probes[1:]:
        x = float(p.offset_position[0])
        z = float(p.offset_position[2])
        xmin = min(xmin, x)
        xmax = max(xmax, x)
        zmin = min(zmin, z)
        zmax = max(zmax, z)
    return Rect(x_min=xmin, z_min=zmin, x_max=xmax, z_max=zmax)


def compute_world_region(pose: Pose, local_rect: Rect) -> Rect:
    """
    World x/z rectangle covering the transformed corners of ``local_rect``.

    The result is seeded with a unit box around the body origin so it is never
    empty and always contains the origin, even for a body with no probes.
    """
    half = 0.5 * ORIGIN_SEED_EXTENT
    origin = np.asarray(pose.position, dtype=float)
    corners = np.array([
        [local_rect.x_min, 0.0, local_rect.z_min],
        [local_rect.x_min, 0.0, local_rect.z_max],
        [local_rect.x_max, 0.0, local_rect.z_min],
        [local_rect.x_max, 0.0, local_rect.z_max],
    ])
    world = pose.transform_points(corners)

    xs = np.append(world[:, 0], (origin[0] - half, origin[0] + half))
    zs = np.append(world[:, 2], (origin[2] - half, origin[2] + half))
    return Rect(
        x_min=float(xs.min()),
        z_min=float(zs.min()),
        x_max=float(xs.max()),
        z_max=float(zs.max()),
    )


class ProbeSet:
    """
    Ordered, weighted probe layout of one body.

    The local bounding rect is derived once on construction (and again on
    ``replace``); the total weight is cheap and recomputed on demand because
    weights may be tuned while a simulation is running.
    """

    def __init__(self, probes: Iterable[ProbePoint] = ()) -> None:
        self._probes: list[ProbePoint] = list(probes)
        self._local_rect = compute_local_rect(self._probes)
        self.total_weight = 0.0
        self.compute_total_weight()

    def __len__(self) -> int:
        return len(self._probes)

    def __iter__(self):
        return iter(self._probes)

    def __getitem__(self, i: int) -> ProbePoint:
        return self._probes[i]

    @property
    def probes(self) -> Sequence[ProbePoint]:
        return tuple(self._probes)

    @property
    def local_rect(self) -> Rect:
        return self._local_rect

    def replace(self, probes: Iterable[ProbePoint]) -> None:
        """Re-author the layout. Call between ticks, never during one."""
        self._probes = list(probes)
        self._local_rect = compute_local_rect(self._probes)
        self.compute_total_weight()

    def compute_total_weight(self) -> float:
        self.total_weight = float(sum(p.weight for p in self._probes))
        return self.total_weight

    def is_degenerate(self) -> bool:
        return len(self._probes) == 0 or not self.total_weight > 0.0

    def offsets(self, vertical_offset: float = 0.0) -> np.ndarray:
        """(n, 3) array of probe offsets, shifted along local y."""
        if not self._probes:
            return np.zeros((0, 3))
        arr = np.array([p.offset_position for p in self._probes], dtype=float)
        arr[:, 1] += vertical_offset
        return arr

    def normalized_weights(self) -> np.ndarray:
        """Per-probe share of the buoyancy; empty when the set is degenerate."""
        total = self.compute_total_weight()
        if not self._probes or not total > 0.0:
            return np.zeros(0)
        return np.array([p.weight for p in self._probes], dtype=float) / total
