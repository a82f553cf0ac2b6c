from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from ..core.exceptions import ConfigError, SamplingTokenError
from ..core.types import Rect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingToken:
    """Opaque, tick-scoped handle on provider-side sampling data."""
    token_id: int
    region: Rect
    min_feature_size: float


class FieldProvider(Protocol):
    """Supplies water displacement/velocity at query points behind a token protocol."""

    def get_sampling_data(self, region: Rect, min_feature_size: float) -> tuple[Optional[SamplingToken], bool]:
        """Acquire sampling data for ``region``; ``ok=False`` means no coverage this tick."""
        ...

    def query(
        self,
        caller_id: int,
        token: Optional[SamplingToken],
        points: np.ndarray,
        out_displacements: np.ndarray,
        out_normals: Optional[np.ndarray],
        out_velocities: Optional[np.ndarray],
    ) -> None:
        """Fill one result row per input point, index aligned. ``out_normals`` may be None."""
        ...

    def return_sampling_data(self, token: Optional[SamplingToken]) -> None:
        ...


@runtime_checkable
class SupportsRequestProcessing(Protocol):
    """Providers backed by a multi-pass pipeline expose a way to advance it."""

    def process_requests(self) -> None: ...


@runtime_checkable
class TimeVarying(Protocol):
    def advance(self, t: float) -> None: ...


def _check_buffers(points: np.ndarray, *outs: Optional[np.ndarray]) -> int:
    n = points.shape[0]
    for out in outs:
        if out is not None and out.shape[0] < n:
            raise ValueError(f"Output buffer holds {out.shape[0]} rows, {n} points queried")
    return n


class NullFieldProvider:
    """Fallback with permanent coverage of flat, still water: every output is zero."""

    def get_sampling_data(self, region: Rect, min_feature_size: float) -> tuple[Optional[SamplingToken], bool]:
        return SamplingToken(token_id=0, region=region, min_feature_size=min_feature_size), True

    def query(
        self,
        caller_id: int,
        token: Optional[SamplingToken],
        points: np.ndarray,
        out_displacements: np.ndarray,
        out_normals: Optional[np.ndarray],
        out_velocities: Optional[np.ndarray],
    ) -> None:
        n = _check_buffers(points, out_displacements, out_normals, out_velocities)
        out_displacements[:n] = 0.0
        if out_normals is not None:
            out_normals[:n] = 0.0
        if out_velocities is not None:
            out_velocities[:n] = 0.0

    def return_sampling_data(self, token: Optional[SamplingToken]) -> None:
        pass


NULL_PROVIDER = NullFieldProvider()


class TokenTrackingProvider:
    """
    Base for providers that hand out real tokens.

    Keeps the set of live tokens so a stale, unknown or double-released token
    is rejected instead of silently reading old data.
    """

    def __init__(self, coverage: Optional[Rect] = None) -> None:
        self.coverage = coverage
        self._ids = itertools.count(1)
        self._live: dict[int, SamplingToken] = {}
        self.acquisitions = 0
        self.releases = 0

    @property
    def live_tokens(self) -> int:
        return len(self._live)

    def covers(self, region: Rect, min_feature_size: float) -> bool:
        return self.coverage is None or self.coverage.contains(region)

    def get_sampling_data(self, region: Rect, min_feature_size: float) -> tuple[Optional[SamplingToken], bool]:
        if not self.covers(region, min_feature_size):
            return None, False
        token = SamplingToken(token_id=next(self._ids), region=region, min_feature_size=min_feature_size)
        self._live[token.token_id] = token
        self.acquisitions += 1
        return token, True

    def return_sampling_data(self, token: Optional[SamplingToken]) -> None:
        if token is None or self._live.pop(token.token_id, None) is None:
            raise SamplingTokenError(
                "Released a token this provider does not hold",
                token_id=getattr(token, "token_id", None),
            )
        self.releases += 1

    def _require_live(self, token: Optional[SamplingToken]) -> SamplingToken:
        if token is None or token.token_id not in self._live:
            raise SamplingTokenError(
                "Query with an unknown or released token",
                token_id=getattr(token, "token_id", None),
            )
        return token


class UniformFieldProvider(TokenTrackingProvider):
    """
    Constant displacement/velocity everywhere inside an optional coverage rect.
    Suitable for calm-water runs and testing.
    """

    def __init__(
        self,
        displacement: Sequence[float] = (0.0, 0.0, 0.0),
        velocity: Sequence[float] = (0.0, 0.0, 0.0),
        coverage: Optional[Rect] = None,
    ) -> None:
        super().__init__(coverage=coverage)
        self.displacement = np.asarray(displacement, dtype=float)
        self.velocity = np.asarray(velocity, dtype=float)

    def query(
        self,
        caller_id: int,
        token: Optional[SamplingToken],
        points: np.ndarray,
        out_displacements: np.ndarray,
        out_normals: Optional[np.ndarray],
        out_velocities: Optional[np.ndarray],
    ) -> None:
        self._require_live(token)
        n = _check_buffers(points, out_displacements, out_normals, out_velocities)
        out_displacements[:n] = self.displacement
        if out_normals is not None:
            out_normals[:n] = (0.0, 1.0, 0.0)
        if out_velocities is not None:
            out_velocities[:n] = self.velocity


class DeferredFieldProvider:
    """
    Wraps a provider behind a latent request pipeline.

    A region is only covered once a request for it has been pushed through
    ``latency_passes`` processing passes; until then acquisition fails and the
    request is queued. Requests are padded so that a slowly moving body stays
    covered by an already completed request.

    Once driven by ``advance(t)`` the pipeline moves at most one pass per time
    step, however many bodies call ``process_requests`` in that step. Without
    a clock every call is a pass.
    """

    def __init__(
        self,
        inner: FieldProvider,
        latency_passes: int = 1,
        padding: float = 8.0,
        max_completed: int = 8,
    ) -> None:
        if latency_passes < 0:
            raise ConfigError("latency_passes must be >= 0", field_name="latency_passes", field_value=latency_passes)
        self.inner = inner
        self.latency_passes = int(latency_passes)
        self.padding = float(padding)
        self.max_completed = int(max_completed)
        self._pending: list[list[Any]] = []  # [region, min_feature_size, passes_left]
        self._completed: list[tuple[Rect, float]] = []
        self._clock: Optional[float] = None
        self._processed_at: Optional[float] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _covered_by(self, entries, region: Rect, min_feature_size: float) -> bool:
        return any(r.contains(region) and mfs <= min_feature_size for r, mfs, *_ in entries)

    def process_requests(self) -> None:
        if self._clock is not None:
            if self._processed_at == self._clock:
                return
            self._processed_at = self._clock
        still_pending = []
        for entry in self._pending:
            entry[2] -= 1
            if entry[2] <= 0:
                self._completed.append((entry[0], entry[1]))
            else:
                still_pending.append(entry)
        self._pending = still_pending
        if len(self._completed) > self.max_completed:
            self._completed = self._completed[-self.max_completed:]

    def get_sampling_data(self, region: Rect, min_feature_size: float) -> tuple[Optional[SamplingToken], bool]:
        if self._covered_by(self._completed, region, min_feature_size):
            return self.inner.get_sampling_data(region, min_feature_size)

        if not self._covered_by(self._pending, region, min_feature_size):
            padded = Rect(
                x_min=region.x_min - self.padding,
                z_min=region.z_min - self.padding,
                x_max=region.x_max + self.padding,
                z_max=region.z_max + self.padding,
            )
            if self.latency_passes == 0:
                self._completed.append((padded, min_feature_size))
                return self.inner.get_sampling_data(region, min_feature_size)
            self._pending.append([padded, min_feature_size, self.latency_passes])
            logger.debug("Queued sampling request for %s", padded)
        return None, False

    def query(
        self,
        caller_id: int,
        token: Optional[SamplingToken],
        points: np.ndarray,
        out_displacements: np.ndarray,
        out_normals: Optional[np.ndarray],
        out_velocities: Optional[np.ndarray],
    ) -> None:
        self.inner.query(caller_id, token, points, out_displacements, out_normals, out_velocities)

    def return_sampling_data(self, token: Optional[SamplingToken]) -> None:
        self.inner.return_sampling_data(token)

    def advance(self, t: float) -> None:
        self._clock = float(t)
        if isinstance(self.inner, TimeVarying):
            self.inner.advance(t)


def _rect_from_config(cfg: Optional[Mapping[str, Any]]) -> Optional[Rect]:
    if not cfg:
        return None
    return Rect(
        x_min=float(cfg["x_min"]),
        z_min=float(cfg["z_min"]),
        x_max=float(cfg["x_max"]),
        z_max=float(cfg["z_max"]),
    )


def create_field_provider_from_config(water_cfg: Optional[Mapping[str, Any]], gravity: float = 9.81) -> FieldProvider:
    """
    Factory function to create a field provider from the scenario ``water`` block.

    Args:
        water_cfg: Water configuration from scenario JSON
        gravity: Gravity magnitude used by the wave dispersion relation

    Returns:
        Provider selected by ``type`` (null, uniform, waves, deferred)
    """
    from .waves import WaveComponent, WaveFieldProvider

    water_cfg = water_cfg or {}
    kind = water_cfg.get("type", "null")
    coverage = _rect_from_config(water_cfg.get("coverage"))

    if kind == "null":
        return NULL_PROVIDER
    if kind == "uniform":
        return UniformFieldProvider(
            displacement=water_cfg.get("displacement", (0.0, 0.0, 0.0)),
            velocity=water_cfg.get("velocity", (0.0, 0.0, 0.0)),
            coverage=coverage,
        )
    if kind == "waves":
        components = [
            WaveComponent(
                amplitude=float(w["amplitude"]),
                wavelength=float(w["wavelength"]),
                direction=float(w.get("direction_rad", 0.0)),
                phase=float(w.get("phase", 0.0)),
            )
            for w in water_cfg.get("components", [])
        ]
        return WaveFieldProvider(
            components,
            choppiness=float(water_cfg.get("choppiness", 1.0)),
            gravity=gravity,
            coverage=coverage,
        )
    if kind == "deferred":
        inner_cfg = water_cfg.get("inner")
        if not inner_cfg:
            raise ConfigError("deferred water provider needs an 'inner' provider", field_name="water.inner")
        return DeferredFieldProvider(
            create_field_provider_from_config(inner_cfg, gravity=gravity),
            latency_passes=int(water_cfg.get("latency_passes", 1)),
            padding=float(water_cfg.get("padding", 8.0)),
        )
    raise ConfigError(f"Unknown water provider type '{kind}'", field_name="water.type", field_value=kind)
