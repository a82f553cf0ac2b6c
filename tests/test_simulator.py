"""
Test suite for the BuoyancySimulator tick.

Tests cover:
- Still-water fallback when the provider has no coverage
- Acquire/release pairing of sampling tokens, including error paths
- Start-up without a water context
- Batched query layout and buffer reuse
- Drag relative to water and flow
- Engine thrust and heeling turn torque
- Floating-body capability accessors
"""

import logging
import math

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from floater.core.types import BodyParams, ControlInput, ForceMode, ProbePoint, Rect
from floater.environment.context import WaterContext
from floater.environment.flow import CurrentConfig, UniformFlowSampler
from floater.environment.providers import DeferredFieldProvider, UniformFieldProvider
from floater.sim.simulator import BuoyancySimulator, QueryBatch

from conftest import G, RHO, SpyProvider, make_body, square_probes

FAR_AWAY = Rect(x_min=100.0, z_min=100.0, x_max=200.0, z_max=200.0)


class ExplodingForce:
    def compute(self, tick, control, params):
        raise RuntimeError("boom")


class TestCoverageFallback:
    def test_no_coverage_reads_still_water(self, square_params):
        provider = SpyProvider(displacement=(0.0, 0.3, 0.0), velocity=(1.0, 0.0, 0.0), coverage=FAR_AWAY)
        ctx = WaterContext(field_provider=provider)
        sim = BuoyancySimulator(make_body(y=-0.5), square_params, ctx)
        result = sim.step()

        assert result.used_fallback
        assert provider.queries == []
        assert provider.acquisitions == 0
        np.testing.assert_allclose(result.displacement, np.zeros(3))
        np.testing.assert_allclose(result.water_velocity, np.zeros(3))
        np.testing.assert_allclose(sim.displacement_to_body(), np.zeros(3))
        assert result.total_force("buoyancy")[1] == pytest.approx(RHO * G * 0.5 * square_params.force_multiplier)

    def test_fallback_is_not_remembered(self, square_params):
        provider = SpyProvider(displacement=(0.0, 0.3, 0.0), coverage=FAR_AWAY)
        ctx = WaterContext(field_provider=provider)
        sim = BuoyancySimulator(make_body(y=-0.5), square_params, ctx)
        assert sim.step().used_fallback

        provider.coverage = None
        result = sim.step()
        assert not result.used_fallback
        assert result.displacement[1] == pytest.approx(0.3)

    def test_deferred_provider_covers_after_one_pass(self, square_params):
        provider = DeferredFieldProvider(UniformFieldProvider(displacement=(0.0, 0.1, 0.0)), latency_passes=1)
        sim = BuoyancySimulator(make_body(), square_params, WaterContext(field_provider=provider))
        assert sim.step().used_fallback
        second = sim.step()
        assert not second.used_fallback
        assert second.displacement[1] == pytest.approx(0.1)
        assert provider.inner.live_tokens == 0

    def test_shared_deferred_provider_moves_once_per_tick(self, square_params):
        provider = DeferredFieldProvider(UniformFieldProvider(), latency_passes=2)
        ctx = WaterContext(field_provider=provider)
        sims = [BuoyancySimulator(make_body(), square_params, ctx) for _ in range(3)]

        fallback = []
        for k in range(3):
            ctx.advance(0.02 * k)
            fallback.append([sim.step().used_fallback for sim in sims])

        assert fallback == [[True] * 3, [True] * 3, [False] * 3]
        assert provider.inner.live_tokens == 0

    def test_context_without_provider_reads_still_water(self, context, square_params):
        sim = BuoyancySimulator(make_body(y=-0.5), square_params, context)
        sim.step()
        result = sim.step(context=WaterContext(field_provider=None))

        assert not result.skipped
        assert result.used_fallback
        np.testing.assert_allclose(result.displacement, np.zeros(3))
        assert result.total_force("buoyancy")[1] == pytest.approx(RHO * G * 0.5 * square_params.force_multiplier)

    def test_context_removed_after_start_skips_tick(self, context, square_params, caplog):
        sim = BuoyancySimulator(make_body(), square_params, context)
        sim.step()
        sim.context = None
        with caplog.at_level(logging.WARNING, logger="floater.sim.simulator"):
            result = sim.step()
        assert result.skipped
        assert "No water context" in caplog.text


class TestTokenDiscipline:
    def test_each_acquisition_released_once_per_tick(self, context, spy_provider, square_params):
        sim = BuoyancySimulator(make_body(), square_params, context)
        for _ in range(5):
            sim.step()
            assert spy_provider.live_tokens == 0
        assert spy_provider.acquisitions == 5
        assert spy_provider.releases == 5

    def test_token_released_when_a_force_module_fails(self, context, spy_provider, square_params):
        sim = BuoyancySimulator(make_body(), square_params, context, drag=ExplodingForce())
        with pytest.raises(RuntimeError):
            sim.step()
        assert spy_provider.acquisitions == 1
        assert spy_provider.releases == 1
        assert spy_provider.live_tokens == 0

    def test_fallback_tick_releases_nothing_on_real_provider(self, square_params):
        provider = SpyProvider(coverage=FAR_AWAY)
        sim = BuoyancySimulator(make_body(), square_params, WaterContext(field_provider=provider))
        sim.step()
        assert provider.releases == 0

    def test_two_bodies_share_a_provider(self, context, spy_provider, square_params):
        a = BuoyancySimulator(make_body(), square_params, context)
        b = BuoyancySimulator(make_body(y=-0.2), square_params, context)
        a.step()
        b.step()
        ids = {q[0] for q in spy_provider.queries}
        assert ids == {a.caller_id, b.caller_id}
        assert spy_provider.live_tokens == 0


class TestStartup:
    def test_missing_context_disables(self, square_params, caplog):
        sim = BuoyancySimulator(make_body(), square_params, context=None)
        with caplog.at_level(logging.WARNING, logger="floater.sim.simulator"):
            assert sim.start() is False
        assert not sim.enabled
        assert "disabled" in caplog.text

        result = sim.step()
        assert result.skipped
        assert result.forces == ()

    def test_context_given_on_first_tick(self, context, square_params):
        sim = BuoyancySimulator(make_body(), square_params)
        result = sim.step(context=context)
        assert not result.skipped
        assert sim.enabled

    def test_start_applies_center_of_mass(self, context):
        body = make_body()
        params = BodyParams(probes=square_probes(), center_of_mass=(0.0, -0.3, 0.1))
        BuoyancySimulator(body, params, context).start()
        np.testing.assert_allclose(body.center_of_mass, [0.0, -0.3, 0.1])

    def test_degenerate_layout_logged_once(self, context, caplog):
        sim = BuoyancySimulator(make_body(), BodyParams(probes=square_probes(weight=0.0)), context)
        with caplog.at_level(logging.DEBUG, logger="floater.sim.simulator"):
            sim.step()
            sim.step()
        assert caplog.text.count("no usable weight") == 1


class TestQueries:
    def test_single_batched_query_with_center_last(self, context, spy_provider):
        params = BodyParams(probes=square_probes(), center_of_mass=(0.0, -0.2, 0.0))
        body = make_body(y=-0.5)
        body.position = np.array([3.0, -0.5, 4.0])
        BuoyancySimulator(body, params, context).step()

        assert len(spy_provider.queries) == 1
        _, _, points, normals = spy_provider.queries[0]
        assert normals is None
        assert points.shape == (5, 3)
        np.testing.assert_allclose(points[-1], [3.0, -0.5, 4.0])
        np.testing.assert_allclose(points[:4, 1], -0.7)

    def test_region_contains_body_and_probes(self, context, spy_provider, square_params):
        body = make_body()
        body.rotation = Rotation.from_rotvec([0.0, math.pi / 4, 0.0])
        BuoyancySimulator(body, square_params, context).step()
        region = spy_provider.regions[0]
        r = math.sqrt(2.0)
        assert region.x_min == pytest.approx(-r)
        assert region.x_max == pytest.approx(r)
        assert region.contains_point(0.0, 0.0)

    def test_buffers_reused_between_ticks(self, context, square_params):
        sim = BuoyancySimulator(make_body(), square_params, context)
        sim.step()
        points = sim.batch.points
        sim.step()
        assert sim.batch.points is points

    def test_replace_probes_resizes_buffers(self, context, square_params):
        sim = BuoyancySimulator(make_body(), square_params, context)
        sim.step()
        sim.replace_probes([ProbePoint((0.0, 0.0, 0.0), 1.0)])
        assert sim.batch.points.shape == (2, 3)
        result = sim.step()
        assert len([f for f in result.forces if f.source == "buoyancy"]) == 1

    def test_query_batch_sizes(self):
        batch = QueryBatch(0)
        assert batch.points.shape == (1, 3)
        assert batch.center_index == 0
        batch.ensure_size(3)
        assert batch.displacements.shape == (4, 3)

    def test_undisplaced_position_snaps_to_sea_level(self, square_params):
        provider = UniformFieldProvider(displacement=(0.5, 0.2, -0.25))
        ctx = WaterContext(field_provider=provider, sea_level=1.5)
        body = make_body(y=1.0)
        body.position = np.array([2.0, 1.0, 3.0])
        result = BuoyancySimulator(body, square_params, ctx).step()
        np.testing.assert_allclose(result.undisplaced_position, [1.5, 1.5, 3.25])


class TestDrag:
    def test_drag_opposes_relative_velocity(self, context, square_params):
        body = make_body()
        body.velocity = np.array([2.0, -1.0, 0.5])
        result = BuoyancySimulator(body, square_params, context).step()
        drag = result.total_force("drag")
        p = square_params
        np.testing.assert_allclose(drag, [-2.0 * p.drag_right, 1.0 * p.drag_up, -0.5 * p.drag_forward])
        assert all(f.mode is ForceMode.ACCELERATION for f in result.forces if f.source == "drag")

    def test_moving_with_the_water_has_no_drag(self, square_params):
        ctx = WaterContext(field_provider=UniformFieldProvider(velocity=(1.0, 0.0, 0.0)))
        body = make_body()
        body.velocity = np.array([1.0, 0.0, 0.0])
        result = BuoyancySimulator(body, square_params, ctx).step()
        np.testing.assert_allclose(result.total_force("drag"), np.zeros(3), atol=1e-12)

    def test_flow_adds_to_water_velocity(self, context, square_params):
        context.flow_sampler = UniformFlowSampler(CurrentConfig(speed=1.5, dir_to_rad=math.pi / 2))
        body = make_body()
        body.velocity = np.array([0.0, 0.0, 1.5])
        result = BuoyancySimulator(body, square_params, context).step()
        np.testing.assert_allclose(result.water_velocity, [0.0, 0.0, 1.5], atol=1e-12)
        np.testing.assert_allclose(result.total_force("drag"), np.zeros(3), atol=1e-12)

    def test_flow_still_applies_on_fallback_ticks(self, square_params):
        provider = SpyProvider(velocity=(5.0, 0.0, 0.0), coverage=FAR_AWAY)
        ctx = WaterContext(field_provider=provider, flow_sampler=UniformFlowSampler(CurrentConfig(speed=1.0)))
        result = BuoyancySimulator(make_body(), square_params, ctx).step()
        np.testing.assert_allclose(result.water_velocity, [1.0, 0.0, 0.0])

    def test_force_height_offset_moves_application_point(self, context):
        params = BodyParams(probes=square_probes(), force_height_offset=-0.4)
        result = BuoyancySimulator(make_body(y=-0.5), params, context).step()
        for f in result.forces:
            if f.source == "drag":
                assert f.position[1] == pytest.approx(-0.9)


class TestPropulsion:
    def test_throttle_pushes_forward(self, context, square_params):
        result = BuoyancySimulator(make_body(), square_params, context).step(ControlInput(throttle=1.0))
        np.testing.assert_allclose(result.total_force("engine"), [0.0, 0.0, square_params.engine_power])

    def test_thrust_follows_heading(self, context, square_params):
        body = make_body()
        body.rotation = Rotation.from_rotvec([0.0, math.pi / 2, 0.0])
        result = BuoyancySimulator(body, square_params, context).step(ControlInput(throttle=0.5))
        np.testing.assert_allclose(result.total_force("engine"), [0.5 * square_params.engine_power, 0.0, 0.0], atol=1e-12)

    def test_turn_torque_heels_towards_forward(self, context, square_params):
        result = BuoyancySimulator(make_body(), square_params, context).step(ControlInput(steer=1.0))
        (torque,) = result.torques
        p = square_params
        np.testing.assert_allclose(torque.torque, [0.0, p.turn_power, p.turn_power * p.turning_heel])
        assert torque.mode is ForceMode.ACCELERATION

    def test_control_disabled_keeps_bias_only(self, context):
        params = BodyParams(probes=square_probes(), control_enabled=False, engine_bias=0.25, turn_bias=-1.0)
        result = BuoyancySimulator(make_body(), params, context).step(ControlInput(throttle=1.0, steer=1.0))
        np.testing.assert_allclose(result.total_force("engine"), [0.0, 0.0, 0.25 * params.engine_power])
        assert result.torques[0].torque[1] == pytest.approx(-params.turn_power)


class TestFloatingBodyCapability:
    def test_accessors(self, context):
        params = BodyParams(probes=square_probes(), min_feature_size=6.0)
        body = make_body(y=-0.5)
        body.velocity = np.array([1.0, 2.0, 3.0])
        context.field_provider.displacement = np.array([0.1, 0.2, 0.3])
        sim = BuoyancySimulator(body, params, context)
        sim.step()
        assert sim.width() == 6.0
        np.testing.assert_allclose(sim.velocity(), [1.0, 2.0, 3.0])
        np.testing.assert_allclose(sim.displacement_to_body(), [0.1, 0.2, 0.3])
        assert sim.is_submerged()

    def test_not_submerged_above_water(self, context, square_params):
        sim = BuoyancySimulator(make_body(y=1.0), square_params, context)
        sim.step()
        assert not sim.is_submerged()

    def test_probeless_body_uses_its_origin(self, context):
        sim = BuoyancySimulator(make_body(y=-0.1), BodyParams(probes=()), context)
        sim.step()
        assert sim.is_submerged()
