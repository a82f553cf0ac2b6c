"""Loading body and scenario documents, and writing run results."""

import json
import math

import pytest

from floater.core.exceptions import ConfigError, SchemaError
from floater.io import body as body_io
from floater.io import scenario as scenario_io
from floater.io.results import CsvTickWriter, JsonlTickWriter, MuxTickWriter, SummaryJsonWriter


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


BODY = {
    "schema_version": "1.0",
    "name": "raft",
    "probes": [
        {"offset": [-1.0, 0.0, -1.0], "weight": 2.0},
        {"offset": [1.0, 0.0, 1.0]},
    ],
    "forces": {"center_of_mass": [0.0, -0.2, 0.0], "force_multiplier": 1.5, "min_feature_size": 4.0},
    "drag": {"up": 4.0},
    "control": {"enabled": False, "engine_bias": 0.1},
    "mass_properties": {"mass": 250.0, "inertia": [100.0, 120.0, 80.0]},
}

SCENARIO = {
    "units_policy": {"angles": "deg"},
    "simulation": {"t_end": 10.0, "t_step": 0.05},
    "initial_conditions": {"position": [1.0, -0.3, 2.0], "heading": 90.0},
    "environment": {"water": {"type": "uniform", "displacement": [0.0, 0.1, 0.0]}},
    "outputs": {"per_tick": {"decimation": 4}},
    "termination_bounds": {"y_min": -10.0},
}


class TestBodyLoading:
    def test_normalises_document(self, tmp_path):
        params = body_io.load(write_json(tmp_path / "body.json", BODY))

        assert len(params.probes) == 2
        assert params.probes[0].weight == 2.0
        assert params.probes[1].weight == 1.0
        assert params.center_of_mass == (0.0, -0.2, 0.0)
        assert params.force_multiplier == 1.5
        assert params.min_feature_size == 4.0
        assert params.drag_up == 4.0
        assert params.drag_right == 2.0
        assert not params.control_enabled
        assert params.engine_bias == 0.1
        assert params.mass == 250.0
        assert params.inertia == (100.0, 120.0, 80.0)
        assert params.metadata["name"] == "raft"

    def test_defaults_for_minimal_document(self, tmp_path):
        params = body_io.load(write_json(tmp_path / "body.json", {"probes": []}))
        assert params.probes == ()
        assert params.force_multiplier == 10.0
        assert params.min_feature_size == 12.0
        assert params.turning_heel == 0.35

    def test_negative_weight_rejected(self, tmp_path):
        doc = {"probes": [{"offset": [0.0, 0.0, 0.0], "weight": -1.0}]}
        with pytest.raises(SchemaError) as exc:
            body_io.load(write_json(tmp_path / "body.json", doc))
        assert "probes/0/weight" in str(exc.value)

    def test_turning_heel_outside_unit_range_rejected(self, tmp_path):
        doc = {"probes": [], "forces": {"turning_heel": 1.5}}
        with pytest.raises(SchemaError):
            body_io.load(write_json(tmp_path / "body.json", doc))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            body_io.load(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "body.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            body_io.load(path)

    def test_missing_schema(self, tmp_path):
        with pytest.raises(SchemaError):
            body_io.load(write_json(tmp_path / "body.json", BODY), schema_path=tmp_path / "none.json")


class TestScenarioLoading:
    def test_normalises_document(self, tmp_path):
        cfg, pose, raw = scenario_io.load(write_json(tmp_path / "scenario.json", SCENARIO))

        assert cfg.t0 == 0.0
        assert cfg.t_end == 10.0
        assert cfg.dt == 0.05
        assert cfg.output_decimation == 4
        assert cfg.env["water"]["type"] == "uniform"
        assert cfg.termination_bounds == {"y_min": -10.0}
        assert pose.position == (1.0, -0.3, 2.0)
        assert pose.heading == pytest.approx(math.pi / 2)
        assert raw["units_policy"]["angles"] == "deg"

    def test_radians_are_default(self, tmp_path):
        doc = {"simulation": {"t_end": 1.0, "t_step": 0.1}, "initial_conditions": {"heading": 0.5}}
        _, pose, _ = scenario_io.load(write_json(tmp_path / "scenario.json", doc))
        assert pose.heading == 0.5

    def test_unknown_water_type_rejected(self, tmp_path):
        doc = dict(SCENARIO, environment={"water": {"type": "lava"}})
        with pytest.raises(SchemaError):
            scenario_io.load(write_json(tmp_path / "scenario.json", doc))

    def test_nested_deferred_water_validated(self, tmp_path):
        doc = dict(SCENARIO, environment={"water": {"type": "deferred", "inner": {"type": "waves", "components": [{"amplitude": -1.0, "wavelength": 10.0}]}}})
        with pytest.raises(SchemaError):
            scenario_io.load(write_json(tmp_path / "scenario.json", doc))

    def test_step_required(self, tmp_path):
        with pytest.raises(SchemaError):
            scenario_io.load(write_json(tmp_path / "scenario.json", {"simulation": {"t_end": 1.0}}))


class TestResultWriters:
    def test_csv_uses_header_order(self, tmp_path):
        path = tmp_path / "ticks.csv"
        writer = CsvTickWriter(path, header=["t", "y"])
        writer.write_tick({"y": -0.4, "t": 0.1, "ignored": 3})
        writer.write_tick({"t": 0.2})
        writer.close()
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines == ["t,y", "0.1,-0.4", "0.2,0"]

    def test_mux_fans_out(self, tmp_path):
        jsonl = JsonlTickWriter(tmp_path / "ticks.jsonl")
        seen = []

        class Collect:
            def write_tick(self, record):
                seen.append(record)

        MuxTickWriter(jsonl, Collect()).write_tick({"t": 0.0, "fallback": 1})
        jsonl.close()
        assert seen == [{"t": 0.0, "fallback": 1}]
        assert json.loads((tmp_path / "ticks.jsonl").read_text(encoding="utf-8")) == {"t": 0.0, "fallback": 1}

    def test_summary_json(self, tmp_path):
        path = tmp_path / "summary.json"
        SummaryJsonWriter(path).write_summary({"status": "completed", "ticks": 3})
        assert json.loads(path.read_text(encoding="utf-8"))["ticks"] == 3

    def test_jsonl_converts_numpy_values(self, tmp_path):
        import numpy as np

        path = tmp_path / "ticks.jsonl"
        with JsonlTickWriter(path) as writer:
            writer.write_tick({"t": np.float64(0.5), "n": np.int64(3), "v": np.array([1.0, 2.0])})
        assert json.loads(path.read_text(encoding="utf-8")) == {"t": 0.5, "n": 3, "v": [1.0, 2.0]}


def test_errors_carry_context():
    err = ConfigError("bad weight", field_name="probes[0].weight", field_value=-1.0, config_path="body.json")
    assert str(err) == "bad weight | Field: probes[0].weight | Value: -1.0 | Path: body.json"
    assert str(SchemaError("plain")) == "plain"
