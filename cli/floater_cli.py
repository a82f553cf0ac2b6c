from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from floater.control.manual import ManualControlProvider
from floater.core.validation import validate_config, validate_params, validate_initial_pose
from floater.environment.context import create_water_context_from_config
from floater.io.body import load as load_body
from floater.io.results import CsvTickWriter, JsonlTickWriter, MuxTickWriter, SummaryJsonWriter
from floater.io.scenario import load as load_scenario
from floater.logging_config import setup_logging
from floater.models.rigid_body import RigidBody
from floater.sim.runner import SimulationRunner
from floater.sim.simulator import BuoyancySimulator

logger = logging.getLogger("floater.cli")


def _mkdir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="floater", description="Multi-probe floating body simulation")
    ap.add_argument("--body", type=Path, required=True, help="Path to body JSON definition")
    ap.add_argument("--scenario", type=Path, required=True, help="Path to scenario JSON")
    ap.add_argument("--out-dir", type=Path, required=True, help="Output directory for run artifacts")
    ap.add_argument("--plot2d", action="store_true", help="Generate PNG plot of heave and track after run")
    ap.add_argument("--png", type=Path, default=None, help="Optional output PNG path (defaults to out-dir/plot2d.png)")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    ap.add_argument("--sim-log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Level for the simulator and runner loggers (floater.sim), defaults to --log-level")
    ap.add_argument("--log-file", type=Path, default=None, help="Optional log file")
    args = ap.parse_args(argv)

    setup_logging(
        args.log_level,
        args.log_file,
        module_levels={"floater.sim": args.sim_log_level} if args.sim_log_level else None,
    )

    out_dir: Path = args.out_dir
    _mkdir(out_dir)

    # Load inputs via IO layer
    params = load_body(args.body)
    cfg, pose0, scenario = load_scenario(args.scenario)

    validate_params(params)
    validate_config(cfg)
    validate_initial_pose(pose0)

    context = create_water_context_from_config(cfg.env)
    body = RigidBody.from_params(params, pose0, gravity=context.gravity)
    simulator = BuoyancySimulator(body, params, context)
    control = ManualControlProvider((scenario.get("control", {}) or {}).get("schedule", []))

    with CsvTickWriter(out_dir / "results.csv") as csv_writer, JsonlTickWriter(out_dir / "results.jsonl") as jsonl_writer:
        result = SimulationRunner().run(
            simulator=simulator,
            body=body,
            context=context,
            config=cfg,
            control_provider=control,
            writer=MuxTickWriter(csv_writer, jsonl_writer),
            summary_writer=SummaryJsonWriter(out_dir / "summary.json"),
        )

    logger.info("Artifacts written to %s (%s)", out_dir, result.status)

    if args.plot2d:
        from floater.viz.plot2d import Plot2DOptions, plot_run_csv

        png_out = args.png if args.png else (out_dir / "plot2d.png")
        title = f"{args.body.name} / {args.scenario.name}"
        try:
            plot_run_csv(
                csv_path=out_dir / "results.csv",
                png_out=png_out,
                options=Plot2DOptions(title=title, sea_level=context.sea_level),
            )
        except (OSError, ValueError) as e:
            # Do not fail the run if plotting fails
            logger.warning("plot2d failed: %s", e)


if __name__ == "__main__":
    main()
