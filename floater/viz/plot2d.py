from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

REQUIRED_COLUMNS = ("t", "x", "y", "z")
OPTIONAL_COLUMNS = ("heading", "vx", "vz", "disp_y", "fallback")


@dataclass
class Plot2DOptions:
    figsize: tuple[float, float] = (11.0, 4.5)
    dpi: int = 120
    title: Optional[str] = None
    grid: bool = True
    sea_level: float = 0.0
    mark_fallback: bool = True
    color_by_speed: bool = True
    heading_arrows: bool = True
    heading_stride: int = 50
    equal_track_axis: bool = True


def _read_columns(path: Path) -> dict[str, np.ndarray]:
    """Numeric columns of a tick CSV; absent or unparsable cells become NaN."""
    wanted = REQUIRED_COLUMNS + OPTIONAL_COLUMNS
    rows: list[list[float]] = []
    with path.open("r", encoding="utf-8", newline="") as fh:
        for row in csv.DictReader(fh):
            values = []
            for name in wanted:
                try:
                    values.append(float(row[name]))
                except (KeyError, TypeError, ValueError):
                    values.append(np.nan)
            rows.append(values)
    table = np.asarray(rows, dtype=float).reshape(-1, len(wanted))
    return {name: table[:, i] for i, name in enumerate(wanted)}


def _plot_heave(ax, cols: dict[str, np.ndarray], options: Plot2DOptions) -> None:
    t = cols["t"]
    ax.plot(t, cols["y"], color="tab:blue", linewidth=1.2, label="body y")
    if np.any(np.isfinite(cols["disp_y"])):
        surface = options.sea_level + np.nan_to_num(cols["disp_y"])
        ax.plot(t, surface, color="tab:cyan", linewidth=0.8, alpha=0.8, label="water height")
    else:
        ax.axhline(options.sea_level, color="tab:cyan", linewidth=0.8, label="sea level")

    if options.mark_fallback:
        still = np.nan_to_num(cols["fallback"]) > 0.5
        if np.any(still):
            ax.scatter(t[still], cols["y"][still], s=6, color="tab:red", zorder=3, label="still-water fallback")

    ax.set_xlabel("t [s]")
    ax.set_ylabel("y [m]")
    ax.legend(loc="best", fontsize=8, framealpha=0.6)


def _plot_track(ax, cols: dict[str, np.ndarray], options: Plot2DOptions) -> None:
    x, z = cols["x"], cols["z"]
    if options.color_by_speed:
        speed = np.hypot(np.nan_to_num(cols["vx"]), np.nan_to_num(cols["vz"]))
        points = ax.scatter(x, z, c=speed, s=8, cmap="viridis", edgecolors="none")
        ax.figure.colorbar(points, ax=ax, pad=0.01, fraction=0.046).set_label("Speed [m/s]")
        ax.plot(x, z, color="black", linewidth=0.7, alpha=0.4)
    else:
        ax.plot(x, z, color="tab:blue", linewidth=1.2)

    heading = cols["heading"]
    if options.heading_arrows and np.any(np.isfinite(heading)):
        idx = np.arange(0, x.size, max(1, options.heading_stride))
        extent = max(np.nanmax(x) - np.nanmin(x), np.nanmax(z) - np.nanmin(z), 1.0)
        length = 0.05 * extent
        h = np.nan_to_num(heading[idx])
        # heading is measured from +z towards +x
        ax.quiver(x[idx], z[idx], np.sin(h) * length, np.cos(h) * length,
                  angles="xy", scale_units="xy", scale=1.0, width=0.003, color="red", alpha=0.6)

    ax.set_xlabel("x [m]")
    ax.set_ylabel("z [m]")
    if options.equal_track_axis:
        ax.set_aspect("equal", adjustable="datalim")


def plot_run_csv(csv_path: Path, png_out: Optional[Path] = None, options: Optional[Plot2DOptions] = None) -> Optional[plt.Figure]:
    """
    Plot a run from the per-tick CSV written by the CLI.

    Left panel: heave against the sampled water height, fallback ticks in red.
    Right panel: horizontal (x, z) track coloured by speed with heading arrows.
    Returns the figure, or None when it was saved to ``png_out``.
    """
    options = options or Plot2DOptions()
    cols = _read_columns(Path(csv_path))
    for name in REQUIRED_COLUMNS:
        if cols[name].size == 0 or not np.any(np.isfinite(cols[name])):
            raise ValueError(f"Missing or empty column '{name}' in {csv_path}")

    fig, (ax_heave, ax_track) = plt.subplots(1, 2, figsize=options.figsize, dpi=options.dpi)
    if options.title:
        fig.suptitle(options.title)

    _plot_heave(ax_heave, cols, options)
    _plot_track(ax_track, cols, options)
    if options.grid:
        for ax in (ax_heave, ax_track):
            ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.5)

    if png_out is None:
        return fig
    png_out = Path(png_out)
    png_out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(png_out, bbox_inches="tight")
    plt.close(fig)
    return None
