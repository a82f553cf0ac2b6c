from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import numpy as np

# Column order of the per-tick CSV; matches the keys of ``sim.runner.tick_record``.
DEFAULT_TICK_HEADER = [
    "t", "x", "y", "z", "heading",
    "vx", "vy", "vz",
    "throttle", "steer",
    "disp_y", "buoyancy_y",
    "drag_x", "drag_y", "drag_z",
    "submerged_probes", "fallback",
]


def _plain(value: Any) -> Any:
    """numpy scalars/arrays to builtins so records serialise cleanly."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


class _FileWriter:
    """Owns one open text file; usable as a context manager."""

    def __init__(self, path: Path, **open_kwargs: Any) -> None:
        self.path = Path(path)
        self._fh = self.path.open("w", encoding="utf-8", **open_kwargs)

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class CsvTickWriter(_FileWriter):
    """One CSV row per logged tick; missing keys are written as 0."""

    def __init__(self, path: Path, header: Optional[Sequence[str]] = None) -> None:
        super().__init__(path, newline="")
        self.header = list(header) if header else list(DEFAULT_TICK_HEADER)
        self._writer = csv.writer(self._fh)
        self._writer.writerow(self.header)

    def write_tick(self, record: Mapping[str, Any]) -> None:
        self._writer.writerow([_plain(record.get(k, 0)) for k in self.header])


class JsonlTickWriter(_FileWriter):
    """One JSON object per line, every key of the record kept."""

    def write_tick(self, record: Mapping[str, Any]) -> None:
        self._fh.write(json.dumps({k: _plain(v) for k, v in record.items()}) + "\n")


class MuxTickWriter:
    """Fans a record out to several writers."""

    def __init__(self, *writers) -> None:
        self.writers = writers

    def write_tick(self, record: Mapping[str, Any]) -> None:
        for w in self.writers:
            w.write_tick(record)


class SummaryJsonWriter:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def write_summary(self, summary: Mapping[str, Any]) -> None:
        payload = {k: _plain(v) for k, v in summary.items()}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
