from __future__ import annotations

import bisect
from typing import List, Mapping, Optional

from ..core.types import ControlInput


class ManualControlProvider:
    """
    Scheduled throttle/steer commands, each held until the next one starts.

    Before the first entry the first command applies; after the last entry
    the last command is held.
    """

    def __init__(self, control_schedule: Optional[List[Mapping[str, float]]] = None) -> None:
        """
        Args:
            control_schedule: entries with 't' [s] and optional 'throttle',
                'steer' (nominally in [-1, 1]) and 'notes'.
        """
        self.schedule = sorted(control_schedule or [], key=lambda cmd: cmd.get("t", 0.0))
        self._times = [cmd.get("t", 0.0) for cmd in self.schedule]

    def compute(self, t: float) -> ControlInput:
        if not self.schedule:
            return ControlInput()
        i = max(0, bisect.bisect_right(self._times, t) - 1)
        cmd = self.schedule[i]
        return ControlInput(
            throttle=float(cmd.get("throttle", 0.0)),
            steer=float(cmd.get("steer", 0.0)),
            notes=cmd.get("notes"),
        )
