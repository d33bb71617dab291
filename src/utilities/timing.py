"""Wall-time bookkeeping of named solver stages."""

import time
from contextlib import contextmanager

import pandas as pd


class LogStages:
    """Accumulate wall time and call counts per named stage.

    Usage::

        stages = LogStages()
        with stages.stage("solveVelocity"):
            ...
        stages.to_dataframe()
    """

    def __init__(self):
        self.totals = {}
        self.calls = {}

    @contextmanager
    def stage(self, name: str):
        start = time.time()
        try:
            yield
        finally:
            self.totals[name] = self.totals.get(name, 0.0) + time.time() - start
            self.calls[name] = self.calls.get(name, 0) + 1

    @property
    def total(self) -> float:
        return sum(self.totals.values())

    def to_dataframe(self) -> pd.DataFrame:
        """One row per stage, in first-use order."""
        total = self.total
        rows = [
            {
                "stage": name,
                "calls": self.calls[name],
                "seconds": seconds,
                "mean_seconds": seconds / self.calls[name],
                "percent": 100.0 * seconds / total if total > 0 else 0.0,
            }
            for name, seconds in self.totals.items()
        ]
        return pd.DataFrame(rows, columns=["stage", "calls", "seconds", "mean_seconds", "percent"])
