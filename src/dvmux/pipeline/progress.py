"""Weighted aggregation of per-stage progress into job progress."""

import threading

from dvmux.models.stage import StageKind


class ProgressAggregator:
    """Combines stage fractions using fixed per-stage weights."""

    def __init__(self, weights: dict[StageKind, float]):
        self.weights = dict(weights)
        self._fractions: dict[StageKind, float] = {kind: 0.0 for kind in weights}
        self._lock = threading.Lock()

    def update(self, stage: StageKind, fraction: float) -> float:
        """Record in-stage progress; never moves a stage backwards."""
        fraction = min(1.0, max(0.0, fraction))
        with self._lock:
            if stage in self._fractions:
                self._fractions[stage] = max(self._fractions[stage], fraction)
            return self._total()

    @property
    def progress(self) -> float:
        with self._lock:
            return self._total()

    def _total(self) -> float:
        total = sum(self.weights[k] * f for k, f in self._fractions.items())
        return min(1.0, total)
