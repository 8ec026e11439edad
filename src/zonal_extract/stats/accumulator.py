"""Streaming zonal statistics over coverage tiles."""

from __future__ import annotations

import math

import numpy as np

from zonal_extract.errors import ConfigurationError
from zonal_extract.raster.models import CoverageTile


class RasterStats:
    """Running statistics for one output layer.

    ``process`` may be called once per tile; only summary state is kept
    between calls. Every reader returns ``None`` when the statistic is not
    available, except ``count``, ``sum`` and ``weighted_sum`` which are 0 for
    an empty zone.
    """

    def __init__(self) -> None:
        self._count = 0
        self._sum = 0.0
        self._weighted_sum = 0.0
        self._sum_weights = 0.0
        self._coverage = 0.0
        self._mean = 0.0
        self._m2 = 0.0
        self._min: float | None = None
        self._max: float | None = None
        self._frequencies: dict[float, float] = {}
        self._cumulative: tuple[np.ndarray, np.ndarray] | None = None

    def process(
        self,
        coverage: CoverageTile,
        values: np.ndarray,
        weights: np.ndarray | None = None,
    ) -> None:
        """Fold one tile of values (and optional weights) into the running state."""
        if coverage.is_empty:
            return
        fractions = coverage.fractions
        if values.shape != fractions.shape:
            raise ValueError(
                f"Value tile shape {values.shape} does not match coverage {fractions.shape}."
            )
        if weights is not None and weights.shape != fractions.shape:
            raise ValueError(
                f"Weight tile shape {weights.shape} does not match coverage {fractions.shape}."
            )

        mask = (fractions > 0) & ~np.isnan(values)
        if not mask.any():
            return
        c = fractions[mask].astype(np.float64)
        v = values[mask].astype(np.float64)
        w = weights[mask].astype(np.float64) if weights is not None else np.ones_like(v)

        cv = c * v
        cw = c * w
        self._count += int(mask.sum())
        self._sum += float(cv.sum())
        self._weighted_sum += float((cv * w).sum())
        self._sum_weights += float(cw.sum())
        self._merge_moments(c, v)

        tile_min = float(v.min())
        tile_max = float(v.max())
        if self._min is None or tile_min < self._min:
            self._min = tile_min
        if self._max is None or tile_max > self._max:
            self._max = tile_max

        self._merge_frequencies(v, cw)
        self._cumulative = None

    def _merge_moments(self, c: np.ndarray, v: np.ndarray) -> None:
        # Coverage-weighted Welford update, merged one tile at a time.
        batch_weight = float(c.sum())
        batch_mean = float((c * v).sum()) / batch_weight
        batch_m2 = float((c * (v - batch_mean) ** 2).sum())
        total = self._coverage + batch_weight
        delta = batch_mean - self._mean
        self._mean += delta * batch_weight / total
        self._m2 += batch_m2 + delta * delta * self._coverage * batch_weight / total
        self._coverage = total

    def _merge_frequencies(self, v: np.ndarray, mass: np.ndarray) -> None:
        mass = np.where(np.isnan(mass), 0.0, mass)
        keys, inverse = np.unique(v, return_inverse=True)
        totals = np.bincount(inverse.ravel(), weights=mass, minlength=keys.size)
        frequencies = self._frequencies
        for key, total in zip(keys.tolist(), totals.tolist()):
            frequencies[key] = frequencies.get(key, 0.0) + total

    def count(self) -> int:
        return self._count

    def sum(self) -> float:
        return self._sum

    def weighted_sum(self) -> float:
        return self._weighted_sum

    def sum_of_weights(self) -> float:
        return self._sum_weights

    def mean(self) -> float | None:
        if self._count == 0:
            return None
        return self._sum / self._coverage

    def weighted_mean(self) -> float | None:
        if self._count == 0 or self._sum_weights == 0:
            return None
        return self._weighted_sum / self._sum_weights

    def min(self) -> float | None:
        return self._min

    def max(self) -> float | None:
        return self._max

    def variance(self) -> float | None:
        if self._count == 0:
            return None
        return self._m2 / self._coverage

    def stdev(self) -> float | None:
        variance = self.variance()
        if variance is None:
            return None
        return math.sqrt(variance)

    def coefficient_of_variation(self) -> float | None:
        stdev = self.stdev()
        mean = self.mean()
        if stdev is None or not mean:
            return None
        return stdev / mean

    def mode(self) -> float | None:
        """Return the value with the most coverage; ties go to the smallest value."""
        if not self._frequencies:
            return None
        return max(sorted(self._frequencies.items()), key=lambda item: item[1])[0]

    def minority(self) -> float | None:
        """Return the value with the least coverage; ties go to the smallest value."""
        if not self._frequencies:
            return None
        return min(sorted(self._frequencies.items()), key=lambda item: item[1])[0]

    def variety(self) -> int | None:
        if self._count == 0:
            return None
        return len(self._frequencies)

    def quantile(self, q: float) -> float | None:
        """Return the weighted nearest-rank quantile ``q`` in [0, 1]."""
        if not 0.0 <= q <= 1.0:
            raise ConfigurationError(f"Quantile {q} must be between 0 and 1.")
        if not self._frequencies:
            return None
        keys, cumulative = self._sorted_cumulative()
        index = int(np.searchsorted(cumulative, q * cumulative[-1], side="left"))
        return float(keys[min(index, keys.size - 1)])

    def median(self) -> float | None:
        return self.quantile(0.5)

    def _sorted_cumulative(self) -> tuple[np.ndarray, np.ndarray]:
        if self._cumulative is None:
            keys = np.array(sorted(self._frequencies), dtype=np.float64)
            masses = np.array([self._frequencies[key] for key in keys.tolist()])
            self._cumulative = (keys, np.cumsum(masses))
        return self._cumulative
