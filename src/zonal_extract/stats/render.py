"""Validate statistic requests and render accumulators into rows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable

from zonal_extract.errors import ConfigurationError
from zonal_extract.stats.accumulator import RasterStats

_READERS: dict[str, Callable[[RasterStats], float | int | None]] = {
    "mean": RasterStats.mean,
    "sum": RasterStats.sum,
    "count": RasterStats.count,
    "min": RasterStats.min,
    "max": RasterStats.max,
    "median": RasterStats.median,
    "mode": RasterStats.mode,
    "majority": RasterStats.mode,
    "minority": RasterStats.minority,
    "variety": RasterStats.variety,
    "weighted_mean": RasterStats.weighted_mean,
    "weighted_sum": RasterStats.weighted_sum,
    "variance": RasterStats.variance,
    "stdev": RasterStats.stdev,
    "coefficient_of_variation": RasterStats.coefficient_of_variation,
}

STAT_NAMES = frozenset([*_READERS, "quantile"])
# Counting a coarse cell once per fine cell makes these meaningless.
DISAGGREGATION_UNSAFE = frozenset({"count", "sum"})


def quantile_column(q: float) -> str:
    """Return the column name for quantile ``q`` (0.25 -> ``q25``)."""
    return f"q{q * 100:g}"


@dataclass(frozen=True)
class StatRequest:
    """Validated list of statistics and quantiles."""

    stats: tuple[str, ...]
    quantiles: tuple[float, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        columns: list[str] = []
        for stat in self.stats:
            if stat == "quantile":
                columns.extend(quantile_column(q) for q in self.quantiles)
            else:
                columns.append(stat)
        return tuple(columns)


def validate_request(
    stats: Iterable[str],
    quantiles: Iterable[float] | None = None,
    *,
    disaggregated: bool = False,
) -> StatRequest:
    """Check a statistic request before any tile is processed."""
    names = tuple(str(stat) for stat in stats)
    qs = tuple(float(q) for q in (quantiles or ()))
    for stat in names:
        if stat not in STAT_NAMES:
            raise ConfigurationError(f"Unknown stat: {stat}")
        if disaggregated and stat in DISAGGREGATION_UNSAFE:
            raise ConfigurationError(
                "Cannot compute 'count' or 'sum' when value raster is disaggregated "
                "to resolution of weights."
            )
        if stat == "quantile" and not qs:
            raise ConfigurationError("Quantiles not specified.")
    for q in qs:
        if not 0.0 <= q <= 1.0:
            raise ConfigurationError(f"Quantile {q} must be between 0 and 1.")
    return StatRequest(stats=names, quantiles=qs)


def _as_number(value: float | int | None) -> float:
    return math.nan if value is None else float(value)


def render_stats(accumulator: RasterStats, request: StatRequest) -> list[float]:
    """Return one value per requested column, NaN where not available."""
    row: list[float] = []
    for stat in request.stats:
        if stat == "quantile":
            row.extend(_as_number(accumulator.quantile(q)) for q in request.quantiles)
        else:
            row.append(_as_number(_READERS[stat](accumulator)))
    return row
