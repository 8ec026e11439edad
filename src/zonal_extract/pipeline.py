"""Zonal aggregation and per-cell extraction over one geometry."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Mapping

import numpy as np

from zonal_extract.config import DEFAULT_MAX_CELLS, DEFAULT_STATS
from zonal_extract.crs import crs_equal
from zonal_extract.errors import ConfigurationError
from zonal_extract.geometry import read_geometry
from zonal_extract.grid.reconcile import (
    DISAGGREGATION_WARNING,
    GridReconciliation,
    reconcile_grids,
)
from zonal_extract.grid.tiling import subdivide, validate_max_cells
from zonal_extract.raster.align import cell_centers, cell_indices, read_aligned
from zonal_extract.raster.coverage import CoverageEngine, ShapelyCoverageEngine
from zonal_extract.raster.sources import RasterSource
from zonal_extract.stats.accumulator import RasterStats
from zonal_extract.stats.layers import resolve_layers
from zonal_extract.stats.render import render_stats, validate_request

LOGGER = logging.getLogger("zonal_extract.pipeline")

# Appended to a weight column whose name is already taken by a value column.
WEIGHT_NAME_SUFFIX = ".1"


@dataclass(frozen=True)
class AggregateOptions:
    """Per-call settings for :func:`aggregate`."""

    stats: tuple[str, ...] = DEFAULT_STATS
    quantiles: tuple[float, ...] = ()
    max_cells_in_memory: int = DEFAULT_MAX_CELLS
    default_value: float = math.nan
    default_weight: float = math.nan
    warn_on_disaggregate: bool = True


@dataclass(frozen=True)
class ExtractOptions:
    """Per-call settings for :func:`extract`."""

    default_value: float = math.nan
    default_weight: float = math.nan
    include_xy: bool = False
    include_cell: bool = False
    include_cols: Mapping[str, Any] | None = None
    value_names: tuple[str, ...] | None = None
    weight_names: tuple[str, ...] | None = None
    warn_on_disaggregate: bool = True


@dataclass(frozen=True)
class StatTable:
    """One row per output layer, one column per requested statistic."""

    columns: tuple[str, ...]
    rows: tuple[tuple[float, ...], ...]
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def column(self, name: str) -> list[float]:
        index = self.columns.index(name)
        return [row[index] for row in self.rows]

    def as_records(self) -> list[dict[str, float]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class CellTable:
    """Per-cell values of every covered cell, keyed by column name."""

    columns: dict[str, np.ndarray]
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.columns["coverage_fraction"])

    def as_records(self) -> list[dict[str, Any]]:
        lists = {name: values.tolist() for name, values in self.columns.items()}
        return [
            {name: values[index] for name, values in lists.items()}
            for index in range(self.row_count)
        ]


def _check_crs(values: RasterSource, weights: RasterSource | None) -> None:
    if weights is None or values.crs is None or weights.crs is None:
        return
    if not crs_equal(values.crs, weights.crs):
        raise ConfigurationError(
            f"Value raster CRS {values.crs} does not match weight raster CRS {weights.crs}."
        )


def _reconcile(values: RasterSource, weights: RasterSource | None) -> GridReconciliation:
    _check_crs(values, weights)
    return reconcile_grids(values.grid, weights.grid if weights is not None else None)


def _disaggregation_warnings(reconciliation: GridReconciliation, enabled: bool) -> tuple[str, ...]:
    if not (reconciliation.disaggregated and enabled):
        return ()
    LOGGER.warning(DISAGGREGATION_WARNING)
    return (DISAGGREGATION_WARNING,)


def aggregate(
    values: RasterSource,
    geometry: Any,
    weights: RasterSource | None = None,
    *,
    options: AggregateOptions = AggregateOptions(),
    coverage_engine: CoverageEngine | None = None,
) -> StatTable:
    """Compute the requested statistics of ``values`` inside ``geometry``.

    Every configuration problem is reported before the first tile is read;
    a read failure aborts the whole computation.
    """
    engine = coverage_engine or ShapelyCoverageEngine()
    max_cells = validate_max_cells(options.max_cells_in_memory)
    plan = resolve_layers(values.nlayers, weights.nlayers if weights is not None else 0)
    reconciliation = _reconcile(values, weights)
    request = validate_request(
        options.stats,
        options.quantiles,
        disaggregated=reconciliation.disaggregated,
    )
    geom = read_geometry(geometry)
    warnings = _disaggregation_warnings(reconciliation, options.warn_on_disaggregate)
    bbox = engine.bounds(geom)

    accumulators = [RasterStats() for _ in range(plan.result_count)]
    grid = reconciliation.grid
    if grid.intersects(bbox):
        tiles = 0
        for subgrid in subdivide(grid.crop(bbox), max_cells):
            coverage = engine.intersect(subgrid, geom)
            if coverage.is_empty:
                continue
            tiles += 1
            read_values = partial(
                read_aligned, values, coverage.grid, default=options.default_value
            )
            read_weights = None
            if weights is not None:
                read_weights = partial(
                    read_aligned, weights, coverage.grid, default=options.default_weight
                )
            for row, value_tile, weight_tile in plan.iter_tile(read_values, read_weights):
                accumulators[row].process(coverage, value_tile, weight_tile)
        LOGGER.debug(
            "Aggregated %s tile(s) over %sx%s grid (%s pairing)",
            tiles,
            grid.rows,
            grid.cols,
            plan.pairing.value,
        )
    else:
        LOGGER.debug("Geometry bounds %s miss the raster extent.", bbox.as_tuple())

    rows = tuple(tuple(render_stats(stats, request)) for stats in accumulators)
    return StatTable(columns=request.columns, rows=rows, warnings=warnings)


def _layer_names(names: tuple[str, ...] | None, source: RasterSource) -> tuple[str, ...]:
    if names is None:
        return source.names
    if len(names) != source.nlayers:
        raise ConfigurationError(
            f"Expected {source.nlayers} layer name(s), got {len(names)}."
        )
    return tuple(names)


def extract(
    values: RasterSource,
    geometry: Any,
    weights: RasterSource | None = None,
    *,
    options: ExtractOptions = ExtractOptions(),
    coverage_engine: CoverageEngine | None = None,
) -> CellTable:
    """Return the value, weight and coverage of every cell covered by ``geometry``.

    Rasters coarser than the common grid are resampled onto it by nearest
    containing cell.
    """
    engine = coverage_engine or ShapelyCoverageEngine()
    value_names = _layer_names(options.value_names, values)
    weight_names: tuple[str, ...] = ()
    if weights is not None:
        weight_names = _layer_names(options.weight_names, weights)
    reconciliation = _reconcile(values, weights)
    geom = read_geometry(geometry)
    warnings = _disaggregation_warnings(reconciliation, options.warn_on_disaggregate)
    common = reconciliation.grid.crop(engine.bounds(geom))
    coverage = engine.intersect(common, geom)
    cov_grid = coverage.grid

    fractions = coverage.fractions.ravel()
    covered = fractions > 0
    count = int(covered.sum())

    columns: dict[str, np.ndarray] = {}
    for name, value in (options.include_cols or {}).items():
        columns[name] = np.full(count, value)

    for layer, name in enumerate(value_names):
        data = read_aligned(values, cov_grid, layer, options.default_value)
        columns[name] = data.ravel()[covered]

    if weights is not None:
        for layer, name in enumerate(weight_names):
            data = read_aligned(weights, cov_grid, layer, options.default_weight)
            column = name + WEIGHT_NAME_SUFFIX if name in columns else name
            columns[column] = data.ravel()[covered]

    if options.include_xy:
        xy_grid = (
            reconciliation.weight_grid if reconciliation.weights_finer else reconciliation.value_grid
        )
        xs, ys = cell_centers(xy_grid, cov_grid)
        columns["x"] = xs.ravel()[covered]
        columns["y"] = ys.ravel()[covered]

    if options.include_cell:
        columns["cell"] = cell_indices(reconciliation.value_grid, cov_grid).ravel()[covered]

    columns["coverage_fraction"] = fractions[covered]
    LOGGER.debug("Extracted %s covered cell(s).", count)
    return CellTable(columns=columns, warnings=warnings)
