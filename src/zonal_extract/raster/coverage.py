"""Coverage fractions of raster cells covered by a polygon."""

from __future__ import annotations

from typing import Any, Protocol

import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry

from zonal_extract.grid.models import Box, Grid
from zonal_extract.grid.tiling import subdivide, validate_max_cells
from zonal_extract.raster.models import CoverageTile

# Cells overlaid per shapely batch inside one tile.
DEFAULT_BAND_CELLS = 65_536


class CoverageEngine(Protocol):
    """Protocol for computing per-cell coverage of a geometry."""

    def bounds(self, geometry: Any) -> Box:
        ...

    def intersect(self, grid: Grid, geometry: Any) -> CoverageTile:
        ...


def cell_boxes(grid: Grid) -> np.ndarray:
    """Return a ``(rows, cols)`` array of shapely boxes, one per cell."""
    x0 = grid.xmin + np.arange(grid.cols) * grid.dx
    y1 = grid.ymax - np.arange(grid.rows) * grid.dy
    xmin, ymax = np.meshgrid(x0, y1)
    return shapely.box(xmin, ymax - grid.dy, xmin + grid.dx, ymax)


class ShapelyCoverageEngine:
    """Exact coverage fractions from cell/polygon intersection areas.

    Cells strictly inside the polygon are 1 and cells that miss it are 0
    without any overlay; only cells crossing the boundary are intersected.
    Cell boxes are built for at most ``band_cells`` cells at a time, so
    shapely objects never outnumber one band.
    """

    def __init__(self, band_cells: int = DEFAULT_BAND_CELLS) -> None:
        self.band_cells = validate_max_cells(band_cells)

    def bounds(self, geometry: BaseGeometry) -> Box:
        return Box.from_bounds(geometry.bounds)

    def intersect(self, grid: Grid, geometry: BaseGeometry) -> CoverageTile:
        if grid.is_empty or geometry.is_empty:
            return CoverageTile.empty()
        tile_grid = grid.crop(self.bounds(geometry))
        if tile_grid.is_empty:
            return CoverageTile.empty()

        shapely.prepare(geometry)
        fractions = np.zeros(tile_grid.shape, dtype=np.float64)
        for band in subdivide(tile_grid, self.band_cells):
            row0, col0 = band.offset_in(tile_grid)
            fractions[row0 : row0 + band.rows, col0 : col0 + band.cols] = _band_fractions(
                band, geometry
            )
        return CoverageTile(tile_grid, fractions)


def _band_fractions(band: Grid, geometry: BaseGeometry) -> np.ndarray:
    cells = cell_boxes(band)
    fractions = np.zeros(band.shape, dtype=np.float64)
    inside = shapely.contains_properly(geometry, cells)
    fractions[inside] = 1.0
    boundary = shapely.intersects(geometry, cells) & ~inside
    if boundary.any():
        areas = shapely.area(shapely.intersection(cells[boundary], geometry))
        fractions[boundary] = np.clip(areas / (band.dx * band.dy), 0.0, 1.0)
    return fractions
