"""Map native raster blocks onto a target grid."""

from __future__ import annotations

import math

import numpy as np

from zonal_extract.grid.models import Grid
from zonal_extract.raster.models import RasterBlock
from zonal_extract.raster.sources import RasterSource


def containing_cells(source: Grid, target: Grid) -> tuple[np.ndarray, np.ndarray]:
    """Return source row and column indices holding each target cell center.

    Centers outside the source grid get index -1.
    """
    if source.is_empty:
        return (
            np.full(target.rows, -1, dtype=np.int64),
            np.full(target.cols, -1, dtype=np.int64),
        )
    xs = target.xmin + (np.arange(target.cols) + 0.5) * target.dx
    ys = target.ymax - (np.arange(target.rows) + 0.5) * target.dy
    cols = np.floor((xs - source.xmin) / source.dx).astype(np.int64)
    rows = np.floor((source.ymax - ys) / source.dy).astype(np.int64)
    cols[(cols < 0) | (cols >= source.cols)] = -1
    rows[(rows < 0) | (rows >= source.rows)] = -1
    return rows, cols


def align_block(block: RasterBlock, grid: Grid, default: float) -> np.ndarray:
    """Resample ``block`` onto ``grid`` by nearest containing cell.

    Cells outside the block and missing (NaN) cells take ``default``.
    """
    if block.grid == grid:
        data = np.array(block.data, dtype=np.float64)
    else:
        data = np.full(grid.shape, np.nan, dtype=np.float64)
        rows, cols = containing_cells(block.grid, grid)
        row_ok = rows >= 0
        col_ok = cols >= 0
        if row_ok.any() and col_ok.any():
            data[np.ix_(row_ok, col_ok)] = block.data[np.ix_(rows[row_ok], cols[col_ok])]
    if not math.isnan(default):
        data[np.isnan(data)] = default
    return data


def read_aligned(source: RasterSource, grid: Grid, layer: int, default: float) -> np.ndarray:
    """Read one layer of ``source`` covering ``grid`` and align it to ``grid``."""
    if grid.is_empty:
        return np.empty(grid.shape, dtype=np.float64)
    return align_block(source.read_box(grid.extent, layer), grid, default)


def cell_centers(source: Grid, target: Grid) -> tuple[np.ndarray, np.ndarray]:
    """Return x/y centers of the source cells containing each target cell."""
    rows, cols = containing_cells(source, target)
    xs = np.where(cols >= 0, source.xmin + (cols + 0.5) * source.dx, np.nan)
    ys = np.where(rows >= 0, source.ymax - (rows + 0.5) * source.dy, np.nan)
    return np.broadcast_to(xs, target.shape), np.broadcast_to(ys[:, np.newaxis], target.shape)


def cell_indices(source: Grid, target: Grid) -> np.ndarray:
    """Return zero-based flat source cell indices for each target cell (-1 outside)."""
    rows, cols = containing_cells(source, target)
    index = rows[:, np.newaxis] * source.cols + cols[np.newaxis, :]
    outside = (rows[:, np.newaxis] < 0) | (cols[np.newaxis, :] < 0)
    return np.where(outside, -1, index)
