from __future__ import annotations

import numpy as np

from zonal_extract.grid.models import Grid
from zonal_extract.raster.align import (
    align_block,
    cell_centers,
    cell_indices,
    containing_cells,
    read_aligned,
)
from zonal_extract.raster.models import RasterBlock
from zonal_extract.raster.sources import ArrayRasterSource

COARSE = Grid(xmin=0.0, ymax=4.0, dx=2.0, dy=2.0, rows=2, cols=2)


def test_containing_cells_marks_outside_centers() -> None:
    source = Grid(xmin=1.0, ymax=3.0, dx=1.0, dy=1.0, rows=2, cols=2)
    target = Grid(xmin=0.0, ymax=4.0, dx=1.0, dy=1.0, rows=4, cols=4)
    rows, cols = containing_cells(source, target)
    assert rows.tolist() == [-1, 0, 1, -1]
    assert cols.tolist() == [-1, 0, 1, -1]


def test_align_same_grid_fills_missing(unit_grid: Grid) -> None:
    data = np.arange(16, dtype=np.float64).reshape(4, 4)
    data[1, 1] = np.nan
    aligned = align_block(RasterBlock(unit_grid, data), unit_grid, default=-1.0)
    assert aligned[1, 1] == -1.0
    assert aligned[0, 0] == 0.0
    assert np.isnan(data[1, 1])


def test_align_disaggregates_coarse_block(unit_grid: Grid) -> None:
    block = RasterBlock(COARSE, np.array([[1.0, 2.0], [3.0, 4.0]]))
    aligned = align_block(block, unit_grid, default=np.nan)
    assert aligned.tolist() == [
        [1.0, 1.0, 2.0, 2.0],
        [1.0, 1.0, 2.0, 2.0],
        [3.0, 3.0, 4.0, 4.0],
        [3.0, 3.0, 4.0, 4.0],
    ]


def test_align_outside_block_takes_default() -> None:
    block = RasterBlock(
        Grid(xmin=0.0, ymax=4.0, dx=1.0, dy=1.0, rows=2, cols=2),
        np.array([[1.0, 2.0], [3.0, 4.0]]),
    )
    target = Grid(xmin=0.0, ymax=4.0, dx=1.0, dy=1.0, rows=3, cols=3)

    missing = align_block(block, target, default=np.nan)
    assert np.isnan(missing[2]).all()
    assert np.isnan(missing[:, 2]).all()

    filled = align_block(block, target, default=0.0)
    assert filled.tolist() == [[1.0, 2.0, 0.0], [3.0, 4.0, 0.0], [0.0, 0.0, 0.0]]


def test_align_empty_block_is_all_default(unit_grid: Grid) -> None:
    aligned = align_block(RasterBlock.empty(), unit_grid, default=5.0)
    assert (aligned == 5.0).all()


def test_read_aligned_from_source(unit_grid: Grid) -> None:
    source = ArrayRasterSource(np.array([[1.0, 2.0], [3.0, 4.0]]), COARSE)
    target = unit_grid.subgrid(1, 1, 2, 2)
    assert read_aligned(source, target, 0, np.nan).tolist() == [[1.0, 2.0], [3.0, 4.0]]


def test_cell_centers_use_source_cells(unit_grid: Grid) -> None:
    xs, ys = cell_centers(COARSE, unit_grid)
    assert xs[0].tolist() == [1.0, 1.0, 3.0, 3.0]
    assert ys[:, 0].tolist() == [3.0, 3.0, 1.0, 1.0]
    assert xs.shape == ys.shape == unit_grid.shape


def test_cell_indices_are_zero_based(unit_grid: Grid) -> None:
    assert cell_indices(COARSE, unit_grid).tolist() == [
        [0, 0, 1, 1],
        [0, 0, 1, 1],
        [2, 2, 3, 3],
        [2, 2, 3, 3],
    ]


def test_cell_indices_outside_source() -> None:
    source = Grid(xmin=0.0, ymax=2.0, dx=1.0, dy=1.0, rows=2, cols=2)
    target = Grid(xmin=0.0, ymax=2.0, dx=1.0, dy=1.0, rows=2, cols=3)
    assert cell_indices(source, target).tolist() == [[0, 1, -1], [2, 3, -1]]
