"""Split a grid into memory-bounded tiles."""

from __future__ import annotations

from typing import Iterator

from zonal_extract.errors import ConfigurationError
from zonal_extract.grid.models import Grid


def validate_max_cells(max_cells: int) -> int:
    """Return ``max_cells`` as an int, rejecting non-integral values and values below one."""
    try:
        value = int(max_cells)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConfigurationError(f"Invalid value for max_cells_in_memory: {max_cells}") from exc
    if isinstance(max_cells, bool) or value != max_cells or value < 1:
        raise ConfigurationError(f"Invalid value for max_cells_in_memory: {max_cells}")
    return value


def _iter_blocks(grid: Grid, max_cells: int) -> Iterator[Grid]:
    if grid.size <= max_cells:
        yield grid
        return
    cols_per_block = min(max_cells, grid.cols)
    rows_per_block = max_cells // cols_per_block
    for row0 in range(0, grid.rows, rows_per_block):
        rows = min(rows_per_block, grid.rows - row0)
        for col0 in range(0, grid.cols, cols_per_block):
            cols = min(cols_per_block, grid.cols - col0)
            yield grid.subgrid(row0, col0, rows, cols)


def subdivide(grid: Grid, max_cells: int) -> Iterator[Grid]:
    """Yield row-major sub-grids of at most ``max_cells`` cells tiling ``grid``.

    The limit is validated immediately, before the first tile is requested.
    An empty grid yields no tiles.
    """
    limit = validate_max_cells(max_cells)
    if grid.is_empty:
        return iter(())
    return _iter_blocks(grid, limit)
