"""Bounding box and regular grid models."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from zonal_extract.errors import ConfigurationError

Bounds = Tuple[float, float, float, float]

# Relative slack allowed when checking that two grids share a cell lattice.
GRID_TOLERANCE = 1e-6


def _is_integral(value: float, tolerance: float = GRID_TOLERANCE) -> bool:
    return abs(value - round(value)) <= tolerance


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in map coordinates."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @classmethod
    def from_bounds(cls, bounds: Bounds) -> Box:
        """Build a box from a (xmin, ymin, xmax, ymax) tuple."""
        xmin, ymin, xmax, ymax = bounds
        return cls(float(xmin), float(ymin), float(xmax), float(ymax))

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def is_empty(self) -> bool:
        return self.xmax <= self.xmin or self.ymax <= self.ymin

    def as_tuple(self) -> Bounds:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def intersects(self, other: Box) -> bool:
        """Return True when the boxes overlap or touch (closed intervals)."""
        return not (
            other.xmin > self.xmax
            or other.xmax < self.xmin
            or other.ymin > self.ymax
            or other.ymax < self.ymin
        )

    def intersection(self, other: Box) -> Box:
        """Return the overlapping region of two intersecting boxes."""
        return Box(
            max(self.xmin, other.xmin),
            max(self.ymin, other.ymin),
            min(self.xmax, other.xmax),
            min(self.ymax, other.ymax),
        )

    def expand_to_include(self, other: Box) -> Box:
        """Return the smallest box enclosing both boxes."""
        return Box(
            min(self.xmin, other.xmin),
            min(self.ymin, other.ymin),
            max(self.xmax, other.xmax),
            max(self.ymax, other.ymax),
        )


@dataclass(frozen=True)
class Grid:
    """North-up regular grid anchored at its upper-left corner.

    Grids are values: cropping, tiling and reconciliation always derive a
    new grid. A grid with zero rows or columns is empty; ``Grid.empty()`` is
    the identity element of :meth:`common_grid`.
    """

    xmin: float
    ymax: float
    dx: float
    dy: float
    rows: int
    cols: int

    def __post_init__(self) -> None:
        if self.rows < 0 or self.cols < 0:
            raise ValueError("Grid dimensions must be non-negative.")
        if self.rows and self.cols:
            for name, size in (("dx", self.dx), ("dy", self.dy)):
                if not (math.isfinite(size) and size > 0):
                    raise ValueError(f"Grid cell size {name} must be positive and finite.")
            if not (math.isfinite(self.xmin) and math.isfinite(self.ymax)):
                raise ValueError("Grid origin must be finite.")

    @classmethod
    def empty(cls) -> Grid:
        """Return the empty grid."""
        return cls(0.0, 0.0, 0.0, 0.0, 0, 0)

    @classmethod
    def from_box(cls, box: Box, dx: float, dy: float) -> Grid:
        """Return a grid covering ``box`` with the given cell size."""
        cols = int(round(box.width / dx))
        rows = int(round(box.height / dy))
        return cls(box.xmin, box.ymax, dx, dy, rows, cols)

    @property
    def is_empty(self) -> bool:
        return self.rows == 0 or self.cols == 0

    @property
    def size(self) -> int:
        return self.rows * self.cols

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def xmax(self) -> float:
        return self.xmin + self.cols * self.dx

    @property
    def ymin(self) -> float:
        return self.ymax - self.rows * self.dy

    @property
    def extent(self) -> Box:
        return Box(self.xmin, self.ymin, self.xmax, self.ymax)

    def get_column(self, x: float) -> int:
        """Return the column containing ``x``; the right edge maps to the last column."""
        if self.is_empty or x < self.xmin or x > self.xmax:
            raise ValueError(f"x={x} lies outside the grid extent.")
        if x == self.xmax:
            return self.cols - 1
        return min(int(math.floor((x - self.xmin) / self.dx)), self.cols - 1)

    def get_row(self, y: float) -> int:
        """Return the row containing ``y``; the bottom edge maps to the last row."""
        if self.is_empty or y < self.ymin or y > self.ymax:
            raise ValueError(f"y={y} lies outside the grid extent.")
        if y == self.ymin:
            return self.rows - 1
        return min(int(math.floor((self.ymax - y) / self.dy)), self.rows - 1)

    def x_for_col(self, col: int) -> float:
        return self.xmin + (col + 0.5) * self.dx

    def y_for_row(self, row: int) -> float:
        return self.ymax - (row + 0.5) * self.dy

    def subgrid(self, row0: int, col0: int, rows: int, cols: int) -> Grid:
        """Return the block of cells starting at (row0, col0)."""
        if row0 < 0 or col0 < 0 or row0 + rows > self.rows or col0 + cols > self.cols:
            raise ValueError(
                f"Subgrid ({row0}, {col0}, {rows}x{cols}) exceeds grid {self.rows}x{self.cols}."
            )
        return Grid(
            self.xmin + col0 * self.dx,
            self.ymax - row0 * self.dy,
            self.dx,
            self.dy,
            rows,
            cols,
        )

    def offset_in(self, parent: Grid) -> tuple[int, int]:
        """Return the (row, col) of this grid's origin within ``parent``."""
        row = int(round((parent.ymax - self.ymax) / parent.dy))
        col = int(round((self.xmin - parent.xmin) / parent.dx))
        return row, col

    def shrink_to_fit(self, box: Box) -> Grid:
        """Return the smallest block of cells covering ``box``."""
        if (
            box.xmin < self.xmin
            or box.ymin < self.ymin
            or box.xmax > self.xmax
            or box.ymax > self.ymax
        ):
            raise ValueError("Cannot shrink grid to bounds larger than its extent.")

        col0 = self.get_column(box.xmin)
        row1 = self.get_row(box.ymax)

        snapped_xmin = self.xmin + col0 * self.dx
        snapped_ymax = self.ymax - row1 * self.dy
        # Round-off can leave the snapped corner just inside the box.
        if box.xmin < snapped_xmin and col0 > 0:
            snapped_xmin -= self.dx
            col0 -= 1
        if box.ymax > snapped_ymax and row1 > 0:
            snapped_ymax += self.dy
            row1 -= 1

        col1 = self.get_column(box.xmax)
        row0 = self.get_row(box.ymin)
        num_rows = 1 + row0 - row1
        num_cols = 1 + col1 - col0

        # A box ending exactly on a cell boundary does not need the next cell.
        if num_rows > 1 and snapped_ymax - (num_rows - 1) * self.dy <= box.ymin:
            num_rows -= 1
        if num_cols > 1 and snapped_xmin + (num_cols - 1) * self.dx >= box.xmax:
            num_cols -= 1

        return self.subgrid(row1, col0, num_rows, num_cols)

    def intersects(self, box: Box) -> bool:
        """Return True when ``box`` touches this grid's extent."""
        return not self.is_empty and self.extent.intersects(box)

    def crop(self, box: Box) -> Grid:
        """Truncate the grid to the cells intersecting ``box``."""
        if not self.intersects(box):
            return Grid.empty()
        return self.shrink_to_fit(self.extent.intersection(box))

    def compatible_with(self, other: Grid) -> bool:
        """Return True when both grids lie on a shared cell lattice."""
        if self.is_empty or other.is_empty:
            return True
        for mine, theirs in ((self.dx, other.dx), (self.dy, other.dy)):
            if not _is_integral(max(mine, theirs) / min(mine, theirs)):
                return False
        if not _is_integral(abs(other.xmin - self.xmin) / min(self.dx, other.dx)):
            return False
        if not _is_integral(abs(other.ymax - self.ymax) / min(self.dy, other.dy)):
            return False
        return True

    def common_grid(self, other: Grid) -> Grid:
        """Return the finest grid covering both extents."""
        if other.is_empty:
            return self
        if self.is_empty:
            return other
        if not self.compatible_with(other):
            raise ConfigurationError(
                "Incompatible extents: value and weight rasters do not share a cell lattice "
                f"(dx {self.dx} vs {other.dx}, dy {self.dy} vs {other.dy})."
            )
        dx = min(self.dx, other.dx)
        dy = min(self.dy, other.dy)
        return Grid.from_box(self.extent.expand_to_include(other.extent), dx, dy)
