"""Data models for raster blocks and coverage tiles."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from zonal_extract.grid.models import Grid


def _check_shape(grid: Grid, data: np.ndarray, label: str) -> None:
    if data.shape != grid.shape:
        raise ValueError(f"{label} shape {data.shape} does not match grid shape {grid.shape}.")


@dataclass(frozen=True)
class RasterBlock:
    """Values of one layer read at the source's native resolution."""

    grid: Grid
    data: np.ndarray

    def __post_init__(self) -> None:
        _check_shape(self.grid, self.data, "Block")

    @classmethod
    def empty(cls) -> RasterBlock:
        return cls(Grid.empty(), np.empty((0, 0), dtype=np.float64))


@dataclass(frozen=True)
class CoverageTile:
    """Fraction of each cell of ``grid`` covered by a geometry, in [0, 1]."""

    grid: Grid
    fractions: np.ndarray

    def __post_init__(self) -> None:
        _check_shape(self.grid, self.fractions, "Coverage")

    @classmethod
    def empty(cls) -> CoverageTile:
        return cls(Grid.empty(), np.empty((0, 0), dtype=np.float64))

    @property
    def is_empty(self) -> bool:
        return self.grid.is_empty
