"""Reconcile value and weight grids into one working grid."""

from __future__ import annotations

from dataclasses import dataclass

from zonal_extract.grid.models import Grid

DISAGGREGATION_WARNING = (
    "value raster implicitly disaggregated to match higher resolution of weights"
)


@dataclass(frozen=True)
class GridReconciliation:
    """Working grid for a run plus the conditions found while deriving it."""

    grid: Grid
    value_grid: Grid
    weight_grid: Grid
    disaggregated: bool

    @property
    def weights_finer(self) -> bool:
        """Return True when the weight grid is finer than the values on either axis."""
        if self.weight_grid.is_empty:
            return False
        return self.weight_grid.dx < self.value_grid.dx or self.weight_grid.dy < self.value_grid.dy


def is_disaggregated(value_grid: Grid, common: Grid) -> bool:
    """Return True when ``common`` is finer than the value grid on either axis."""
    if value_grid.is_empty or common.is_empty:
        return False
    return common.dx < value_grid.dx or common.dy < value_grid.dy


def reconcile_grids(value_grid: Grid, weight_grid: Grid | None = None) -> GridReconciliation:
    """Compute the common grid of a value grid and an optional weight grid."""
    weights = weight_grid if weight_grid is not None else Grid.empty()
    common = value_grid.common_grid(weights)
    return GridReconciliation(
        grid=common,
        value_grid=value_grid,
        weight_grid=weights,
        disaggregated=is_disaggregated(value_grid, common),
    )
