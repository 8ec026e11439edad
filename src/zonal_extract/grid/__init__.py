"""Grid models, reconciliation and tiling."""

from zonal_extract.grid.models import Bounds, Box, Grid
from zonal_extract.grid.reconcile import (
    DISAGGREGATION_WARNING,
    GridReconciliation,
    is_disaggregated,
    reconcile_grids,
)
from zonal_extract.grid.tiling import subdivide, validate_max_cells

__all__ = [
    "Bounds",
    "Box",
    "DISAGGREGATION_WARNING",
    "Grid",
    "GridReconciliation",
    "is_disaggregated",
    "reconcile_grids",
    "subdivide",
    "validate_max_cells",
]
