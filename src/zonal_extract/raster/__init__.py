"""Raster blocks, sources, alignment and coverage helpers."""

from zonal_extract.raster.align import align_block, cell_centers, cell_indices, read_aligned
from zonal_extract.raster.coverage import CoverageEngine, ShapelyCoverageEngine
from zonal_extract.raster.models import CoverageTile, RasterBlock
from zonal_extract.raster.sources import (
    ArrayRasterSource,
    RasterioRasterSource,
    RasterSource,
    grid_from_transform,
    open_raster,
)

__all__ = [
    "ArrayRasterSource",
    "CoverageEngine",
    "CoverageTile",
    "RasterBlock",
    "RasterSource",
    "RasterioRasterSource",
    "ShapelyCoverageEngine",
    "align_block",
    "cell_centers",
    "cell_indices",
    "grid_from_transform",
    "open_raster",
    "read_aligned",
]
