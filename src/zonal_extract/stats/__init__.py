"""Layer pairing, streaming accumulation and statistic rendering."""

from zonal_extract.stats.accumulator import RasterStats
from zonal_extract.stats.layers import LayerPairing, LayerPlan, resolve_layers
from zonal_extract.stats.render import (
    STAT_NAMES,
    StatRequest,
    quantile_column,
    render_stats,
    validate_request,
)

__all__ = [
    "LayerPairing",
    "LayerPlan",
    "RasterStats",
    "STAT_NAMES",
    "StatRequest",
    "quantile_column",
    "render_stats",
    "resolve_layers",
    "validate_request",
]
