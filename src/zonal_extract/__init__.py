"""Zonal statistics and per-cell extraction over polygon coverage fractions."""

from zonal_extract.errors import ConfigurationError, RasterReadError
from zonal_extract.pipeline import (
    AggregateOptions,
    CellTable,
    ExtractOptions,
    StatTable,
    aggregate,
    extract,
)

__version__ = "0.1.0"

__all__ = [
    "AggregateOptions",
    "CellTable",
    "ConfigurationError",
    "ExtractOptions",
    "RasterReadError",
    "StatTable",
    "__version__",
    "aggregate",
    "extract",
]
