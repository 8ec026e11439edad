"""Exception types raised by zonal-extract."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Caller supplied settings that can never produce a valid result."""


class RasterReadError(RuntimeError):
    """A raster source failed while reading a block of cells."""
