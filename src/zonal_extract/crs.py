"""CRS normalization and transformation helpers."""

from __future__ import annotations

from pyproj import CRS, Transformer


def normalize_crs(value: str | CRS) -> CRS:
    """Normalize CRS input into a pyproj CRS object."""
    return CRS.from_user_input(value)


def crs_equal(left: str | CRS, right: str | CRS) -> bool:
    """Return True when two CRS inputs describe the same system."""
    return normalize_crs(left) == normalize_crs(right)


def transformer(src: str | CRS, dst: str | CRS) -> Transformer:
    """Return a transformer that respects lon/lat axis order."""
    return Transformer.from_crs(normalize_crs(src), normalize_crs(dst), always_xy=True)
