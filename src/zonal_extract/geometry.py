"""Geometry decoding, feature loading and reprojection."""

from __future__ import annotations

import json
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import shapely
from pyproj import CRS
from shapely.errors import GEOSException
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as transform_geometry

from zonal_extract.crs import crs_equal, transformer
from zonal_extract.errors import ConfigurationError

DEFAULT_GEOMETRY_CRS = "EPSG:4326"
POLYGONAL_TYPES = frozenset({"Polygon", "MultiPolygon"})


@dataclass(frozen=True)
class FeatureSet:
    """Polygon features loaded from a vector file."""

    path: Path
    geometries: tuple[BaseGeometry, ...]
    properties: tuple[dict[str, Any], ...]
    crs: str
    crs_source: str
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _check_polygonal(geometry: BaseGeometry) -> BaseGeometry:
    if geometry.is_empty:
        raise ConfigurationError("Geometry is empty.")
    if geometry.geom_type not in POLYGONAL_TYPES:
        raise ConfigurationError(
            f"Coverage fractions require a polygonal geometry, got {geometry.geom_type}."
        )
    return geometry


def _is_hex(text: str) -> bool:
    return bool(text) and all(char in string.hexdigits for char in text)


def _decode(value: bytes | bytearray | memoryview | str | Mapping[str, Any]) -> BaseGeometry:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return shapely.from_wkb(bytes(value))
    if isinstance(value, str):
        text = value.strip()
        return shapely.from_wkb(text) if _is_hex(text) else shapely.from_wkt(text)
    return shape(value)


def read_geometry(value: Any) -> BaseGeometry:
    """Decode WKB, hex WKB, WKT, GeoJSON-like mappings or shapely geometries."""
    if isinstance(value, BaseGeometry):
        geometry = value
    elif isinstance(value, (bytes, bytearray, memoryview, str, Mapping)):
        try:
            geometry = _decode(value)
        except (GEOSException, ValueError, TypeError, KeyError) as exc:
            raise ConfigurationError(f"Could not decode geometry: {exc}") from exc
    else:
        raise ConfigurationError(f"Unsupported geometry input: {type(value).__name__}")
    return _check_polygonal(geometry)


def _extract_geojson_features(
    data: dict[str, Any],
) -> list[tuple[dict[str, Any], dict[str, Any]]]:
    features: list[tuple[dict[str, Any], dict[str, Any]]] = []
    if data.get("type") == "FeatureCollection":
        for feature in data.get("features", []):
            geometry = feature.get("geometry")
            if geometry:
                features.append((geometry, dict(feature.get("properties") or {})))
    elif data.get("type") == "Feature":
        geometry = data.get("geometry")
        if geometry:
            features.append((geometry, dict(data.get("properties") or {})))
    elif data.get("type") in POLYGONAL_TYPES:
        features.append((data, {}))
    return features


def _extract_geojson_crs(data: dict[str, Any]) -> str | None:
    crs = data.get("crs")
    if isinstance(crs, dict):
        properties = crs.get("properties")
        if isinstance(properties, dict):
            name = properties.get("name")
            if isinstance(name, str):
                return name
    if isinstance(crs, str):
        return crs
    return None


def _read_geojson(
    path: Path,
) -> tuple[list[tuple[dict[str, Any], dict[str, Any]]], str | None]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ConfigurationError("Geometry file must be a GeoJSON object.")
    return _extract_geojson_features(data), _extract_geojson_crs(data)


def _read_shapefile(
    path: Path,
) -> tuple[list[tuple[dict[str, Any], dict[str, Any]]], str | None]:
    try:
        import fiona  # type: ignore[import-not-found]
    except ImportError as exc:
        raise ConfigurationError(
            "Shapefile input requires the optional 'fiona' dependency."
        ) from exc
    features: list[tuple[dict[str, Any], dict[str, Any]]] = []
    with fiona.open(path) as dataset:
        crs_value = dataset.crs_wkt or None
        if crs_value is None and dataset.crs:
            crs_value = CRS.from_user_input(dataset.crs).to_string()
        for feature in dataset:
            geometry = feature.get("geometry")
            if geometry:
                features.append((dict(geometry), dict(feature.get("properties") or {})))
    return features, crs_value


def _resolve_crs(
    embedded: str | None,
    explicit: str | None,
) -> tuple[str, str, tuple[str, ...]]:
    warnings: list[str] = []
    if explicit and embedded and not crs_equal(explicit, embedded):
        warnings.append(
            f"Geometry CRS mismatch: embedded {embedded} differs from --geometry-crs {explicit}."
        )
        return explicit, "explicit", tuple(warnings)
    if explicit:
        return explicit, "explicit", tuple(warnings)
    if embedded:
        return embedded, "embedded", tuple(warnings)
    warnings.append(f"Geometry CRS missing; assuming {DEFAULT_GEOMETRY_CRS}.")
    return DEFAULT_GEOMETRY_CRS, "default", tuple(warnings)


def load_features(path: Path, *, crs: str | None = None) -> FeatureSet:
    """Load polygon features and their CRS from GeoJSON or a shapefile."""
    suffix = path.suffix.lower()
    if suffix in {".json", ".geojson"}:
        raw, embedded = _read_geojson(path)
    elif suffix == ".shp":
        raw, embedded = _read_shapefile(path)
    else:
        raise ConfigurationError(f"Unsupported geometry format: {path.suffix}")

    if not raw:
        raise ConfigurationError(f"No polygon geometries found in {path}")

    resolved, source, warnings = _resolve_crs(embedded, crs)
    return FeatureSet(
        path=path,
        geometries=tuple(read_geometry(geometry) for geometry, _ in raw),
        properties=tuple(properties for _, properties in raw),
        crs=resolved,
        crs_source=source,
        warnings=warnings,
    )


def reproject_geometry(geometry: BaseGeometry, src_crs: str, dst_crs: str) -> BaseGeometry:
    """Reproject a geometry between CRSs."""
    if crs_equal(src_crs, dst_crs):
        return geometry
    tx = transformer(src_crs, dst_crs)
    return transform_geometry(tx.transform, geometry)
