from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Sequence, Tuple

import numpy as np
import rasterio
from rasterio.transform import from_bounds
from shapely.geometry import box, mapping

from zonal_extract.grid.models import Box, Grid
from zonal_extract.raster.models import RasterBlock


def write_raster(
    path: Path,
    data: np.ndarray,
    *,
    bounds: Tuple[float, float, float, float],
    crs: str = "EPSG:4326",
    nodata: float | None = None,
    descriptions: Sequence[str] | None = None,
) -> None:
    """Write a 2-D or (bands, rows, cols) array as a GeoTIFF."""
    stack = data[np.newaxis, ...] if data.ndim == 2 else data
    count, height, width = stack.shape
    transform = from_bounds(*bounds, width=width, height=height)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=count,
        dtype=stack.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dataset:
        dataset.write(stack)
        if descriptions:
            for index, description in enumerate(descriptions, start=1):
                dataset.set_band_description(index, description)


def write_geojson(
    path: Path,
    boxes: Iterable[Tuple[float, float, float, float]],
    *,
    properties: Sequence[dict[str, Any]] | None = None,
    crs: str | None = None,
) -> None:
    """Write rectangular polygon features to a GeoJSON file."""
    features = []
    for index, bounds in enumerate(boxes):
        features.append(
            {
                "type": "Feature",
                "properties": properties[index] if properties else {},
                "geometry": mapping(box(*bounds)),
            }
        )
    payload: dict[str, Any] = {"type": "FeatureCollection", "features": features}
    if crs:
        payload["crs"] = {"type": "name", "properties": {"name": crs}}
    path.write_text(json.dumps(payload), encoding="utf-8")


class RecordingSource:
    """Wrap a raster source and record every block read."""

    def __init__(self, inner, *, fail_on_read: Exception | None = None) -> None:
        self.inner = inner
        self.reads: list[tuple[Box, int]] = []
        self.fail_on_read = fail_on_read

    @property
    def grid(self) -> Grid:
        return self.inner.grid

    @property
    def nlayers(self) -> int:
        return self.inner.nlayers

    @property
    def names(self) -> tuple[str, ...]:
        return self.inner.names

    @property
    def crs(self) -> str | None:
        return self.inner.crs

    def read_box(self, box: Box, layer: int) -> RasterBlock:
        self.reads.append((box, layer))
        if self.fail_on_read is not None:
            raise self.fail_on_read
        return self.inner.read_box(box, layer)
