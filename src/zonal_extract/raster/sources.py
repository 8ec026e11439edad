"""Raster sources that serve blocks of layer values."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Protocol, Sequence

import numpy as np
import rasterio
from affine import Affine
from rasterio.errors import RasterioError
from rasterio.windows import Window

from zonal_extract.errors import ConfigurationError, RasterReadError
from zonal_extract.grid.models import Box, Grid
from zonal_extract.raster.models import RasterBlock

LOGGER = logging.getLogger("zonal_extract.raster")


class RasterSource(Protocol):
    """Protocol implemented by anything that can serve value blocks."""

    @property
    def grid(self) -> Grid:
        ...

    @property
    def nlayers(self) -> int:
        ...

    @property
    def names(self) -> tuple[str, ...]:
        ...

    @property
    def crs(self) -> str | None:
        ...

    def read_box(self, box: Box, layer: int) -> RasterBlock:
        ...


def default_layer_names(count: int) -> tuple[str, ...]:
    """Return ``band_1`` .. ``band_N`` names."""
    return tuple(f"band_{index + 1}" for index in range(count))


def _resolve_names(names: Iterable[str] | None, count: int) -> tuple[str, ...]:
    if names is None:
        return default_layer_names(count)
    resolved = tuple(str(name) for name in names)
    if len(resolved) != count:
        raise ConfigurationError(f"Expected {count} layer names, got {len(resolved)}.")
    return resolved


def _check_layer(layer: int, count: int) -> None:
    if layer < 0 or layer >= count:
        raise IndexError(f"Layer {layer} out of range for raster with {count} layer(s).")


def grid_from_transform(transform: Affine, height: int, width: int) -> Grid:
    """Build a grid from a north-up affine transform."""
    if transform.b != 0 or transform.d != 0 or transform.e >= 0:
        raise ConfigurationError("Only north-up rasters without rotation are supported.")
    return Grid(
        xmin=float(transform.c),
        ymax=float(transform.f),
        dx=float(transform.a),
        dy=float(-transform.e),
        rows=int(height),
        cols=int(width),
    )


class ArrayRasterSource:
    """Raster source over an in-memory ``(layers, rows, cols)`` array."""

    def __init__(
        self,
        data: np.ndarray,
        grid: Grid,
        *,
        names: Sequence[str] | None = None,
        nodata: float | None = None,
        crs: str | None = None,
    ) -> None:
        array = np.array(data, dtype=np.float64)
        if array.ndim == 2:
            array = array[np.newaxis, ...]
        if array.ndim != 3:
            raise ValueError("Raster data must be 2-D or 3-D.")
        if array.shape[1:] != grid.shape:
            raise ValueError(
                f"Raster data shape {array.shape[1:]} does not match grid shape {grid.shape}."
            )
        if nodata is not None and not np.isnan(nodata):
            array[array == nodata] = np.nan
        self._data = array
        self._grid = grid
        self._names = _resolve_names(names, array.shape[0])
        self._crs = crs

    @property
    def grid(self) -> Grid:
        return self._grid

    @property
    def nlayers(self) -> int:
        return self._data.shape[0]

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def crs(self) -> str | None:
        return self._crs

    def read_box(self, box: Box, layer: int) -> RasterBlock:
        _check_layer(layer, self.nlayers)
        cropped = self._grid.crop(box)
        if cropped.is_empty:
            return RasterBlock.empty()
        row0, col0 = cropped.offset_in(self._grid)
        values = self._data[layer, row0 : row0 + cropped.rows, col0 : col0 + cropped.cols]
        return RasterBlock(cropped, values)


class RasterioRasterSource:
    """Raster source backed by a rasterio dataset on disk."""

    def __init__(self, path: Path, *, names: Sequence[str] | None = None) -> None:
        self.path = Path(path)
        try:
            self._dataset = rasterio.open(self.path)
        except RasterioError as exc:
            raise RasterReadError(f"Failed to open raster {self.path}: {exc}") from exc
        try:
            self._grid = grid_from_transform(
                self._dataset.transform,
                self._dataset.height,
                self._dataset.width,
            )
            if names is None:
                descriptions = self._dataset.descriptions
                if descriptions and all(descriptions):
                    names = [str(value) for value in descriptions]
            self._names = _resolve_names(names, self._dataset.count)
        except Exception:
            self._dataset.close()
            raise
        LOGGER.debug(
            "Opened %s (%sx%s, %s layer(s))",
            self.path,
            self._grid.rows,
            self._grid.cols,
            self._dataset.count,
        )

    def __enter__(self) -> RasterioRasterSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._dataset.close()

    @property
    def grid(self) -> Grid:
        return self._grid

    @property
    def nlayers(self) -> int:
        return self._dataset.count

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def crs(self) -> str | None:
        return self._dataset.crs.to_string() if self._dataset.crs else None

    def read_box(self, box: Box, layer: int) -> RasterBlock:
        _check_layer(layer, self.nlayers)
        cropped = self._grid.crop(box)
        if cropped.is_empty:
            return RasterBlock.empty()
        row0, col0 = cropped.offset_in(self._grid)
        window = Window(col0, row0, cropped.cols, cropped.rows)
        try:
            data = self._dataset.read(layer + 1, window=window, masked=True)
        except RasterioError as exc:
            raise RasterReadError(
                f"Failed to read layer {layer} of {self.path}: {exc}"
            ) from exc
        values = np.ma.filled(data.astype(np.float64), np.nan)
        return RasterBlock(cropped, values)


def open_raster(path: Path, *, names: Sequence[str] | None = None) -> RasterioRasterSource:
    """Open a raster file as a :class:`RasterioRasterSource`."""
    return RasterioRasterSource(path, names=names)
