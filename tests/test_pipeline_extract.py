from __future__ import annotations

import numpy as np
import pytest
from shapely.geometry import LineString, Point, Polygon, box

from zonal_extract.errors import ConfigurationError
from zonal_extract.grid.models import Grid
from zonal_extract.grid.reconcile import DISAGGREGATION_WARNING
from zonal_extract.pipeline import ExtractOptions, extract
from zonal_extract.raster.sources import ArrayRasterSource

UNIT = Grid(xmin=0.0, ymax=4.0, dx=1.0, dy=1.0, rows=4, cols=4)
COARSE = Grid(xmin=0.0, ymax=4.0, dx=2.0, dy=2.0, rows=2, cols=2)
VALUES = np.arange(16, dtype=np.float64).reshape(4, 4)


def test_single_cell() -> None:
    table = extract(ArrayRasterSource(VALUES, UNIT), box(1.2, 1.2, 1.8, 1.8))
    assert table.names == ("band_1", "coverage_fraction")
    assert table.row_count == 1
    assert table.columns["band_1"].tolist() == [9.0]
    assert table.columns["coverage_fraction"] == pytest.approx([0.36])


def test_full_extent_with_xy_and_cell() -> None:
    table = extract(
        ArrayRasterSource(VALUES, UNIT),
        box(0.0, 0.0, 4.0, 4.0),
        options=ExtractOptions(include_xy=True, include_cell=True),
    )
    assert table.names == ("band_1", "x", "y", "cell", "coverage_fraction")
    assert table.row_count == 16
    assert table.columns["cell"].tolist() == list(range(16))
    assert table.columns["band_1"].tolist() == VALUES.ravel().tolist()
    assert table.columns["x"][:4].tolist() == [0.5, 1.5, 2.5, 3.5]
    assert table.columns["y"][::4].tolist() == [3.5, 2.5, 1.5, 0.5]


def test_uncovered_cells_are_dropped() -> None:
    table = extract(ArrayRasterSource(VALUES, UNIT), box(0.5, 0.5, 2.0, 1.0))
    assert table.columns["band_1"].tolist() == [12.0, 13.0]
    assert table.columns["coverage_fraction"] == pytest.approx([0.25, 0.5])


def test_weight_column_name_collision() -> None:
    table = extract(
        ArrayRasterSource(VALUES, UNIT, names=["pop"]),
        box(0.0, 0.0, 1.0, 1.0),
        ArrayRasterSource(np.ones((4, 4)), UNIT, names=["pop"]),
    )
    assert table.names == ("pop", "pop.1", "coverage_fraction")
    assert table.columns["pop"].tolist() == [12.0]
    assert table.columns["pop.1"].tolist() == [1.0]


def test_explicit_layer_names() -> None:
    table = extract(
        ArrayRasterSource(np.stack([VALUES, VALUES * 10]), UNIT),
        box(0.0, 0.0, 1.0, 1.0),
        options=ExtractOptions(value_names=("low", "high")),
    )
    assert table.names == ("low", "high", "coverage_fraction")
    assert table.columns["high"].tolist() == [120.0]

    with pytest.raises(ConfigurationError, match="layer name"):
        extract(
            ArrayRasterSource(VALUES, UNIT),
            box(0.0, 0.0, 1.0, 1.0),
            options=ExtractOptions(value_names=("a", "b")),
        )


def test_coarse_values_resampled_to_weights() -> None:
    table = extract(
        ArrayRasterSource(np.array([[1.0, 2.0], [3.0, 4.0]]), COARSE, names=["value"]),
        box(0.0, 0.0, 2.0, 2.0),
        ArrayRasterSource(VALUES, UNIT, names=["weight"]),
        options=ExtractOptions(include_xy=True, include_cell=True),
    )
    assert table.columns["value"].tolist() == [3.0, 3.0, 3.0, 3.0]
    assert table.columns["weight"].tolist() == [8.0, 9.0, 12.0, 13.0]
    assert table.columns["x"].tolist() == [0.5, 1.5, 0.5, 1.5]
    assert table.columns["y"].tolist() == [1.5, 1.5, 0.5, 0.5]
    assert table.columns["cell"].tolist() == [2, 2, 2, 2]
    assert table.warnings == (DISAGGREGATION_WARNING,)


def test_disaggregation_warning_can_be_disabled() -> None:
    table = extract(
        ArrayRasterSource(np.array([[1.0, 2.0], [3.0, 4.0]]), COARSE),
        box(0.0, 0.0, 2.0, 2.0),
        ArrayRasterSource(VALUES, UNIT),
        options=ExtractOptions(warn_on_disaggregate=False),
    )
    assert table.warnings == ()


def test_coarse_weights_use_value_coordinates() -> None:
    table = extract(
        ArrayRasterSource(VALUES, UNIT),
        box(2.0, 2.0, 3.0, 3.0),
        ArrayRasterSource(np.array([[1.0, 2.0], [3.0, 4.0]]), COARSE, names=["w"]),
        options=ExtractOptions(include_xy=True),
    )
    assert table.columns["w"].tolist() == [2.0]
    assert table.columns["x"].tolist() == [2.5]
    assert table.columns["y"].tolist() == [2.5]
    assert table.warnings == ()


def test_missing_values_use_default() -> None:
    data = VALUES.copy()
    data[3, 0] = np.nan
    geometry = box(0.0, 0.0, 1.0, 1.0)

    missing = extract(ArrayRasterSource(data, UNIT), geometry)
    assert np.isnan(missing.columns["band_1"]).all()

    filled = extract(ArrayRasterSource(data, UNIT), geometry, options=ExtractOptions(default_value=-1.0))
    assert filled.columns["band_1"].tolist() == [-1.0]


def test_include_cols_lead_each_record() -> None:
    table = extract(
        ArrayRasterSource(VALUES, UNIT),
        box(0.0, 0.0, 2.0, 1.0),
        options=ExtractOptions(include_cols={"zone": "north", "id": 7}),
    )
    records = table.as_records()
    assert table.names[:2] == ("zone", "id")
    assert records == [
        {"zone": "north", "id": 7, "band_1": 12.0, "coverage_fraction": 1.0},
        {"zone": "north", "id": 7, "band_1": 13.0, "coverage_fraction": 1.0},
    ]


def test_geometry_outside_raster() -> None:
    table = extract(
        ArrayRasterSource(VALUES, UNIT),
        box(10.0, 10.0, 11.0, 11.0),
        options=ExtractOptions(include_xy=True, include_cell=True),
    )
    assert table.row_count == 0
    assert table.as_records() == []


@pytest.mark.parametrize(
    "geometry",
    [Point(1.5, 1.5), LineString([(0.5, 0.5), (3.5, 3.5)]), Polygon()],
)
def test_non_polygonal_geometry_is_rejected(geometry) -> None:
    with pytest.raises(ConfigurationError):
        extract(ArrayRasterSource(VALUES, UNIT), geometry)
