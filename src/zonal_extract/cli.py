"""Command-line interface for zonal-extract."""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any

from zonal_extract import __version__
from zonal_extract.config import (
    DEFAULT_STATS,
    RunConfig,
    default_max_cells,
    load_run_config,
    resolve_default,
)
from zonal_extract.errors import ConfigurationError, RasterReadError
from zonal_extract.geometry import FeatureSet, load_features, reproject_geometry
from zonal_extract.logging_utils import FeatureLogger, LogOptions, configure_logging
from zonal_extract.output import OUTPUT_FORMATS, write_records
from zonal_extract.pipeline import AggregateOptions, ExtractOptions, aggregate, extract
from zonal_extract.raster.sources import RasterioRasterSource, RasterSource, open_raster
from zonal_extract.stats.render import STAT_NAMES

LOGGER = logging.getLogger("zonal_extract.cli")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the raster, geometry and output arguments shared by commands."""
    parser.add_argument("--raster", required=True, help="Value raster path.")
    parser.add_argument("--weights", help="Optional weighting raster path.")
    parser.add_argument(
        "--geometry",
        required=True,
        help="GeoJSON or shapefile with polygon features.",
    )
    parser.add_argument(
        "--geometry-crs",
        help="CRS of the geometry file (overrides any embedded CRS).",
    )
    parser.add_argument(
        "--layer-name",
        action="append",
        help="Name for each value layer (repeatable, in band order).",
    )
    parser.add_argument(
        "--weight-name",
        action="append",
        help="Name for each weight layer (repeatable, in band order).",
    )
    parser.add_argument(
        "--include-col",
        action="append",
        default=[],
        help="Feature property copied into every output row (repeatable).",
    )
    parser.add_argument(
        "--default-value",
        type=float,
        help="Value substituted for missing value cells (default: skip them).",
    )
    parser.add_argument(
        "--default-weight",
        type=float,
        help="Weight substituted for missing weight cells.",
    )
    parser.add_argument("--config", help="JSON run config file.")
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="csv",
        help="Output format.",
    )
    parser.add_argument(
        "--output",
        help="Output path (default: stdout).",
    )


def _add_stats_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the stats subcommand."""
    stats = subparsers.add_parser("stats", help="Summary statistics per feature and layer.")
    _add_common_arguments(stats)
    stats.add_argument(
        "--stat",
        action="append",
        help=f"Statistic to compute (repeatable): {', '.join(sorted(STAT_NAMES))}.",
    )
    stats.add_argument(
        "--quantile",
        action="append",
        type=float,
        help="Quantile in [0, 1] for the 'quantile' statistic (repeatable).",
    )
    stats.add_argument(
        "--max-cells",
        type=int,
        help="Maximum number of cells processed per tile.",
    )


def _add_extract_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the extract subcommand."""
    cells = subparsers.add_parser("extract", help="Per-cell values and coverage fractions.")
    _add_common_arguments(cells)
    cells.add_argument(
        "--include-xy",
        action="store_const",
        const=True,
        help="Add x/y cell-center columns.",
    )
    cells.add_argument(
        "--include-cell",
        action="store_const",
        const=True,
        help="Add the value raster cell index column.",
    )
    cells.add_argument(
        "--no-disaggregate-warning",
        dest="warn_on_disaggregate",
        action="store_const",
        const=False,
        help="Do not warn when values are disaggregated to the weight resolution.",
    )


def _add_version_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the version subcommand."""
    subparsers.add_parser("version", help="Print the current version.")


def _run_config_from_args(args: argparse.Namespace) -> RunConfig:
    """Return the run config file merged with explicit CLI flags."""
    base = load_run_config(Path(args.config)) if args.config else RunConfig()
    overrides = RunConfig(
        stats=tuple(args.stat) if getattr(args, "stat", None) else None,
        quantiles=tuple(args.quantile) if getattr(args, "quantile", None) else None,
        max_cells_in_memory=getattr(args, "max_cells", None),
        default_value=args.default_value,
        default_weight=args.default_weight,
        include_xy=getattr(args, "include_xy", None),
        include_cell=getattr(args, "include_cell", None),
        warn_on_disaggregate=getattr(args, "warn_on_disaggregate", None),
    )
    return base.merged(overrides)


def _feature_geometries(features: FeatureSet, raster: RasterSource) -> list[Any]:
    """Return feature geometries in the raster's CRS."""
    if raster.crs is None:
        return list(features.geometries)
    return [
        reproject_geometry(geometry, features.crs, raster.crs)
        for geometry in features.geometries
    ]


def _feature_columns(properties: dict[str, Any], names: list[str]) -> dict[str, Any]:
    missing = [name for name in names if name not in properties]
    if missing:
        raise ConfigurationError(f"Feature is missing propert(ies): {', '.join(missing)}")
    return {name: properties[name] for name in names}


def _row_names(values: RasterSource, weights: RasterSource | None) -> tuple[str, ...]:
    """Name of each aggregate output row."""
    if weights is not None and weights.nlayers > values.nlayers:
        return weights.names
    return values.names


def _run_stats(
    args: argparse.Namespace,
    config: RunConfig,
    features: FeatureSet,
    values: RasterSource,
    weights: RasterSource | None,
) -> tuple[list[dict[str, Any]], list[str]]:
    options = AggregateOptions(
        stats=config.stats or DEFAULT_STATS,
        quantiles=config.quantiles or (),
        max_cells_in_memory=(
            default_max_cells()
            if config.max_cells_in_memory is None
            else config.max_cells_in_memory
        ),
        default_value=resolve_default(config.default_value),
        default_weight=resolve_default(config.default_weight),
        warn_on_disaggregate=(
            True if config.warn_on_disaggregate is None else config.warn_on_disaggregate
        ),
    )
    row_names = _row_names(values, weights)
    records: list[dict[str, Any]] = []
    columns: list[str] = []
    for index, geometry in enumerate(_feature_geometries(features, values)):
        log = FeatureLogger(LOGGER, {"feature": index})
        extra = _feature_columns(features.properties[index], args.include_col)
        table = aggregate(values, geometry, weights, options=options)
        log.debug("Computed %s statistic column(s)", len(table.columns))
        columns = list(table.columns)
        for name, record in zip(row_names, table.as_records()):
            records.append({"feature": index, **extra, "layer": name, **record})
    return records, ["feature", *args.include_col, "layer", *columns]


def _run_extract(
    args: argparse.Namespace,
    config: RunConfig,
    features: FeatureSet,
    values: RasterSource,
    weights: RasterSource | None,
) -> tuple[list[dict[str, Any]], list[str]]:
    records: list[dict[str, Any]] = []
    columns: list[str] = []
    for index, geometry in enumerate(_feature_geometries(features, values)):
        log = FeatureLogger(LOGGER, {"feature": index})
        options = ExtractOptions(
            default_value=resolve_default(config.default_value),
            default_weight=resolve_default(config.default_weight),
            include_xy=bool(config.include_xy),
            include_cell=bool(config.include_cell),
            include_cols=_feature_columns(features.properties[index], args.include_col),
            warn_on_disaggregate=(
                True if config.warn_on_disaggregate is None else config.warn_on_disaggregate
            ),
        )
        table = extract(values, geometry, weights, options=options)
        log.debug("Extracted %s cell(s)", table.row_count)
        if not columns:
            columns = list(table.names)
        records.extend({"feature": index, **record} for record in table.as_records())
    return records, ["feature", *columns]


def _open_sources(
    stack: ExitStack,
    args: argparse.Namespace,
) -> tuple[RasterioRasterSource, RasterioRasterSource | None]:
    values = stack.enter_context(open_raster(Path(args.raster), names=args.layer_name))
    weights = None
    if args.weights:
        weights = stack.enter_context(open_raster(Path(args.weights), names=args.weight_name))
    return values, weights


def _run_command(args: argparse.Namespace) -> int:
    config = _run_config_from_args(args)
    features = load_features(Path(args.geometry), crs=args.geometry_crs)
    for warning in features.warnings:
        LOGGER.warning(warning)
    with ExitStack() as stack:
        values, weights = _open_sources(stack, args)
        if args.command == "stats":
            records, fieldnames = _run_stats(args, config, features, values, weights)
        else:
            records, fieldnames = _run_extract(args, config, features, values, weights)
    output = Path(args.output) if args.output else None
    text = write_records(records, fieldnames, output, fmt=args.format)
    if output is None:
        sys.stdout.write(text)
    else:
        LOGGER.info("Wrote %s row(s) to %s", len(records), output)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="zonal-extract",
        description="Zonal statistics from exact polygon coverage fractions",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_stats_parser(subparsers)
    _add_extract_parser(subparsers)
    _add_version_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    configure_logging(
        LogOptions(
            verbose=getattr(args, "verbose", 0) or 0,
            quiet=bool(getattr(args, "quiet", False)),
            log_file=Path(log_file_value) if log_file_value else None,
            json_console=bool(getattr(args, "log_json", False)),
        )
    )

    if args.command == "version":
        print(__version__)
        return 0
    if args.command in ("stats", "extract"):
        try:
            return _run_command(args)
        except (ConfigurationError, RasterReadError) as exc:
            LOGGER.error("%s", exc)
            return 1

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
