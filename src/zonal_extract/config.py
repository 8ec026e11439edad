"""Run configuration loading and normalization helpers."""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import jsonschema

from zonal_extract.contracts import SCHEMA_VERSION, validate_run_config
from zonal_extract.errors import ConfigurationError

ENV_MAX_CELLS = "ZONAL_EXTRACT_MAX_CELLS"
DEFAULT_MAX_CELLS = 30_000_000
DEFAULT_STATS = ("mean",)


def default_max_cells() -> int:
    """Return the tile size limit from the environment, if set."""
    raw = os.environ.get(ENV_MAX_CELLS)
    if not raw:
        return DEFAULT_MAX_CELLS
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_MAX_CELLS} must be an integer, got {raw!r}.") from exc


@dataclass(frozen=True)
class RunConfig:
    """Normalized settings shared by the stats and extract commands."""

    stats: tuple[str, ...] | None = None
    quantiles: tuple[float, ...] | None = None
    max_cells_in_memory: int | None = None
    default_value: float | None = None
    default_weight: float | None = None
    include_xy: bool | None = None
    include_cell: bool | None = None
    warn_on_disaggregate: bool | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if value is None:
                continue
            payload[key] = list(value) if isinstance(value, tuple) else value
        return payload

    def merged(self, overrides: RunConfig) -> RunConfig:
        """Return a config where non-None ``overrides`` fields win."""
        values = dict(self.__dict__)
        values.update({key: value for key, value in overrides.__dict__.items() if value is not None})
        return RunConfig(**values)


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


def normalize_run_config(payload: Mapping[str, Any]) -> RunConfig:
    """Normalize a raw run config payload."""
    stats = payload.get("stats")
    quantiles = payload.get("quantiles")
    max_cells = payload.get("max_cells_in_memory")
    return RunConfig(
        stats=tuple(str(stat) for stat in stats) if stats is not None else None,
        quantiles=tuple(float(q) for q in quantiles) if quantiles is not None else None,
        max_cells_in_memory=int(max_cells) if max_cells is not None else None,
        # JSON has no NaN; a null default keeps missing cells missing.
        default_value=_optional_float(payload.get("default_value")),
        default_weight=_optional_float(payload.get("default_weight")),
        include_xy=payload.get("include_xy"),
        include_cell=payload.get("include_cell"),
        warn_on_disaggregate=payload.get("warn_on_disaggregate"),
    )


def load_run_config(path: Path) -> RunConfig:
    """Load and validate a run config file from disk."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read run config {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Run config must be a JSON object.")
    try:
        validate_run_config(payload)
    except jsonschema.ValidationError as exc:
        raise ConfigurationError(f"Invalid run config {path}: {exc.message}") from exc
    version = payload.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise ConfigurationError(
            f"Unsupported run config schema_version {version!r} (expected {SCHEMA_VERSION!r})."
        )
    return normalize_run_config(payload)


def resolve_default(value: float | None) -> float:
    """Return NaN for an unset default value."""
    return math.nan if value is None else float(value)
