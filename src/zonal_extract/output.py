"""Write result tables as CSV or JSON."""

from __future__ import annotations

import csv
import io
import json
import math
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

OUTPUT_FORMATS = ("csv", "json")


def _clean(value: Any) -> Any:
    """Return ``value`` with NaN mapped to None and numpy scalars unwrapped."""
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def clean_records(records: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Return JSON/CSV-safe copies of ``records``."""
    return [{key: _clean(value) for key, value in record.items()} for record in records]


def render_records(
    records: Iterable[Mapping[str, Any]],
    fieldnames: Sequence[str],
    fmt: str,
) -> str:
    """Render records as CSV or JSON text."""
    rows = clean_records(records)
    if fmt == "json":
        return json.dumps(rows, indent=2)
    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(fieldnames), lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()
    raise ValueError(f"Unknown output format: {fmt}")


def write_records(
    records: Iterable[Mapping[str, Any]],
    fieldnames: Sequence[str],
    output: Path | None,
    *,
    fmt: str = "csv",
) -> str:
    """Write records to ``output`` (or return them for stdout) and return the text."""
    text = render_records(records, fieldnames, fmt)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    return text
