from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
for entry in (SRC_ROOT, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

import pytest  # noqa: E402

from zonal_extract.config import ENV_MAX_CELLS  # noqa: E402
from zonal_extract.grid.models import Grid  # noqa: E402
from zonal_extract.logging_utils import HumanFormatter, JsonFormatter  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch) -> None:
    """Prevent a local tile-size override from bleeding into tests."""
    monkeypatch.delenv(ENV_MAX_CELLS, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by configure_logging."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, (HumanFormatter, JsonFormatter)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def unit_grid() -> Grid:
    """A 4x4 grid of unit cells spanning (0, 0)-(4, 4)."""
    return Grid(xmin=0.0, ymax=4.0, dx=1.0, dy=1.0, rows=4, cols=4)
