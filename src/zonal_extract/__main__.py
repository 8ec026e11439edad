"""Module entrypoint for `python -m zonal_extract`."""

from __future__ import annotations

from zonal_extract.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
