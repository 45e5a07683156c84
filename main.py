"""Development entrypoint for the Travia tick runner."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from travia.main import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main())
