"""Shared pytest setup.

Puts ``src/`` on ``sys.path`` so the suite can import ``travia`` straight
from a checkout, before the package has been installed.
"""

import sys
from pathlib import Path

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))
