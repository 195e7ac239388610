"""Root conftest.py — ensures ``triage`` is importable regardless of install mode.

When pytest discovers this file in the project root it automatically inserts
the directory containing it into ``sys.path``.  This makes ``from triage.xxx``
imports work in CI and bare ``pytest`` invocations without requiring an
editable install.
"""

import sys
from pathlib import Path

_root = str(Path(__file__).resolve().parent)
if _root not in sys.path:
    sys.path.insert(0, _root)
