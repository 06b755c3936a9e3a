"""
Root-level pytest conftest.

Adds the project root to sys.path so that core/, Handlers/ and utils/
are importable without a pip install step.
"""
import sys
from pathlib import Path

_root = Path(__file__).parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))
