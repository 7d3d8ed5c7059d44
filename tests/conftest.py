import sys
from pathlib import Path

import pytest

# Ensure the project root is on sys.path so `stepmatrix` and `backend` are importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stepmatrix.symbolic import SymbolicExpression


@pytest.fixture
def parse():
    return SymbolicExpression.parse
