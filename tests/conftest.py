# tests/conftest.py
from __future__ import annotations

import numpy as np
import pytest

from core import ROWS, empty_grid


@pytest.fixture
def from_heights():
    """Column heights -> solid stacks with no holes."""
    def build(heights) -> np.ndarray:
        grid = empty_grid()
        for col, h in enumerate(heights):
            if h:
                grid[ROWS - h:, col] = 1
        return grid

    return build
