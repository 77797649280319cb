"""
Shared fixtures for TruDepth tests.
"""

import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest
import numpy as np


@pytest.fixture
def ramp_depth():
    """100x100 depth map where depth[y][x] = x / 100 meters."""
    row = np.arange(100, dtype=np.float32) / 100.0
    return np.tile(row, (100, 1))


@pytest.fixture
def black_image():
    """100x100 black BGR frame."""
    return np.zeros((100, 100, 3), dtype=np.uint8)
