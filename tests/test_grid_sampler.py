"""
Tests for grid generation, orientation mapping and depth sampling.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest
import numpy as np

from core.depth_buffer import DepthBuffer
from core.error_handler import InvalidConfiguration
from core.grid_sampler import (
    CropRect, GridPoint, SENTINEL_DEPTH, SampleResult,
    buffer_pixel, generate_grid, image_to_buffer, sample_depth
)


class TestGenerateGrid:
    """Tests for generate_grid."""

    @pytest.mark.parametrize("n", [1, 3, 5, 7, 8])
    def test_point_count_and_range(self, n):
        """N x N grid has N*N points inside the unit square."""
        points = generate_grid(n, n)
        assert len(points) == n * n
        for p in points:
            assert 0.0 <= p.x <= 1.0
            assert 0.0 <= p.y <= 1.0

    def test_deterministic(self):
        """Same arguments give the same sequence."""
        assert generate_grid(5, 5) == generate_grid(5, 5)
        assert generate_grid(4, 6, 0.1) == generate_grid(4, 6, 0.1)

    def test_segment_policy_positions(self):
        """Default margin uses interior boundaries of n + 1 segments."""
        points = generate_grid(3, 3)
        xs = sorted({p.x for p in points})
        assert xs == pytest.approx([0.25, 0.5, 0.75])

    def test_row_major_order(self):
        """Top row first, left to right."""
        points = generate_grid(2, 3)
        assert [p.x for p in points] == pytest.approx([0.25, 0.5, 0.75] * 2)
        assert [p.y for p in points] == pytest.approx([1 / 3] * 3 + [2 / 3] * 3)

    def test_rectangular_grid(self):
        """Rows and columns can differ."""
        points = generate_grid(2, 4)
        assert len(points) == 8
        assert len({p.y for p in points}) == 2
        assert len({p.x for p in points}) == 4

    def test_inset_policy(self):
        """Explicit margin spaces points from margin to 1 - margin."""
        points = generate_grid(1, 3, margin=0.1)
        assert [p.x for p in points] == pytest.approx([0.1, 0.5, 0.9])
        assert points[0].y == pytest.approx(0.5)

    def test_zero_margin_reaches_edges(self):
        """Margin 0 puts the outer points on the image border."""
        points = generate_grid(1, 5, margin=0.0)
        assert points[0].x == 0.0
        assert points[-1].x == 1.0

    def test_zero_dimensions_rejected(self):
        """0 x 0 grid is invalid."""
        with pytest.raises(InvalidConfiguration):
            generate_grid(0, 0)

    @pytest.mark.parametrize("rows,cols", [(-1, 3), (3, -2), (0, 5), (5, 0)])
    def test_non_positive_dimensions_rejected(self, rows, cols):
        """Negative or zero dimensions raise."""
        with pytest.raises(InvalidConfiguration):
            generate_grid(rows, cols)

    def test_non_integer_dimensions_rejected(self):
        """Float dimensions are not silently truncated."""
        with pytest.raises(InvalidConfiguration):
            generate_grid(2.5, 3)

    @pytest.mark.parametrize("margin", [-0.1, 0.5, 0.7])
    def test_bad_margin_rejected(self, margin):
        """Margin must be in [0, 0.5)."""
        with pytest.raises(InvalidConfiguration):
            generate_grid(3, 3, margin)


class TestGridPoint:
    """Tests for GridPoint validation."""

    def test_outside_unit_square_rejected(self):
        with pytest.raises(InvalidConfiguration):
            GridPoint(1.2, 0.5)
        with pytest.raises(InvalidConfiguration):
            GridPoint(0.5, -0.1)

    def test_edges_allowed(self):
        assert GridPoint(0.0, 1.0).y == 1.0


class TestImageToBuffer:
    """Tests for the display-to-buffer transform."""

    @pytest.mark.parametrize("orientation,expected", [
        ('up', (0.25, 0.75)),
        ('right', (0.75, 0.75)),
        ('down', (0.75, 0.25)),
        ('left', (0.25, 0.25)),
    ])
    def test_orientations(self, orientation, expected):
        bx, by = image_to_buffer(GridPoint(0.25, 0.75), orientation)
        assert (bx, by) == pytest.approx(expected)

    def test_crop_applied_before_rotation(self):
        """Crop window is undone first."""
        crop = CropRect(x=0.0, y=0.125, width=1.0, height=0.75)
        bx, by = image_to_buffer(GridPoint(0.5, 0.0), 'up', crop)
        assert (bx, by) == pytest.approx((0.5, 0.125))

    def test_unknown_orientation(self):
        with pytest.raises(InvalidConfiguration):
            image_to_buffer(GridPoint(0.5, 0.5), 'sideways')

    def test_buffer_pixel_floor(self):
        """Normalized coordinates floor to integer pixels."""
        assert buffer_pixel(GridPoint(0.5, 0.25), 256, 192) == (128, 48)
        assert buffer_pixel(GridPoint(1.0, 0.0), 10, 10) == (10, 0)

    @pytest.mark.parametrize("orientation,expected", [
        ('right', (0, 5)),
        ('down', (9, 5)),
        ('left', (9, 0)),
    ])
    def test_buffer_pixel_top_left_corner_in_bounds(self, orientation, expected):
        """The display's top-left corner is a real buffer pixel in every orientation."""
        assert buffer_pixel(GridPoint(0.0, 0.0), 10, 6, orientation) == expected

    def test_buffer_pixel_rotated_crop(self):
        """Crop is undone in the rotated frame before the index is rotated back."""
        crop = CropRect(x=0.0, y=0.2, width=1.0, height=0.6)
        # Display frame of a 10x6 buffer under 'right' is 6 wide, 10 tall
        assert buffer_pixel(GridPoint(0.0, 0.0), 10, 6, 'right', crop) == (2, 5)

    def test_buffer_pixel_unknown_orientation(self):
        with pytest.raises(InvalidConfiguration):
            buffer_pixel(GridPoint(0.5, 0.5), 10, 10, 'sideways')

    def test_invalid_crop(self):
        with pytest.raises(InvalidConfiguration):
            CropRect(x=0.5, y=0.0, width=0.6, height=1.0)
        with pytest.raises(InvalidConfiguration):
            CropRect(width=0.0)


class TestSampleDepth:
    """Tests for sample_depth."""

    def test_length_and_order_preserved(self, ramp_depth):
        points = generate_grid(5, 5)
        results = sample_depth(ramp_depth, points)

        assert len(results) == len(points)
        assert [r.point for r in results] == points
        assert all(isinstance(r, SampleResult) for r in results)

    def test_ramp_values(self, ramp_depth):
        """Values increase left to right in image space."""
        points = generate_grid(3, 3)
        values = [r.depth for r in sample_depth(ramp_depth, points)]

        for row in range(3):
            left, middle, right = values[row * 3:row * 3 + 3]
            assert left < middle < right
        assert values[:3] == pytest.approx([0.25, 0.5, 0.75])

    def test_out_of_bounds_is_sentinel(self, ramp_depth):
        """A point mapped past the edge reads -1 and nothing else changes."""
        points = [GridPoint(0.25, 0.5), GridPoint(1.0, 0.5), GridPoint(0.75, 0.5)]
        results = sample_depth(ramp_depth, points)

        assert results[1].depth == SENTINEL_DEPTH
        assert not results[1].valid
        assert results[0].depth == pytest.approx(0.25)
        assert results[2].depth == pytest.approx(0.75)

    def test_sentinel_for_bottom_edge(self, ramp_depth):
        results = sample_depth(ramp_depth, [GridPoint(0.5, 1.0)])
        assert results[0].depth == -1

    def test_buffer_not_mutated(self, ramp_depth):
        before = ramp_depth.copy()
        sample_depth(ramp_depth, generate_grid(7, 7))
        np.testing.assert_array_equal(ramp_depth, before)

    def test_independent_of_resolution(self):
        """Same grid on a larger buffer samples the same relative spots."""
        small = np.tile(np.linspace(0, 1, 50, endpoint=False, dtype=np.float32), (40, 1))
        large = np.tile(np.linspace(0, 1, 200, endpoint=False, dtype=np.float32), (160, 1))
        points = generate_grid(3, 3)

        small_values = [r.depth for r in sample_depth(small, points)]
        large_values = [r.depth for r in sample_depth(large, points)]
        assert small_values == pytest.approx(large_values, abs=0.02)

    @pytest.mark.parametrize("orientation,k", [('right', -1), ('down', 2), ('left', 1)])
    @pytest.mark.parametrize("shape", [(7, 10), (192, 256)])
    def test_orientation_matches_rotated_buffer(self, orientation, k, shape):
        """Sampling with an orientation equals sampling the rotated buffer upright."""
        buffer = np.arange(shape[0] * shape[1], dtype=np.float32).reshape(shape)
        rotated = np.rot90(buffer, k=k)
        points = generate_grid(5, 5)

        direct = [r.depth for r in sample_depth(buffer, points, orientation)]
        upright = [r.depth for r in sample_depth(rotated, points, 'up')]
        assert direct == upright

    @pytest.mark.parametrize("orientation", ['up', 'right', 'down', 'left'])
    def test_zero_margin_edges(self, orientation):
        """Only the right and bottom display edges fall outside the buffer."""
        buffer = np.ones((6, 10), dtype=np.float32)
        values = [r.depth for r in sample_depth(buffer, generate_grid(3, 3, 0.0), orientation)]
        assert values == [1, 1, -1, 1, 1, -1, -1, -1, -1]

    def test_rotated_crop_matches_cropped_rotated_buffer(self):
        """Orientation plus crop equals rotating, cropping, then sampling upright."""
        buffer = np.arange(192 * 256, dtype=np.float32).reshape(192, 256)
        displayed = np.rot90(buffer, k=-1)[32:224, :]
        crop = CropRect(x=0.0, y=0.125, width=1.0, height=0.75)
        points = generate_grid(7, 7)

        direct = [r.depth for r in sample_depth(buffer, points, 'right', crop)]
        upright = [r.depth for r in sample_depth(displayed, points, 'up')]
        assert direct == upright

    def test_lock_held_once_per_call(self, ramp_depth):
        calls = []
        buffer = DepthBuffer(ramp_depth,
                             lock=lambda: calls.append('lock'),
                             unlock=lambda: calls.append('unlock'))
        sample_depth(buffer, generate_grid(5, 5))
        assert calls == ['lock', 'unlock']

    def test_empty_point_list(self, ramp_depth):
        assert sample_depth(ramp_depth, []) == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
