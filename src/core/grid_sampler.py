"""
Grid Sampler
Generates resolution-independent sample grids and reads depth values at them.

Grid points live in normalized display space: (0, 0) is the top-left corner of
the displayed image and (1, 1) the bottom-right. The display image may be a
rotated and center-cropped version of the sensor frame, so every lookup goes
through ``image_to_buffer``.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from core.depth_buffer import DepthBuffer
from core.error_handler import InvalidConfiguration

logger = logging.getLogger(__name__)

# Reserved reading for samples that fall outside the buffer. Valid depths are >= 0.
SENTINEL_DEPTH = -1.0

ORIENTATIONS = ('up', 'right', 'down', 'left')


@dataclass(frozen=True)
class GridPoint:
    """Sample location in normalized image coordinates."""
    x: float
    y: float

    def __post_init__(self):
        for name, value in (('x', self.x), ('y', self.y)):
            if not (0.0 <= value <= 1.0):
                raise InvalidConfiguration(f"GridPoint.{name}={value} outside [0, 1]")


@dataclass(frozen=True)
class SampleResult:
    """Depth read at one grid point; ``depth`` is SENTINEL_DEPTH when out of bounds."""
    point: GridPoint
    depth: float

    @property
    def valid(self) -> bool:
        return self.depth != SENTINEL_DEPTH


@dataclass(frozen=True)
class CropRect:
    """Normalized window (x, y, width, height) of the oriented image that is displayed."""
    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidConfiguration(f"Crop size must be positive: {self}")
        if self.x < 0 or self.y < 0 or self.x + self.width > 1.0 + 1e-9 \
                or self.y + self.height > 1.0 + 1e-9:
            raise InvalidConfiguration(f"Crop window leaves the image: {self}")


FULL_FRAME = CropRect()


def _axis_positions(count: int, margin: Optional[float]) -> List[float]:
    if margin is None:
        # Split the axis into count + 1 segments, keep the interior boundaries
        return [k / (count + 1) for k in range(1, count + 1)]
    if count == 1:
        return [0.5]
    span = 1.0 - 2.0 * margin
    return [min(1.0, margin + span * k / (count - 1)) for k in range(count)]


def generate_grid(rows: int, cols: int, margin: Optional[float] = None) -> List[GridPoint]:
    """
    Build a rows x cols grid of sample points, row-major (top row first,
    left to right).

    Args:
        rows: Number of rows (> 0)
        cols: Number of columns (> 0)
        margin: None splits each axis into ``n + 1`` segments and uses the
            interior boundaries; a float in [0, 0.5) spaces points evenly from
            ``margin`` to ``1 - margin`` inclusive

    Returns:
        List of GridPoint, length rows * cols

    Raises:
        InvalidConfiguration: non-positive dimensions or margin outside [0, 0.5)
    """
    for name, value in (('rows', rows), ('cols', cols)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise InvalidConfiguration(f"Grid {name} must be an integer, got {value!r}")
        if value <= 0:
            raise InvalidConfiguration(f"Grid {name} must be positive, got {value}")
    if margin is not None and not (0.0 <= margin < 0.5):
        raise InvalidConfiguration(f"Grid margin must be in [0, 0.5), got {margin}")

    ys = _axis_positions(int(rows), margin)
    xs = _axis_positions(int(cols), margin)
    return [GridPoint(x, y) for y in ys for x in xs]


def _uncrop(point: GridPoint, crop: Optional[CropRect]) -> Tuple[float, float]:
    crop = crop or FULL_FRAME
    return crop.x + point.x * crop.width, crop.y + point.y * crop.height


def image_to_buffer(point: GridPoint, orientation: str = 'up',
                    crop: Optional[CropRect] = None) -> Tuple[float, float]:
    """
    Map a display-space point to normalized buffer coordinates.

    The display image is the sensor frame rotated by ``orientation`` and then
    cropped to ``crop``. The crop is undone first, then the rotation:

        up     (x, y)
        right  (y, 1 - x)      display rotated 90 degrees clockwise
        down   (1 - x, 1 - y)
        left   (1 - y, x)      display rotated 90 degrees counter-clockwise

    Raises:
        InvalidConfiguration: unknown orientation
    """
    x, y = _uncrop(point, crop)

    if orientation == 'up':
        return x, y
    if orientation == 'right':
        return y, 1.0 - x
    if orientation == 'down':
        return 1.0 - x, 1.0 - y
    if orientation == 'left':
        return 1.0 - y, x
    raise InvalidConfiguration(
        f"Unknown orientation '{orientation}', expected one of {ORIENTATIONS}")


def buffer_pixel(point: GridPoint, width: int, height: int, orientation: str = 'up',
                 crop: Optional[CropRect] = None) -> Tuple[int, int]:
    """
    Integer buffer pixel for a display-space point. May be out of bounds.

    The point is floored to a pixel of the rotated (uncropped) display frame
    first and that integer index is then rotated back, so the result is the
    buffer pixel shown under the point. Only the right and bottom display
    edges (coordinate 1.0) fall outside.
    """
    if orientation not in ORIENTATIONS:
        raise InvalidConfiguration(
            f"Unknown orientation '{orientation}', expected one of {ORIENTATIONS}")
    x, y = _uncrop(point, crop)

    if orientation in ('right', 'left'):
        display_w, display_h = height, width
    else:
        display_w, display_h = width, height
    dx = int(math.floor(x * display_w))
    dy = int(math.floor(y * display_h))

    if orientation == 'up':
        return dx, dy
    if orientation == 'right':
        return dy, height - 1 - dx
    if orientation == 'down':
        return width - 1 - dx, height - 1 - dy
    return width - 1 - dy, dx


def sample_depth(buffer: Union[DepthBuffer, np.ndarray], points: Sequence[GridPoint],
                 orientation: str = 'up',
                 crop: Optional[CropRect] = None) -> List[SampleResult]:
    """
    Read the depth under every grid point.

    Points that map outside the buffer get SENTINEL_DEPTH; the remaining
    points are still sampled. Output order and length match ``points``.

    Args:
        buffer: Depth buffer (or a 2-D array, wrapped on the fly)
        points: Grid points in display space
        orientation: Rotation from buffer to display
        crop: Displayed window of the rotated frame

    Returns:
        List of SampleResult
    """
    if not isinstance(buffer, DepthBuffer):
        buffer = DepthBuffer(buffer)

    width, height = buffer.width, buffer.height
    pixels = [buffer_pixel(p, width, height, orientation, crop) for p in points]

    results = []
    out_of_bounds = 0
    with buffer.locked() as depth:
        for point, (px, py) in zip(points, pixels):
            if buffer.contains(px, py):
                value = float(depth[py, px])
            else:
                value = SENTINEL_DEPTH
                out_of_bounds += 1
            results.append(SampleResult(point, value))

    if out_of_bounds:
        logger.debug(f"{out_of_bounds}/{len(results)} grid points outside "
                     f"{width}x{height} depth buffer")
    return results
