"""
Depth Buffer
Read-only, bounds-checked view over one frame of float32 depth samples (meters).
"""

from contextlib import contextmanager
from typing import Callable, Optional

import numpy as np

from core.error_handler import InvalidArgument

PIXEL_FORMAT_DEPTH_FLOAT32 = 'depth_float32'
BYTES_PER_SAMPLE = 4


class DepthBuffer:
    """
    Immutable view over a 2-D grid of depth samples.

    The buffer is owned by whoever captured the frame. Holders must not keep a
    reference past the frame callback; the sampler only reads it inside
    ``locked()``.
    """

    def __init__(self, depth: np.ndarray,
                 lock: Optional[Callable[[], None]] = None,
                 unlock: Optional[Callable[[], None]] = None):
        """
        Args:
            depth: HxW array of distances in meters
            lock: Called before pixel memory is read
            unlock: Called after reading, even if reading failed
        """
        depth = np.asarray(depth)
        if depth.ndim != 2:
            raise InvalidArgument(f"Depth buffer must be 2-D, got shape {depth.shape}")
        if depth.dtype != np.float32:
            depth = depth.astype(np.float32)

        view = depth.view()
        view.flags.writeable = False
        self._depth = view
        self._lock = lock
        self._unlock = unlock

    @classmethod
    def from_bytes(cls, data, width: int, height: int, bytes_per_row: Optional[int] = None,
                   pixel_format: str = PIXEL_FORMAT_DEPTH_FLOAT32,
                   lock: Optional[Callable[[], None]] = None,
                   unlock: Optional[Callable[[], None]] = None) -> 'DepthBuffer':
        """
        Build a typed view over raw pixel memory.

        Rows may be padded: ``bytes_per_row`` is the stride between rows and
        must hold at least ``width`` float32 samples.

        Raises:
            InvalidArgument: format, stride or length does not match the layout
        """
        if pixel_format != PIXEL_FORMAT_DEPTH_FLOAT32:
            raise InvalidArgument(f"Unsupported depth pixel format: {pixel_format}")
        if width <= 0 or height <= 0:
            raise InvalidArgument(f"Invalid depth buffer size {width}x{height}")

        row_bytes = width * BYTES_PER_SAMPLE
        if bytes_per_row is None:
            bytes_per_row = row_bytes
        if bytes_per_row < row_bytes:
            raise InvalidArgument(
                f"Stride {bytes_per_row} is smaller than a row of {width} samples")
        if bytes_per_row % BYTES_PER_SAMPLE != 0:
            raise InvalidArgument(f"Stride {bytes_per_row} is not float32 aligned")

        raw = np.frombuffer(data, dtype=np.uint8)
        needed = bytes_per_row * (height - 1) + row_bytes
        if raw.size < needed:
            raise InvalidArgument(
                f"Depth data has {raw.size} bytes, layout needs {needed}")

        rows = np.lib.stride_tricks.as_strided(
            raw, shape=(height, row_bytes), strides=(bytes_per_row, 1),
            writeable=False)
        depth = rows.view(np.dtype('<f4')) if rows.flags.c_contiguous \
            else np.ascontiguousarray(rows).view(np.dtype('<f4'))
        return cls(depth.astype(np.float32, copy=False), lock=lock, unlock=unlock)

    @property
    def width(self) -> int:
        return self._depth.shape[1]

    @property
    def height(self) -> int:
        return self._depth.shape[0]

    @property
    def shape(self):
        return self._depth.shape

    def contains(self, px: int, py: int) -> bool:
        """True when (px, py) addresses a sample inside the buffer."""
        return 0 <= px < self.width and 0 <= py < self.height

    @contextmanager
    def locked(self):
        """
        Hold the pixel memory lock for the duration of the block.

        Yields the read-only sample array. The lock is released even when the
        block raises.
        """
        if self._lock is not None:
            self._lock()
        try:
            yield self._depth
        finally:
            if self._unlock is not None:
                self._unlock()

    def __repr__(self):
        return f"DepthBuffer({self.width}x{self.height})"
