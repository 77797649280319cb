"""
TruDepth - Frame Pipeline
Turns one (color frame, depth map) pair into the two display images:
the depth-annotated overlay and the live camera feed.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

import numpy as np

from core.depth_buffer import DepthBuffer
from core.error_handler import InvalidConfiguration
from core.grid_sampler import (CropRect, FULL_FRAME, ORIENTATIONS, SampleResult,
                               generate_grid, sample_depth)
from utils import FrameProcessor, PerformanceMonitor
from visualization.overlay_renderer import AnnotatedImage, OverlayStyle, render_overlay

OVERLAY_BASES = ('color', 'depth')


@dataclass
class FrameResult:
    """Display images for one frame. ``overlay`` is None when the frame had no depth."""
    overlay: Optional[AnnotatedImage]
    live_feed: Optional[np.ndarray]
    samples: List[SampleResult] = field(default_factory=list)

    @property
    def has_overlay(self) -> bool:
        return self.overlay is not None


class DepthOverlayPipeline:
    """
    Per-frame glue between a frame source and a display sink.

    The grid is fixed at construction; sample coordinates are recomputed from
    each frame's own size. Frames are independent: the only state carried
    between calls is the last overlay, which callers keep on screen when a
    frame arrives without depth data.
    """

    def __init__(self, config, style: Optional[OverlayStyle] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            config: ConfigManager (or anything with a dot-path ``get``)
            style: Overrides the style built from the ``overlay`` section
            logger: Logger to report through
        """
        self.logger = logger or logging.getLogger(__name__)

        self.points = generate_grid(config.get('grid.rows', 5),
                                    config.get('grid.cols', 5),
                                    config.get('grid.margin', None))
        self.orientation = config.get('pipeline.orientation', 'up')
        if self.orientation not in ORIENTATIONS:
            raise InvalidConfiguration(
                f"Unknown orientation '{self.orientation}', expected one of {ORIENTATIONS}")
        self.center_crop = bool(config.get('pipeline.center_crop', False))
        self.overlay_base = config.get('pipeline.overlay_base', 'color')
        if self.overlay_base not in OVERLAY_BASES:
            raise InvalidConfiguration(
                f"overlay_base must be one of {OVERLAY_BASES}, got '{self.overlay_base}'")
        self.max_display_depth = config.get('pipeline.max_display_depth', None)
        self.style = style or OverlayStyle.from_config(config)

        self.last_overlay: Optional[AnnotatedImage] = None
        self.frame_count = 0
        self.skipped_frames = 0
        self.performance = PerformanceMonitor()

        self.logger.info(
            f"Depth overlay pipeline: {len(self.points)} grid points, "
            f"orientation={self.orientation}, center_crop={self.center_crop}, "
            f"base={self.overlay_base}")

    def prepare(self, image: np.ndarray):
        """Rotate and crop a sensor image; returns (display image, crop rect)."""
        oriented = FrameProcessor.orient(image, self.orientation)
        if not self.center_crop:
            return oriented, FULL_FRAME
        h, w = oriented.shape[:2]
        rect = FrameProcessor.center_crop_rect(w, h)
        return FrameProcessor.crop(oriented, rect), rect

    def annotate(self, base_image: np.ndarray, depth: Union[DepthBuffer, np.ndarray],
                 crop: CropRect = FULL_FRAME):
        """Sample ``depth`` at the grid and draw it on an already prepared image."""
        samples = sample_depth(depth, self.points, self.orientation, crop)
        overlay = render_overlay(base_image, self.points, [s.depth for s in samples],
                                 self.style)
        return overlay, samples

    def process_frame(self, color: Optional[np.ndarray],
                      depth: Optional[Union[DepthBuffer, np.ndarray]]) -> FrameResult:
        """
        Process one frame.

        Args:
            color: Color frame in sensor orientation (BGR), or None
            depth: Depth map aligned with ``color``, or None when the sensor
                produced none for this frame

        Returns:
            FrameResult; ``overlay`` is None when depth was missing, in which
            case ``last_overlay`` still holds the previous good overlay
        """
        self.performance.start_timer('frame')
        self.frame_count += 1

        live_feed, live_crop = None, FULL_FRAME
        if color is not None:
            live_feed, live_crop = self.prepare(color)

        if depth is None:
            self.skipped_frames += 1
            self.logger.debug(f"Frame {self.frame_count}: no depth data, keeping last overlay")
            self.performance.log_frame_time(self.performance.stop_timer('frame'))
            return FrameResult(overlay=None, live_feed=live_feed)

        if not isinstance(depth, DepthBuffer):
            depth = DepthBuffer(depth)

        if self.overlay_base == 'color' and live_feed is not None:
            base, crop = live_feed, live_crop
        else:
            with depth.locked() as values:
                colored = FrameProcessor.colorize_depth(values, self.max_display_depth)
            base, crop = self.prepare(colored)

        overlay, samples = self.annotate(base, depth, crop)
        self.last_overlay = overlay

        elapsed = self.performance.stop_timer('frame')
        self.performance.log_frame_time(elapsed)
        self.logger.debug(f"Frame {self.frame_count}: {len(samples)} samples in {elapsed:.1f}ms")
        return FrameResult(overlay=overlay, live_feed=live_feed, samples=samples)

    def get_stats(self):
        """Frame counters plus timing statistics."""
        stats = {'frames': self.frame_count, 'skipped_frames': self.skipped_frames}
        stats.update(self.performance.get_stats())
        return stats
