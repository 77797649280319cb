"""
TruDepth - Depth Grid Viewer
Replays recorded (or synthetic) depth frames through the overlay pipeline and
shows the annotated depth view next to the live feed.
"""

import sys
import os
import argparse
import logging
from typing import Iterator, List, Optional, Tuple

import cv2
import numpy as np

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.error_handler import ErrorHandler, InvalidArgument
from frame_pipeline import DepthOverlayPipeline
from utils import ConfigManager, FrameProcessor, Logger, ensure_directories

DEPTH_EXTENSIONS = ('.npy', '.bin')

Frame = Tuple[Optional[np.ndarray], Optional[np.ndarray]]


def parse_size(text: str) -> Tuple[int, int]:
    """Parse 'WxH' into (width, height)."""
    try:
        width, height = (int(v) for v in text.lower().split('x'))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got '{text}'")
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"Size must be positive, got '{text}'")
    return width, height


def load_depth_file(path: str, size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Load one depth frame in meters.

    Args:
        path: ``.npy`` array, or raw little-endian float32 ``.bin`` (row-major)
        size: (width, height), required for ``.bin`` files

    Returns:
        HxW float32 array
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == '.npy':
        depth = np.load(path)
        if depth.ndim != 2:
            raise InvalidArgument(f"{path}: expected a 2-D depth array, got {depth.shape}")
        return depth.astype(np.float32, copy=False)
    if ext == '.bin':
        if size is None:
            raise InvalidArgument(f"{path}: raw depth needs --size WIDTHxHEIGHT")
        width, height = size
        depth = np.fromfile(path, dtype='<f4')
        if depth.size != width * height:
            raise InvalidArgument(
                f"{path}: {depth.size} samples do not fit {width}x{height}")
        return depth.reshape((height, width)).astype(np.float32, copy=False)
    raise InvalidArgument(f"Unsupported depth file: {path}")


def list_depth_files(path: str) -> List[str]:
    """A single depth file, or every depth file in a directory, sorted by name."""
    if os.path.isdir(path):
        return sorted(os.path.join(path, name) for name in os.listdir(path)
                      if name.lower().endswith(DEPTH_EXTENSIONS))
    return [path]


def synthetic_depth(width: int, height: int, phase: float = 0.0,
                    max_depth: float = 8.0) -> np.ndarray:
    """Horizontal ramp from 0 to ``max_depth`` meters, shifted by ``phase``."""
    ramp = (np.arange(width, dtype=np.float32) / width + phase) % 1.0
    return np.tile(ramp * max_depth, (height, 1)).astype(np.float32)


def synthetic_color(width: int, height: int) -> np.ndarray:
    """Gray checkerboard standing in for a camera frame."""
    yy, xx = np.mgrid[0:height, 0:width]
    board = (((xx // 32) + (yy // 32)) % 2) * 60 + 80
    return cv2.cvtColor(board.astype(np.uint8), cv2.COLOR_GRAY2BGR)


class TruDepthViewer:
    """Frame source and display sink around the overlay pipeline."""

    def __init__(self, config_path: str = "config/config.yaml", log_level: Optional[str] = None):
        """Initialize viewer."""
        self.config = ConfigManager(config_path)

        level_name = log_level or self.config.get('logging.level', 'INFO')
        level = getattr(logging, str(level_name).upper(), logging.INFO)
        log_file = self.config.get('logging.file', 'data/logs/trudepth.log')
        ensure_directories(os.path.dirname(log_file) if log_file else None)
        self.logger = Logger(log_file=log_file, log_level=level)
        logging.getLogger().setLevel(level)
        self.logger.info("TruDepth starting...")

        self.pipeline = DepthOverlayPipeline(self.config, logger=self.logger.logger)
        self.error_handler = ErrorHandler(self.logger.logger)

        self.overlay_window = self.config.get('display.overlay_window', 'TruDepth - depth')
        self.live_window = self.config.get('display.live_window', 'TruDepth - live')
        self.output_dir = self.config.get('display.output_dir', None)

    def recorded_frames(self, depth_path: str, size: Optional[Tuple[int, int]],
                        color_path: Optional[str]) -> Iterator[Frame]:
        """Yield (color, depth) pairs from files on disk."""
        color = None
        if color_path:
            color = cv2.imread(color_path, cv2.IMREAD_COLOR)
            if color is None:
                raise InvalidArgument(f"Could not read color image: {color_path}")

        files = list_depth_files(depth_path)
        if not files:
            self.logger.warning(f"No depth files found in {depth_path}")
        for path in files:
            try:
                depth = load_depth_file(path, size)
            except (InvalidArgument, OSError, ValueError) as e:
                self.logger.warning(f"Skipping unreadable depth frame {path}: {e}")
                depth = None
            yield color, depth

    def synthetic_frames(self, count: int, size: Tuple[int, int]) -> Iterator[Frame]:
        """Yield a moving depth ramp with a matching checkerboard frame."""
        width, height = size
        color = synthetic_color(width * 4, height * 4)
        for i in range(count):
            yield color, synthetic_depth(width, height, phase=i / max(count, 1))

    def show(self, frame_index: int, overlay: Optional[np.ndarray],
             live_feed: Optional[np.ndarray], display: bool) -> bool:
        """Push images to the display sink. Returns False when the user quits."""
        if self.output_dir:
            os.makedirs(self.output_dir, exist_ok=True)
            if overlay is not None:
                cv2.imwrite(os.path.join(self.output_dir, f"overlay_{frame_index:05d}.png"),
                            FrameProcessor.to_bgr(overlay))
            if live_feed is not None:
                cv2.imwrite(os.path.join(self.output_dir, f"live_{frame_index:05d}.png"),
                            live_feed)

        if not display:
            return True
        if overlay is not None:
            cv2.imshow(self.overlay_window, overlay)
        if live_feed is not None:
            cv2.imshow(self.live_window, live_feed)
        key = cv2.waitKey(1) & 0xFF
        return key not in (ord('q'), 27)

    def run(self, frames: Iterator[Frame], display: bool = True):
        """Process frames in order; keep the previous overlay when a frame has no depth."""
        try:
            for index, (color, depth) in enumerate(frames):
                result = self.error_handler.safe_execute(
                    self.pipeline.process_frame, color, depth)
                if result is None:
                    continue
                if not result.has_overlay:
                    self.logger.warning(f"Frame {index}: no depth, showing previous overlay")
                overlay = self.pipeline.last_overlay
                image = overlay.image if overlay is not None else None
                if not self.show(index, image, result.live_feed, display):
                    self.logger.info("Quit requested")
                    break
        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
        finally:
            if display:
                cv2.destroyAllWindows()
            self.logger.info(f"Final stats: {self.pipeline.get_stats()}")
            errors = self.error_handler.get_error_stats()
            if errors:
                self.logger.warning(f"Errors during run: {errors}")
            self.logger.info("Shutdown complete")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description='TruDepth - depth grid viewer')

    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--depth', type=str, default=None,
                        help='Depth frame (.npy or raw float32 .bin) or a directory of them')
    parser.add_argument('--size', type=parse_size, default=None,
                        help='WIDTHxHEIGHT of raw .bin depth frames (e.g. 256x192)')
    parser.add_argument('--color', type=str, default=None,
                        help='Color image shown under the overlay and as the live feed')
    parser.add_argument('--synthetic', type=int, default=0, metavar='N',
                        help='Replay N frames of a synthetic depth ramp')
    parser.add_argument('--output', type=str, default=None,
                        help='Write overlay and live feed PNGs to this directory')
    parser.add_argument('--no-display', action='store_true',
                        help='Run without windows (headless mode)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override logging.level from the config')

    args = parser.parse_args(argv)
    if not args.depth and args.synthetic <= 0:
        parser.error('one of --depth or --synthetic is required')

    viewer = TruDepthViewer(config_path=args.config, log_level=args.log_level)
    if args.output:
        viewer.output_dir = args.output

    if args.depth:
        frames = viewer.recorded_frames(args.depth, args.size, args.color)
    else:
        frames = viewer.synthetic_frames(args.synthetic, args.size or (256, 192))

    viewer.run(frames, display=not args.no_display)


if __name__ == "__main__":
    main()
