"""
TruDepth - Utility Functions
Provides helpers for logging, configuration, frame preparation and timing.
"""

import os
import time
import yaml
import logging
import colorlog
import numpy as np
import cv2
from typing import Dict, Optional

from core.error_handler import InvalidConfiguration
from core.grid_sampler import CropRect, ORIENTATIONS


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config/config.yaml"):
        self.config_path = config_path
        self.config = self.load_config()

    def load_config(self) -> Dict:
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
            if not isinstance(config, dict):
                logging.error(f"Config file is empty or not a mapping: {self.config_path}")
                return self._default_config()
            return config
        except FileNotFoundError:
            logging.error(f"Config file not found: {self.config_path}")
            return self._default_config()
        except yaml.YAMLError as e:
            logging.error(f"Error parsing config: {e}")
            return self._default_config()

    def _default_config(self) -> Dict:
        """Return default configuration."""
        return {
            'grid': {'rows': 5, 'cols': 5, 'margin': None},
            'pipeline': {'orientation': 'right', 'center_crop': True, 'overlay_base': 'color'},
            'overlay': {},
            'display': {
                'overlay_window': 'TruDepth - depth',
                'live_window': 'TruDepth - live',
                'output_dir': None,
            },
            'logging': {'level': 'INFO', 'file': 'data/logs/trudepth.log'},
        }

    def get(self, key_path: str, default=None):
        """Get configuration value using dot notation (e.g., 'grid.rows')."""
        keys = key_path.split('.')
        value = self.config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value


class Logger:
    """Custom logger with color output and file logging."""

    def __init__(self, name: str = "TruDepth", log_file: Optional[str] = "data/logs/trudepth.log",
                 log_level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(log_level)

        # Avoid stacking handlers when several Loggers share a name
        if self.logger.handlers:
            return

        # Console handler with colors
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_formatter = colorlog.ColoredFormatter(
            '%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S',
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            }
        )
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        # File handler
        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def critical(self, message: str):
        self.logger.critical(message)


class FrameProcessor:
    """Utilities for turning sensor frames into display frames."""

    _ROTATIONS = {
        'right': cv2.ROTATE_90_CLOCKWISE,
        'down': cv2.ROTATE_180,
        'left': cv2.ROTATE_90_COUNTERCLOCKWISE,
    }

    @staticmethod
    def orient(image: np.ndarray, orientation: str) -> np.ndarray:
        """Rotate a sensor image into display orientation."""
        if orientation not in ORIENTATIONS:
            raise InvalidConfiguration(
                f"Unknown orientation '{orientation}', expected one of {ORIENTATIONS}")
        if orientation == 'up':
            return image
        return cv2.rotate(image, FrameProcessor._ROTATIONS[orientation])

    @staticmethod
    def center_crop_rect(width: int, height: int) -> CropRect:
        """
        Largest centered square of a width x height image, normalized.

        A 4:3 frame becomes 1:1 by trimming the longer side equally on both ends.
        """
        if width > height:
            side = height / width
            return CropRect(x=(1.0 - side) / 2, y=0.0, width=side, height=1.0)
        side = width / height
        return CropRect(x=0.0, y=(1.0 - side) / 2, width=1.0, height=side)

    @staticmethod
    def crop(image: np.ndarray, rect: CropRect) -> np.ndarray:
        """Cut a normalized window out of an image."""
        h, w = image.shape[:2]
        x0 = int(round(rect.x * w))
        y0 = int(round(rect.y * h))
        x1 = int(round((rect.x + rect.width) * w))
        y1 = int(round((rect.y + rect.height) * h))
        return image[y0:y1, x0:x1]

    @staticmethod
    def colorize_depth(depth: np.ndarray, max_depth: Optional[float] = None) -> np.ndarray:
        """
        Colored depth map for display (near = warm). Invalid pixels are black.

        Args:
            depth: Depth map in meters
            max_depth: Distance mapped to the far end of the colormap

        Returns:
            BGR uint8 image
        """
        depth = np.asarray(depth, dtype=np.float32)
        valid = np.isfinite(depth) & (depth > 0)
        if not np.any(valid):
            return np.zeros(depth.shape + (3,), dtype=np.uint8)

        far = max_depth if max_depth else float(np.max(depth[valid]))
        near = float(np.min(depth[valid]))
        if far > near:
            normalized = np.clip((depth - near) / (far - near), 0, 1)
        else:
            normalized = np.zeros_like(depth)
        normalized = np.where(valid, normalized, 0)

        colored = cv2.applyColorMap(((1.0 - normalized) * 255).astype(np.uint8),
                                    cv2.COLORMAP_INFERNO)
        colored[~valid] = 0
        return colored

    @staticmethod
    def to_bgr(image: np.ndarray) -> np.ndarray:
        """Make a 3-channel uint8 image for display."""
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        return image


class PerformanceMonitor:
    """Monitor system performance and latency."""

    def __init__(self):
        self.timings = {}
        self.frame_times = []

    def start_timer(self, name: str):
        """Start a named timer."""
        self.timings[name] = time.perf_counter()

    def stop_timer(self, name: str) -> float:
        """Stop a named timer and return elapsed time in ms."""
        if name in self.timings:
            elapsed = (time.perf_counter() - self.timings.pop(name)) * 1000
            return elapsed
        return 0.0

    def log_frame_time(self, frame_time: float):
        """Log frame processing time."""
        self.frame_times.append(frame_time)
        if len(self.frame_times) > 100:
            self.frame_times.pop(0)

    def get_avg_fps(self) -> float:
        """Get average FPS over recent frames."""
        if not self.frame_times:
            return 0.0
        avg_time = np.mean(self.frame_times)
        return 1000.0 / avg_time if avg_time > 0 else 0.0

    def get_stats(self) -> Dict[str, float]:
        """Get performance statistics."""
        if not self.frame_times:
            return {}
        return {
            'avg_frame_time_ms': float(np.mean(self.frame_times)),
            'min_frame_time_ms': float(np.min(self.frame_times)),
            'max_frame_time_ms': float(np.max(self.frame_times)),
            'fps': self.get_avg_fps()
        }


def ensure_directories(*directories: str):
    """Ensure the given directories (default: data/logs) exist."""
    for directory in directories or ('data/logs',):
        if directory:
            os.makedirs(directory, exist_ok=True)
