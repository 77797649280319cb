"""
Depth Overlay Renderer
Draws a marker and a distance label at every grid point, color-coded by a
near/far threshold.
"""

import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from core.error_handler import InvalidArgument, InvalidConfiguration
from core.grid_sampler import GridPoint
from visualization.drawing_surface import DrawingSurface, OpenCVSurface

logger = logging.getLogger(__name__)

GREEN = (0, 255, 0, 255)
RED = (255, 0, 0, 255)


def _check_real(name: str, value):
    if not isinstance(value, numbers.Real) or isinstance(value, bool):
        raise InvalidConfiguration(f"{name} must be a number, got {value!r}")


def _check_rgba(name: str, value) -> Tuple[int, int, int, int]:
    try:
        rgba = tuple(value)
    except TypeError:
        raise InvalidConfiguration(f"{name} must be an RGBA tuple, got {value!r}")
    if len(rgba) != 4 or not all(
            isinstance(c, (int, np.integer)) and not isinstance(c, bool) and 0 <= c <= 255
            for c in rgba):
        raise InvalidConfiguration(f"{name} must be 4 integers in 0..255, got {value!r}")
    return tuple(int(c) for c in rgba)


@dataclass
class OverlayStyle:
    """
    Rendering options for the depth overlay.

    ``near_color`` and ``far_color`` fall back to ``marker_fill_color`` when
    left unset. Font size is in points; one point is ``display_scale`` pixels.
    """
    marker_radius: float = 3.0
    marker_fill_color: Tuple[int, int, int, int] = GREEN
    marker_stroke_color: Optional[Tuple[int, int, int, int]] = None
    stroke_thickness: int = 1
    font_size: float = 7.5
    text_color: Tuple[int, int, int, int] = GREEN
    near_color: Optional[Tuple[int, int, int, int]] = GREEN
    far_color: Optional[Tuple[int, int, int, int]] = RED
    near_threshold_meters: float = 5.0
    text_offset: Tuple[float, float] = (-10.0, -15.0)
    unit_label: str = 'm'
    label_far_points: bool = True
    display_scale: float = 1.0

    def __post_init__(self):
        _check_real('marker_radius', self.marker_radius)
        _check_real('font_size', self.font_size)
        _check_real('display_scale', self.display_scale)
        _check_real('near_threshold_meters', self.near_threshold_meters)
        if not isinstance(self.stroke_thickness, numbers.Integral) \
                or isinstance(self.stroke_thickness, bool):
            raise InvalidConfiguration(
                f"stroke_thickness must be an integer, got {self.stroke_thickness!r}")

        if self.marker_radius < 0:
            raise InvalidConfiguration(f"marker_radius must be >= 0, got {self.marker_radius}")
        if self.font_size <= 0:
            raise InvalidConfiguration(f"font_size must be > 0, got {self.font_size}")
        if self.display_scale <= 0:
            raise InvalidConfiguration(f"display_scale must be > 0, got {self.display_scale}")
        if self.stroke_thickness < 0:
            raise InvalidConfiguration(
                f"stroke_thickness must be >= 0, got {self.stroke_thickness}")
        if math.isnan(self.near_threshold_meters):
            raise InvalidConfiguration("near_threshold_meters must be a number")
        if not isinstance(self.unit_label, str):
            raise InvalidConfiguration(f"unit_label must be a string, got {self.unit_label!r}")
        if not isinstance(self.label_far_points, bool):
            raise InvalidConfiguration(
                f"label_far_points must be true or false, got {self.label_far_points!r}")

        self.marker_fill_color = _check_rgba('marker_fill_color', self.marker_fill_color)
        self.text_color = _check_rgba('text_color', self.text_color)
        if self.marker_stroke_color is not None:
            self.marker_stroke_color = _check_rgba('marker_stroke_color',
                                                   self.marker_stroke_color)
        self.near_color = _check_rgba(
            'near_color', self.marker_fill_color if self.near_color is None else self.near_color)
        self.far_color = _check_rgba(
            'far_color', self.marker_fill_color if self.far_color is None else self.far_color)

        try:
            dx, dy = self.text_offset
            self.text_offset = (float(dx), float(dy))
        except (TypeError, ValueError):
            raise InvalidConfiguration(f"text_offset must be (dx, dy), got {self.text_offset!r}")

    @classmethod
    def from_config(cls, config) -> 'OverlayStyle':
        """Build a style from the ``overlay`` section of a ConfigManager."""
        section = config.get('overlay', {}) or {}
        known = cls.__dataclass_fields__
        unknown = set(section) - set(known)
        if unknown:
            raise InvalidConfiguration(f"Unknown overlay options: {sorted(unknown)}")

        # YAML lists are accepted for colors and offsets; __post_init__ converts them
        return cls(**section)


@dataclass(frozen=True)
class RenderedMarker:
    """What was drawn for one grid point."""
    center: Tuple[float, float]
    value: float
    color: Tuple[int, int, int, int]
    label: Optional[str]


@dataclass
class AnnotatedImage:
    """Overlay output for one frame."""
    image: np.ndarray
    markers: List[RenderedMarker] = field(default_factory=list)


def is_near(value: float, threshold: float) -> bool:
    """Near means a physical reading at or below the threshold. Sentinel and NaN are far."""
    return 0.0 <= value <= threshold


def marker_color(value: float, style: OverlayStyle) -> Tuple[int, int, int, int]:
    """Marker color for a depth value."""
    return style.near_color if is_near(value, style.near_threshold_meters) else style.far_color


def format_depth(value: float, unit_label: str = 'm') -> str:
    """Two-decimal distance label, e.g. '1.25 m'."""
    text = f"{value:.2f}"
    return f"{text} {unit_label}" if unit_label else text


def render_overlay(image: np.ndarray, points: Sequence[GridPoint], values: Sequence[float],
                   style: Optional[OverlayStyle] = None,
                   surface_factory: Callable[[np.ndarray], DrawingSurface] = OpenCVSurface
                   ) -> AnnotatedImage:
    """
    Draw depth markers and labels on a copy of ``image``.

    Points are scaled by the image's own width and height, so the image does
    not need to match the depth buffer's resolution.

    Args:
        image: Base image (HxW, HxWx3 BGR or HxWx4 BGRA, uint8)
        points: Grid points in normalized image space
        values: Depth per point, same length as ``points``
        style: Rendering options
        surface_factory: Builds the drawing surface from the base image

    Returns:
        AnnotatedImage with the new image and per-point marker records

    Raises:
        InvalidArgument: length mismatch or unsupported image shape
    """
    if len(points) != len(values):
        raise InvalidArgument(
            f"Got {len(points)} points but {len(values)} depth values")
    image = np.asarray(image)
    if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] not in (1, 3, 4)):
        raise InvalidArgument(f"Unsupported image shape {image.shape}")

    style = style or OverlayStyle()
    height, width = image.shape[:2]
    radius = style.marker_radius * style.display_scale
    font_px = style.font_size * style.display_scale
    dx, dy = style.text_offset

    surface = surface_factory(image)
    markers = []
    for point, value in zip(points, values):
        value = float(value)
        center = (point.x * width, point.y * height)
        color = marker_color(value, style)

        surface.fill_circle(center, radius, color)
        if style.marker_stroke_color is not None:
            surface.stroke_circle(center, radius, style.marker_stroke_color,
                                  style.stroke_thickness)

        label = None
        if style.label_far_points or is_near(value, style.near_threshold_meters):
            label = format_depth(value, style.unit_label)
            origin = (center[0] + dx * style.display_scale,
                      center[1] + dy * style.display_scale - radius)
            surface.draw_text(label, origin, font_px, style.text_color)

        markers.append(RenderedMarker(center, value, color, label))

    logger.debug(f"Rendered {len(markers)} depth markers on {width}x{height} image")
    return AnnotatedImage(surface.image(), markers)
