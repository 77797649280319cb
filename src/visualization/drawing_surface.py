"""
Drawing Surfaces
The three primitives the overlay renderer needs, behind a small interface so
the renderer does not depend on a particular graphics backend.
"""

from typing import Sequence, Tuple

import cv2
import numpy as np

from core.error_handler import InvalidArgument

RGBA = Tuple[int, int, int, int]
Point = Tuple[float, float]

# Sub-pixel precision for cv2.circle (coordinates are scaled by 2**SHIFT)
SHIFT = 4


class DrawingSurface:
    """Minimal drawing interface: fill circle, stroke circle, draw text."""

    def fill_circle(self, center: Point, radius: float, rgba: RGBA):
        raise NotImplementedError

    def stroke_circle(self, center: Point, radius: float, rgba: RGBA, thickness: int = 1):
        raise NotImplementedError

    def draw_text(self, text: str, origin: Point, font_size: float, rgba: RGBA):
        raise NotImplementedError

    def image(self) -> np.ndarray:
        """Return the finished image."""
        raise NotImplementedError


class OpenCVSurface(DrawingSurface):
    """
    Draws with OpenCV on a private copy of a uint8 image.

    Accepts grayscale, BGR or BGRA images (OpenCV channel order). Colors are
    given as RGBA and converted; alpha below 255 is blended over the image.
    """

    font_face = cv2.FONT_HERSHEY_SIMPLEX

    def __init__(self, base_image: np.ndarray):
        if base_image.dtype != np.uint8:
            raise InvalidArgument(f"Expected uint8 image, got {base_image.dtype}")
        self._canvas = np.ascontiguousarray(base_image.copy())
        self._channels = 1 if self._canvas.ndim == 2 else self._canvas.shape[2]

    def _color(self, rgba: RGBA):
        r, g, b, _ = rgba
        if self._channels == 1:
            return int(round(0.299 * r + 0.587 * g + 0.114 * b))
        if self._channels == 4:
            return (int(b), int(g), int(r), 255)
        return (int(b), int(g), int(r))

    def _draw(self, rgba: RGBA, draw_fn):
        alpha = rgba[3]
        if alpha <= 0:
            return
        if alpha >= 255:
            draw_fn(self._canvas, self._color(rgba))
            return
        layer = self._canvas.copy()
        draw_fn(layer, self._color(rgba))
        a = alpha / 255.0
        self._canvas = cv2.addWeighted(layer, a, self._canvas, 1.0 - a, 0)

    @staticmethod
    def _fixed(point: Point) -> Tuple[int, int]:
        scale = 1 << SHIFT
        return int(round(point[0] * scale)), int(round(point[1] * scale))

    def fill_circle(self, center, radius, rgba):
        c = self._fixed(center)
        r = int(round(radius * (1 << SHIFT)))
        self._draw(rgba, lambda img, color: cv2.circle(
            img, c, r, color, thickness=-1, lineType=cv2.LINE_AA, shift=SHIFT))

    def stroke_circle(self, center, radius, rgba, thickness=1):
        if thickness <= 0:
            return
        c = self._fixed(center)
        r = int(round(radius * (1 << SHIFT)))
        self._draw(rgba, lambda img, color: cv2.circle(
            img, c, r, color, thickness=int(thickness), lineType=cv2.LINE_AA, shift=SHIFT))

    def text_scale(self, font_size: float) -> float:
        """OpenCV font scale whose glyph height is ``font_size`` pixels."""
        return cv2.getFontScaleFromHeight(self.font_face, max(1, int(round(font_size))), 1)

    def draw_text(self, text, origin, font_size, rgba):
        org = (int(round(origin[0])), int(round(origin[1])))
        scale = self.text_scale(font_size)
        self._draw(rgba, lambda img, color: cv2.putText(
            img, text, org, self.font_face, scale, color, 1, cv2.LINE_AA))

    def image(self):
        return self._canvas


class RecordingSurface(DrawingSurface):
    """Records drawing calls instead of rasterizing them (dry runs, tests)."""

    def __init__(self, base_image: np.ndarray):
        self._image = base_image.copy()
        self.calls: list = []

    def fill_circle(self, center, radius, rgba):
        self.calls.append(('fill_circle', tuple(center), radius, tuple(rgba)))

    def stroke_circle(self, center, radius, rgba, thickness=1):
        self.calls.append(('stroke_circle', tuple(center), radius, tuple(rgba), thickness))

    def draw_text(self, text, origin, font_size, rgba):
        self.calls.append(('draw_text', text, tuple(origin), font_size, tuple(rgba)))

    def image(self):
        return self._image

    def calls_named(self, name: str) -> Sequence[tuple]:
        return [c for c in self.calls if c[0] == name]
