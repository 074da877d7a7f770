"""Integer point, line and quadrilateral primitives in image pixel space.

All coordinates are y-down. A :class:`Quad` is always labelled clockwise as
top-left, top-right, bottom-right, bottom-left.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Point:
    x: int
    y: int


def norm(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    return math.sqrt(float(dx) * dx + float(dy) * dy)


@dataclass(frozen=True)
class Line:
    start: Point
    end: Point

    def norm(self) -> float:
        return norm(self.start, self.end)


@dataclass(frozen=True)
class Quad:
    """Four corners of a document outline."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    def points(self) -> List[Point]:
        return [self.top_left, self.top_right, self.bottom_right, self.bottom_left]

    def edges(self) -> List[Line]:
        return [
            Line(self.top_left, self.top_right),
            Line(self.top_right, self.bottom_right),
            Line(self.bottom_right, self.bottom_left),
            Line(self.bottom_left, self.top_left),
        ]

    def to_array(self) -> np.ndarray:
        """Corners as a (4, 2) float32 array in TL, TR, BR, BL order."""
        return np.array([[p.x, p.y] for p in self.points()], dtype=np.float32)


def build_quad(vertices: Sequence[Point]) -> Optional[Quad]:
    """Label four unordered vertices by their angle around the centroid.

    Vertices are sorted by ``atan2(y - cy, x - cx)`` ascending, which in y-down
    coordinates walks clockwise from the upper-left. The sort is stable, so
    coincident angles keep their input order. The labelling assumes a roughly
    upright document: close to 45 degrees of in-plane rotation the corner
    named ``top_left`` may be a different physical corner.

    Returns None unless exactly four vertices are given.
    """
    if len(vertices) != 4:
        return None

    cx = sum(p.x for p in vertices) / 4.0
    cy = sum(p.y for p in vertices) / 4.0
    ordered = sorted(vertices, key=lambda p: math.atan2(p.y - cy, p.x - cx))
    return Quad(ordered[0], ordered[1], ordered[2], ordered[3])


def _scale_point(p: Point, scale_x: float, scale_y: float) -> Point:
    return Point(int(p.x * scale_x), int(p.y * scale_y))


def scale_quad(
    quad: Quad, from_width: int, from_height: int, to_width: int, to_height: int
) -> Quad:
    """Map a quad from one image size to another, truncating after scaling."""
    if from_width <= 0 or from_height <= 0:
        raise ValueError(
            f"Source dimensions must be positive, got {from_width}x{from_height}"
        )
    scale_x = to_width / from_width
    scale_y = to_height / from_height
    return Quad(
        top_left=_scale_point(quad.top_left, scale_x, scale_y),
        top_right=_scale_point(quad.top_right, scale_x, scale_y),
        bottom_right=_scale_point(quad.bottom_right, scale_x, scale_y),
        bottom_left=_scale_point(quad.bottom_left, scale_x, scale_y),
    )


def _rotate_point(p: Point, turns: int, width: int, height: int) -> Point:
    if turns == 1:
        return Point(height - p.y, p.x)
    if turns == 2:
        return Point(width - p.x, height - p.y)
    if turns == 3:
        return Point(p.y, width - p.x)
    return p


def rotated_size(width: int, height: int, quarter_turns: int) -> Tuple[int, int]:
    """Canvas size after rotating a ``width x height`` image by quarter turns."""
    if quarter_turns % 2:
        return height, width
    return width, height


def rotate_quad(quad: Quad, quarter_turns: int, width: int, height: int) -> Quad:
    """Rotate a quad clockwise by ``quarter_turns * 90`` degrees.

    ``width`` and ``height`` describe the canvas the quad currently lives on;
    for odd turns the result lives on a ``height x width`` canvas. Negative
    turns rotate counter-clockwise. Corners are relabelled afterwards so the
    result is still ordered TL, TR, BR, BL.
    """
    turns = quarter_turns % 4
    if turns == 0:
        return quad
    rotated = [_rotate_point(p, turns, width, height) for p in quad.points()]
    result = build_quad(rotated)
    assert result is not None
    return result
