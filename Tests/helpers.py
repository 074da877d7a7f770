"""Test helpers: synthetic masks, stub segmentation engines and a fake clock."""

from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from scan_processor.geometry import Point, Quad, build_quad
from scan_processor.scan_types import Mask


def blank_mask(width: int = 100, height: int = 100) -> Mask:
    return Mask(np.zeros((height, width), dtype=np.uint8))


def polygon_mask(
    corners: Sequence[Tuple[int, int]], width: int = 100, height: int = 100, value: int = 1
) -> Mask:
    """Mask with a filled polygon of class ``value`` on background 0."""
    data = np.zeros((height, width), dtype=np.uint8)
    cv2.fillPoly(data, [np.array(corners, dtype=np.int32)], value)
    return Mask(data)


def square_mask(width: int = 100, height: int = 100) -> Mask:
    """The document square (10,10)-(90,90) used throughout the tests."""
    return polygon_mask([(10, 10), (90, 10), (90, 90), (10, 90)], width, height)


def quad_of(*corners: Tuple[int, int]) -> Quad:
    quad = build_quad([Point(x, y) for x, y in corners])
    assert quad is not None
    return quad


def assert_quad_close(actual: Optional[Quad], expected: Quad, tolerance: int) -> None:
    assert actual is not None, "Expected a quad"
    for got, want in zip(actual.points(), expected.points()):
        assert abs(got.x - want.x) <= tolerance, f"{got} vs {want}"
        assert abs(got.y - want.y) <= tolerance, f"{got} vs {want}"


class StubEngine:
    # Stands in for the segmentation model: hands out prepared masks in order
    # and records each call so tests can assert on rotations and image sizes.
    def __init__(self, masks: Sequence[Mask], on_infer: Optional[Callable[[], None]] = None) -> None:
        self._masks = list(masks)
        self._on_infer = on_infer
        self.calls: List[Tuple[Tuple[int, ...], int]] = []

    def infer(self, image: np.ndarray, rotation_degrees: int) -> Mask:
        self.calls.append((image.shape, rotation_degrees))
        if self._on_infer is not None:
            self._on_infer()
        if len(self._masks) > 1:
            return self._masks.pop(0)
        return self._masks[0]


class FailingEngine:
    # Simulates an unavailable inference backend.
    def __init__(self) -> None:
        self.calls = 0

    def infer(self, image: np.ndarray, rotation_degrees: int) -> Mask:
        self.calls += 1
        raise RuntimeError("interpreter unavailable")


class FakeClock:
    """Millisecond clock advanced explicitly by the test."""

    def __init__(self, now: int = 0, step: int = 0) -> None:
        self.now = now
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current
