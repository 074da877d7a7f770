"""Perspective correction of a detected page into an upright rectangle."""

from __future__ import annotations

import logging
from typing import Tuple

import cv2
import numpy as np

from .config import DEFAULT_CONFIG, ScanConfig
from .enhance import enhance_captured_image
from .errors import DegenerateQuadError
from .geometry import Quad, norm
from .image_io import rotate_image

logger = logging.getLogger(__name__)

_MIN_QUAD_AREA = 1.0


def output_size(quad: Quad) -> Tuple[int, int]:
    """Compute (width, height) of the rectified page.

    Uses the longer of each pair of opposite edges so no side is shrunk.
    """
    width = max(
        norm(quad.top_left, quad.top_right), norm(quad.bottom_left, quad.bottom_right)
    )
    height = max(
        norm(quad.top_left, quad.bottom_left), norm(quad.top_right, quad.bottom_right)
    )
    return int(round(width)), int(round(height))


def rectify(image: np.ndarray, quad: Quad) -> np.ndarray:
    """Warp the quad region of ``image`` into a flat ``W x H`` image.

    Raises:
        DegenerateQuadError: the quad has no width, height or area.
    """
    width, height = output_size(quad)
    corners = quad.to_array()
    area = abs(cv2.contourArea(corners))
    if width < 1 or height < 1 or area < _MIN_QUAD_AREA:
        raise DegenerateQuadError(
            f"Cannot rectify degenerate quad {quad} (size {width}x{height}, area {area:.1f})"
        )

    dst = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32
    )
    matrix = cv2.getPerspectiveTransform(corners, dst)
    warped = cv2.warpPerspective(image, matrix, (width, height), flags=cv2.INTER_LINEAR)
    logger.debug(
        "Rectified %dx%d -> %dx%d", image.shape[1], image.shape[0], width, height
    )
    return warped


def resize_to_max(image: np.ndarray, target_max: int) -> np.ndarray:
    """Downscale so the longer side is at most ``target_max`` pixels."""
    height, width = image.shape[:2]
    if max(width, height) < target_max:
        return image
    if width >= height:
        new_width = target_max
        new_height = height * target_max / width
    else:
        new_height = target_max
        new_width = width * target_max / height
    size = (max(1, int(new_width)), max(1, int(new_height)))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def extract_document(
    image: np.ndarray,
    quad: Quad,
    rotation_degrees: int,
    config: ScanConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Rectify, downscale, enhance and turn a captured page upright.

    ``quad`` must be in the pixel space of ``image``.
    """
    page = rectify(image, quad)
    page = resize_to_max(page, config.output_max_size)
    if config.enhance:
        page = enhance_captured_image(page)
    return rotate_image(page, rotation_degrees)
