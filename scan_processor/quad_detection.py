"""Document quad detection on segmentation masks."""

from __future__ import annotations

import logging
from typing import Optional, Union

import cv2
import numpy as np

from .config import DEFAULT_CONFIG, ScanConfig
from .geometry import Point, Quad, build_quad
from .scan_types import Mask

logger = logging.getLogger(__name__)

_MORPH_KERNEL_SIZE = (5, 5)


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3:
        return image[:, :, 0]
    return image


def binarize_mask(mask: Union[Mask, np.ndarray]) -> np.ndarray:
    """Return a 0/255 single-channel image where non-zero means document."""
    if isinstance(mask, Mask):
        return mask.to_binary()
    gray = _to_gray(np.asarray(mask))
    return np.where(gray > 0, 255, 0).astype(np.uint8)


def refine_mask(binary: np.ndarray) -> np.ndarray:
    """Clean up a binary mask with morphological operations.

    Closing fills small holes and opening drops isolated specks; the final
    dilation reconnects regions that nearly touch.
    """
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, _MORPH_KERNEL_SIZE)
    closed = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)
    opened = cv2.morphologyEx(closed, cv2.MORPH_OPEN, kernel)
    return cv2.dilate(opened, kernel, iterations=1)


def _largest_quad_contour(edges: np.ndarray, approx_epsilon: float):
    contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

    biggest = None
    max_area = 0.0
    for contour in contours:
        peri = cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, approx_epsilon * peri, True)
        if len(approx) != 4:
            continue
        area = abs(cv2.contourArea(approx))
        if area > max_area:
            max_area = area
            biggest = approx
    return biggest, max_area


def detect_document_quad(
    mask: Union[Mask, np.ndarray, None], config: ScanConfig = DEFAULT_CONFIG
) -> Optional[Quad]:
    """Find the largest four-sided outline in a segmentation mask.

    Args:
        mask: Segmentation mask (``Mask`` or raw array, any channel count).
        config: Detector thresholds.

    Returns:
        The quad in mask pixel coordinates, or None when nothing
        quadrilateral and large enough is present.
    """
    if mask is None:
        return None
    binary = binarize_mask(mask)
    if binary.size == 0:
        return None
    if config.refine_mask:
        binary = refine_mask(binary)

    kernel = (config.blur_kernel, config.blur_kernel)
    blurred = cv2.GaussianBlur(binary, kernel, 0)
    edges = cv2.Canny(blurred, config.canny_low, config.canny_high)

    biggest, max_area = _largest_quad_contour(edges, config.approx_epsilon)
    height, width = binary.shape[:2]
    if biggest is None or max_area < width * height * config.min_area_ratio:
        logger.debug("No document quad found (largest 4-gon area %.1f)", max_area)
        return None

    vertices = [Point(int(x), int(y)) for x, y in biggest.reshape(-1, 2)]
    return build_quad(vertices)
