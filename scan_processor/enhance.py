"""Readability enhancement applied to rectified pages."""

from __future__ import annotations

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def is_colored_document(img: np.ndarray, threshold: float = 4.0) -> bool:
    """Return True when the page carries meaningful chroma.

    Uses the mean of the standard deviations of the Lab a and b channels.
    """
    if img.ndim != 3:
        return False
    lab = cv2.cvtColor(img, cv2.COLOR_BGR2Lab)
    _, a_std = cv2.meanStdDev(lab[:, :, 1])
    _, b_std = cv2.meanStdDev(lab[:, :, 2])
    spread = (float(a_std[0][0]) + float(b_std[0][0])) / 2.0
    return spread > threshold


# TODO: scale the radius with the page size instead of a fixed 100px.
def correct_lighting(img: np.ndarray, radius: int = 100) -> np.ndarray:
    """Flatten uneven illumination by dividing by a heavy blur of the page."""
    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY) if img.ndim == 3 else img
    kernel_size = 2 * radius + 1
    background = cv2.GaussianBlur(gray, (kernel_size, kernel_size), 0)
    return cv2.divide(gray, background, scale=255)


def enhance_contrast_gray(img: np.ndarray) -> np.ndarray:
    """Stretch gray levels between the 1st and 95th percentiles."""
    flat = np.sort(img.reshape(-1))
    total = flat.size
    p_low = float(flat[int(total * 0.01)])
    p_high = float(flat[min(int(total * 0.95), total - 1)])
    if p_high <= p_low:
        return img.copy()

    gain = 255.0 * 1.03 / (p_high - p_low)
    stretched = (img.astype(np.float32) - p_low) * gain
    return np.clip(stretched, 0, 255).astype(np.uint8)


def enhance_captured_image(img: np.ndarray) -> np.ndarray:
    """Boost a colour page, or clean up and re-contrast a grayscale one.

    Always returns a 3-channel BGR image.
    """
    if is_colored_document(img):
        logger.info("Enhancing colour document")
        return cv2.convertScaleAbs(img, alpha=1.2, beta=10)

    logger.info("Enhancing grayscale document")
    gray = correct_lighting(img)
    contrasted = enhance_contrast_gray(gray)
    return cv2.cvtColor(contrasted, cv2.COLOR_GRAY2BGR)
