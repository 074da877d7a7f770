"""Environment-driven settings for detection, capture and inference."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def _env_value(name: str, default: T, parse: Callable[[str], T]) -> T:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return parse(raw.strip())
    except ValueError:
        logger.warning("Invalid value '%s' for %s; defaulting to %s", raw, name, default)
        return default


def _parse_bool(value: str) -> bool:
    normalized = value.lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ValueError(value)


def _env_str(name: str) -> Optional[str]:
    value = (os.environ.get(name) or "").strip()
    return value or None


@dataclass(frozen=True)
class ScanConfig:
    """Tunable parameters of the scanning pipeline.

    The detector defaults are fixed for binary segmentation masks rather than
    natural photographs: a 5x5 blur, Canny thresholds of 75/200 and a polygon
    tolerance of 2% of the contour perimeter.
    """

    model_id: Optional[str] = None
    device: Optional[str] = None
    blur_kernel: int = 5
    canny_low: float = 75.0
    canny_high: float = 200.0
    approx_epsilon: float = 0.02
    min_area_ratio: float = 0.02
    refine_mask: bool = False
    fallback_max_age_ms: int = 1500
    output_max_size: int = 1500
    enhance: bool = True
    jpeg_quality: int = 75

    @classmethod
    def from_env(cls) -> "ScanConfig":
        """Build a config from ``DOCSCAN_*`` environment variables."""
        defaults = cls()
        return cls(
            model_id=_env_str("DOCSCAN_MODEL_ID"),
            device=_env_str("DOCSCAN_DEVICE"),
            blur_kernel=_env_value("DOCSCAN_BLUR_KERNEL", defaults.blur_kernel, int),
            canny_low=_env_value("DOCSCAN_CANNY_LOW", defaults.canny_low, float),
            canny_high=_env_value("DOCSCAN_CANNY_HIGH", defaults.canny_high, float),
            approx_epsilon=_env_value(
                "DOCSCAN_APPROX_EPSILON", defaults.approx_epsilon, float
            ),
            min_area_ratio=_env_value(
                "DOCSCAN_MIN_AREA_RATIO", defaults.min_area_ratio, float
            ),
            refine_mask=_env_value("DOCSCAN_REFINE_MASK", defaults.refine_mask, _parse_bool),
            fallback_max_age_ms=_env_value(
                "DOCSCAN_FALLBACK_MAX_AGE_MS", defaults.fallback_max_age_ms, int
            ),
            output_max_size=_env_value(
                "DOCSCAN_OUTPUT_MAX_SIZE", defaults.output_max_size, int
            ),
            enhance=_env_value("DOCSCAN_ENHANCE", defaults.enhance, _parse_bool),
            jpeg_quality=_env_value("DOCSCAN_JPEG_QUALITY", defaults.jpeg_quality, int),
        )


DEFAULT_CONFIG = ScanConfig()
