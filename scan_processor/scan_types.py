"""Data structures shared by the segmentation, detection and capture stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .geometry import Quad


@dataclass(frozen=True)
class Mask:
    """Per-pixel document/background classification.

    ``data`` is a single-channel uint8 array shaped like the model output:
    0 is background and any non-zero value is document.
    """

    data: np.ndarray

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def to_binary(self) -> np.ndarray:
        """Return the mask as a pure black/white (0/255) image."""
        return np.where(self.data > 0, 255, 0).astype(np.uint8)


@dataclass(frozen=True)
class Frame:
    """A camera frame plus the rotation needed to display it upright."""

    pixels: np.ndarray
    rotation_degrees: int = 0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class SegmentationResult:
    """Mask produced by one inference run and how long it took."""

    mask: Mask
    inference_time_ms: int


@dataclass(frozen=True)
class LiveAnalysisState:
    """Snapshot of one live-analysis sample."""

    inference_time_ms: int = 0
    binary_mask: Optional[Mask] = None
    document_quad: Optional[Quad] = None
    timestamp_ms: int = 0
    rotation_degrees: int = 0


@dataclass(frozen=True)
class Idle:
    frozen_image: Optional[np.ndarray] = None


@dataclass(frozen=True)
class Capturing:
    frozen_image: np.ndarray


@dataclass(frozen=True)
class CaptureError:
    frozen_image: np.ndarray


@dataclass(frozen=True)
class CapturePreview:
    frozen_image: np.ndarray
    processed: np.ndarray


CaptureState = Union[Idle, Capturing, CaptureError, CapturePreview]
