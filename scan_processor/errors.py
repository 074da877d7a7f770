"""Exception types raised by the scanning pipeline."""

from __future__ import annotations


class ScanProcessorError(Exception):
    """Base class for scan_processor errors."""


class DegenerateQuadError(ScanProcessorError, ValueError):
    """Raised when a quad has no usable area and cannot be rectified."""


class SegmentationError(ScanProcessorError):
    """Raised when the segmentation model cannot be loaded or run."""
