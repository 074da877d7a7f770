"""Document boundary detection and perspective correction.

This package exposes the geometry, detection, rectification and live-tracking
routines used by the scanning session.
"""

from .config import ScanConfig  # noqa: F401
from .errors import DegenerateQuadError, ScanProcessorError, SegmentationError  # noqa: F401
from .geometry import Line, Point, Quad, build_quad, rotate_quad, scale_quad  # noqa: F401
from .quad_detection import detect_document_quad, refine_mask  # noqa: F401
from .rectify import extract_document, output_size, rectify  # noqa: F401
from .scan_session import ScanSession  # noqa: F401
from .scan_types import Frame, LiveAnalysisState, Mask, SegmentationResult  # noqa: F401
from .segmentation import (  # noqa: F401
    SegmentationEngine,
    SegmentationService,
    create_segmentation_service,
)
from .tracking import LastGoodFix, fallback_quad  # noqa: F401
