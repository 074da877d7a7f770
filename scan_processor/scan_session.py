"""Scanning session: live overlay analysis and one-shot page capture."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from .config import DEFAULT_CONFIG, ScanConfig
from .errors import DegenerateQuadError
from .geometry import Quad, scale_quad
from .image_io import encode_image_bytes
from .quad_detection import detect_document_quad
from .rectify import extract_document
from .scan_types import (
    CaptureError,
    CapturePreview,
    CaptureState,
    Capturing,
    Frame,
    Idle,
    LiveAnalysisState,
)
from .segmentation import SegmentationService
from .tracking import LastGoodFix

logger = logging.getLogger(__name__)

# Captured frames are segmented in sensor orientation; the page is turned
# upright only after rectification.
CAPTURE_SEGMENTATION_ROTATION = 0


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class ScanSession:
    """Coordinates the live analysis lane with the capture flow.

    Live frames feed the overlay and the last good fix. A capture pauses the
    live lane until the preview is accepted or the error is acknowledged.
    """

    def __init__(
        self,
        service: SegmentationService,
        *,
        config: ScanConfig = DEFAULT_CONFIG,
        clock: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self._service = service
        self._config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self._closed = False
        self._live_state = LiveAnalysisState()
        self._capture_state: CaptureState = Idle()
        self.last_good_fix = LastGoodFix()

    @property
    def live_state(self) -> LiveAnalysisState:
        return self._live_state

    @property
    def capture_state(self) -> CaptureState:
        return self._capture_state

    @property
    def live_analysis_enabled(self) -> bool:
        return not self._closed and isinstance(self._capture_state, Idle)

    def live_analysis(self, frame: Frame) -> Optional[LiveAnalysisState]:
        """Analyse a preview frame; None when the frame was dropped."""
        if not self.live_analysis_enabled:
            logger.debug("Live analysis paused; dropping frame")
            return None

        generation = self._generation
        result = self._service.try_run_live(frame.pixels, frame.rotation_degrees)
        if result is None:
            return None

        state = LiveAnalysisState(
            inference_time_ms=result.inference_time_ms,
            binary_mask=result.mask,
            document_quad=detect_document_quad(result.mask, self._config),
            timestamp_ms=self._clock(),
            rotation_degrees=frame.rotation_degrees,
        )
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding live result from a previous session")
                return None
            self._live_state = state
            self.last_good_fix.update(state)
        return state

    def on_capture_pressed(self, frozen_image: np.ndarray) -> None:
        with self._lock:
            self._capture_state = Capturing(frozen_image)

    def find_capture_quad(self, frame: Frame, now_ms: Optional[int] = None) -> Optional[Quad]:
        """Locate the page in a captured frame, in the frame's pixel space.

        Falls back to a recent live detection when the capture itself yields
        no quad.
        """
        result = self._service.run(frame.pixels, CAPTURE_SEGMENTATION_ROTATION)
        if result is None:
            return None

        mask = result.mask
        quad = detect_document_quad(mask, self._config)
        if quad is not None:
            return scale_quad(quad, mask.width, mask.height, frame.width, frame.height)

        now = self._clock() if now_ms is None else now_ms
        return self.last_good_fix.recall(
            now,
            CAPTURE_SEGMENTATION_ROTATION,
            frame.width,
            frame.height,
            self._config.fallback_max_age_ms,
        )

    def process_capture(self, frame: Frame, now_ms: Optional[int] = None) -> Optional[np.ndarray]:
        """Return the rectified, upright page, or None if no page was found."""
        quad = self.find_capture_quad(frame, now_ms)
        if quad is None:
            logger.info("No document detected in captured image")
            return None
        try:
            return extract_document(frame.pixels, quad, frame.rotation_degrees, self._config)
        except DegenerateQuadError as exc:
            logger.warning("Skipping rectification: %s", exc)
            return None

    def on_image_captured(
        self, frame: Optional[Frame], now_ms: Optional[int] = None
    ) -> CaptureState:
        page = self.process_capture(frame, now_ms) if frame is not None else None
        with self._lock:
            current = self._capture_state
            if isinstance(current, Capturing) and page is not None:
                self._capture_state = CapturePreview(current.frozen_image, page)
            elif isinstance(current, Capturing):
                self._capture_state = CaptureError(current.frozen_image)
            else:
                self._capture_state = Idle()
            return self._capture_state

    def accept_capture(self) -> Optional[bytes]:
        """Encode the previewed page as JPEG and resume live analysis."""
        with self._lock:
            current = self._capture_state
            self._capture_state = Idle()
        if not isinstance(current, CapturePreview):
            return None
        data, _ = encode_image_bytes(
            current.processed, format="jpeg", quality=self._config.jpeg_quality
        )
        return data

    def after_capture_error(self) -> None:
        with self._lock:
            self._capture_state = Idle()

    def close(self) -> None:
        """End the session; in-flight live results are discarded."""
        with self._lock:
            self._generation += 1
            self._closed = True
            self._live_state = LiveAnalysisState()
            self._capture_state = Idle()
        self.last_good_fix.clear()
