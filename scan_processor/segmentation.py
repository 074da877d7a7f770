"""Segmentation service wrapping an opaque inference engine.

Live frames go through a single-flight lane: while one live inference is in
flight, new live frames are dropped rather than queued. Every inference, live
or capture, is serialised on one lock so the engine never runs twice at once.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

import numpy as np

from .config import DEFAULT_CONFIG, ScanConfig
from .scan_types import Mask, SegmentationResult

logger = logging.getLogger(__name__)


class SegmentationEngine(Protocol):
    """Anything that turns an image into a document mask."""

    def infer(self, image: np.ndarray, rotation_degrees: int) -> Mask:
        ...


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class SegmentationService:
    """Runs an engine with timing, locking and failure containment."""

    def __init__(
        self,
        engine: SegmentationEngine,
        *,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self._engine = engine
        self._clock = clock
        self._inference_lock = threading.Lock()
        self._live_lock = threading.Lock()
        self._latest: Optional[SegmentationResult] = None

    @property
    def segmentation(self) -> Optional[SegmentationResult]:
        """Most recent result emitted by the live lane."""
        return self._latest

    @property
    def live_busy(self) -> bool:
        return self._live_lock.locked()

    def run(self, image: np.ndarray, rotation_degrees: int) -> Optional[SegmentationResult]:
        """Segment one image; None when the engine fails."""
        with self._inference_lock:
            start = self._clock()
            try:
                mask = self._engine.infer(image, rotation_degrees)
            except Exception:
                logger.exception("Error occurred in image segmentation")
                return None
            elapsed = self._clock() - start
        return SegmentationResult(mask=mask, inference_time_ms=elapsed)

    def try_run_live(
        self, image: np.ndarray, rotation_degrees: int
    ) -> Optional[SegmentationResult]:
        """Segment a live frame unless another live frame is still in flight."""
        if not self._live_lock.acquire(blocking=False):
            logger.debug("Live inference in flight; dropping frame")
            return None
        try:
            result = self.run(image, rotation_degrees)
            if result is not None:
                self._latest = result
            return result
        finally:
            self._live_lock.release()


def create_segmentation_service(config: ScanConfig = DEFAULT_CONFIG) -> SegmentationService:
    """Build a service around the Hugging Face engine described by ``config``."""
    from .segmentation_infer import TransformersSegmentationEngine

    engine = TransformersSegmentationEngine(model_id=config.model_id, device=config.device)
    return SegmentationService(engine)
