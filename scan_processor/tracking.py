"""Last successful live detection, reused when capture-time detection fails.

The live lane writes the slot on every frame that produced a quad; the
capture flow only reads it. Detection failures never clear it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .geometry import Quad, rotate_quad, rotated_size, scale_quad
from .scan_types import LiveAnalysisState

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MS = 1500


@dataclass(frozen=True)
class Fix:
    """A quad seen by live analysis, with the mask canvas it lives on."""

    quad: Quad
    mask_width: int
    mask_height: int
    rotation_degrees: int
    timestamp_ms: int

    @classmethod
    def from_state(cls, state: LiveAnalysisState) -> Optional["Fix"]:
        if state.document_quad is None or state.binary_mask is None:
            return None
        return cls(
            quad=state.document_quad,
            mask_width=state.binary_mask.width,
            mask_height=state.binary_mask.height,
            rotation_degrees=state.rotation_degrees,
            timestamp_ms=state.timestamp_ms,
        )


def quarter_turns_between(live_rotation: int, capture_rotation: int) -> int:
    """Quarter turns that take a live-frame quad into the capture frame.

    The live mask was produced upright (rotated by ``live_rotation``), so the
    quad has to be turned back by the difference, hence the reversed sign.
    """
    return (capture_rotation - live_rotation) // 90


def fallback_quad(
    fix: Optional[Fix],
    now_ms: int,
    capture_rotation: int,
    to_width: int,
    to_height: int,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
) -> Optional[Quad]:
    """Return the fix's quad mapped into a capture canvas, if still fresh."""
    if fix is None:
        return None

    age = now_ms - fix.timestamp_ms
    logger.info("Last successful live analysis was %d ms ago", age)
    if age > max_age_ms:
        return None

    rotations = quarter_turns_between(fix.rotation_degrees, capture_rotation)
    rotated = rotate_quad(fix.quad, rotations, fix.mask_width, fix.mask_height)
    from_width, from_height = rotated_size(fix.mask_width, fix.mask_height, rotations)
    logger.info("Using quad taken in live analysis; rotations=%d", rotations)
    return scale_quad(rotated, from_width, from_height, to_width, to_height)


class LastGoodFix:
    """Thread-safe single-slot holder for the most recent successful fix."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fix: Optional[Fix] = None

    def update(self, state: LiveAnalysisState) -> bool:
        """Replace the slot if ``state`` carries a quad; return whether it did."""
        fix = Fix.from_state(state)
        if fix is None:
            return False
        with self._lock:
            self._fix = fix
        return True

    def snapshot(self) -> Optional[Fix]:
        with self._lock:
            return self._fix

    def clear(self) -> None:
        with self._lock:
            self._fix = None

    def recall(
        self,
        now_ms: int,
        capture_rotation: int,
        to_width: int,
        to_height: int,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
    ) -> Optional[Quad]:
        return fallback_quad(
            self.snapshot(), now_ms, capture_rotation, to_width, to_height, max_age_ms
        )
