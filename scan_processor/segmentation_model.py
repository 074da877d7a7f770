"""Model resolution and caching for document segmentation."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import torch

os.environ.setdefault("USE_TF", "0")
os.environ.setdefault("USE_TORCH", "1")
os.environ.setdefault("TRANSFORMERS_NO_TF", "1")
os.environ.setdefault("TRANSFORMERS_NO_FLAX", "1")

from transformers import AutoImageProcessor, AutoModelForSemanticSegmentation

from .errors import SegmentationError

logger = logging.getLogger(__name__)

MODEL_ID_ENV = "DOCSCAN_MODEL_ID"

_MODEL_CACHE: Dict[Tuple[str, str], "ModelBundle"] = {}
_MODEL_LOCK = threading.Lock()


@dataclass(frozen=True)
class ModelBundle:
    """Grouped model assets for inference."""

    model: AutoModelForSemanticSegmentation
    processor: AutoImageProcessor
    device: torch.device
    model_id: str


def resolve_model_id(model_id: Optional[str]) -> str:
    """Return the explicit model id, else the one configured in the environment."""
    resolved = (model_id or os.environ.get(MODEL_ID_ENV) or "").strip()
    if not resolved:
        raise SegmentationError(
            f"No segmentation model configured; pass a model id or set {MODEL_ID_ENV}"
        )
    return resolved


def _resolve_device(preferred: Optional[str] = None) -> torch.device:
    if preferred:
        return torch.device(preferred)
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


def get_model(model_id: Optional[str] = None, device: Optional[str] = None) -> ModelBundle:
    """Return a cached segmentation model + processor bundle."""
    resolved_id = resolve_model_id(model_id)
    resolved_device = _resolve_device(device)
    key = (resolved_id, str(resolved_device))
    if key in _MODEL_CACHE:
        return _MODEL_CACHE[key]

    with _MODEL_LOCK:
        if key in _MODEL_CACHE:
            return _MODEL_CACHE[key]
        try:
            model = AutoModelForSemanticSegmentation.from_pretrained(resolved_id)
            processor = AutoImageProcessor.from_pretrained(resolved_id)
        except Exception as exc:
            raise SegmentationError(
                f"Failed to load segmentation model {resolved_id}: {exc}"
            ) from exc
        model.to(resolved_device)
        model.eval()
        logger.info("Loaded segmentation model %s on %s", resolved_id, resolved_device)
        bundle = ModelBundle(
            model=model, processor=processor, device=resolved_device, model_id=resolved_id
        )
        _MODEL_CACHE[key] = bundle
        return bundle
