"""Inference helpers for semantic-segmentation document masks."""

from __future__ import annotations

import os
from typing import Optional

import numpy as np
import torch
from PIL import Image

os.environ.setdefault("USE_TF", "0")
os.environ.setdefault("USE_TORCH", "1")
os.environ.setdefault("TRANSFORMERS_NO_TF", "1")
os.environ.setdefault("TRANSFORMERS_NO_FLAX", "1")

from transformers import AutoImageProcessor, AutoModelForSemanticSegmentation

from .image_io import rotate_image, to_pil_rgb
from .scan_types import Mask
from .segmentation_model import ModelBundle, get_model


def logits_to_mask(logits: torch.Tensor) -> np.ndarray:
    """Collapse ``(1, C, h, w)`` class logits to an ``h x w`` class-index mask."""
    if logits.ndim != 4:
        raise ValueError(f"Expected (batch, classes, h, w) logits, got {tuple(logits.shape)}")
    classes = logits[0].argmax(dim=0)
    return classes.to(torch.uint8).cpu().numpy()


def infer_mask(
    model: AutoModelForSemanticSegmentation,
    processor: AutoImageProcessor,
    img: Image.Image,
) -> np.ndarray:
    """Run segmentation and return the mask at the model's output resolution."""
    device = next(model.parameters()).device
    inputs = processor(images=img, return_tensors="pt")
    inputs = inputs.to(device)
    with torch.no_grad():
        outputs = model(**inputs)
    return logits_to_mask(outputs.logits)


class TransformersSegmentationEngine:
    """Segmentation engine backed by a Hugging Face semantic-segmentation model.

    The model is loaded lazily on first use and shared through the
    ``segmentation_model`` cache.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        device: Optional[str] = None,
        bundle: Optional[ModelBundle] = None,
    ) -> None:
        self._model_id = model_id
        self._device = device
        self._bundle = bundle

    @property
    def bundle(self) -> ModelBundle:
        if self._bundle is None:
            self._bundle = get_model(self._model_id, self._device)
        return self._bundle

    def infer(self, image: np.ndarray, rotation_degrees: int) -> Mask:
        upright = rotate_image(image, rotation_degrees)
        classes = infer_mask(self.bundle.model, self.bundle.processor, to_pil_rgb(upright))
        return Mask(classes)
