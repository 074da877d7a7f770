"""Image decoding, encoding and orientation helpers."""

from __future__ import annotations

from io import BytesIO
from typing import Tuple, cast

import cv2
import numpy as np
from PIL import Image

from .scan_types import Frame

_ROTATE_CODES = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def load_rgb_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes into an RGB PIL Image."""
    try:
        img = cast(Image.Image, Image.open(BytesIO(image_bytes)))
        img.load()
    except Exception as exc:
        raise ValueError("Invalid image bytes") from exc

    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def load_frame(image_bytes: bytes, rotation_degrees: int = 0) -> Frame:
    """Decode image bytes into a BGR ``Frame`` with the given rotation."""
    rgb = np.asarray(load_rgb_image(image_bytes))
    bgr = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
    return Frame(pixels=bgr, rotation_degrees=rotation_degrees)


def to_pil_rgb(image: np.ndarray) -> Image.Image:
    """Convert a BGR or grayscale array into an RGB PIL Image."""
    if image.ndim == 2:
        rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def encode_image_bytes(
    image: np.ndarray, *, format: str = "jpeg", quality: int = 75
) -> Tuple[bytes, str]:
    """Encode a BGR page into bytes and return them with their MIME type."""
    buf = BytesIO()
    save_kwargs = {"format": format.upper()}
    if format.lower() == "jpeg":
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True
    to_pil_rgb(image).save(buf, **save_kwargs)
    mime = f"image/{'jpeg' if format.lower() == 'jpeg' else 'png'}"
    return buf.getvalue(), mime


def rotate_image(image: np.ndarray, degrees: int) -> np.ndarray:
    """Rotate clockwise by a multiple of 90 degrees."""
    normalized = degrees % 360
    if normalized == 0:
        return image.copy()
    code = _ROTATE_CODES.get(normalized)
    if code is None:
        raise ValueError(f"Only 0, 90, 180 and 270 degrees are supported, got {degrees}")
    return cv2.rotate(image, code)
