"""Raster helpers shared by the compositing stages.

All color rasters are uint8 BGRA arrays (OpenCV channel order). Blending is
straight (non-premultiplied) Porter-Duff "over".
"""
from typing import Optional, Tuple

import cv2
import numpy as np

from app.exceptions import DesignDecodeError


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Reduce 16-bit or float rasters to 8 bits per channel"""
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(image * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return np.clip(image, 0, 255).astype(np.uint8)


def ensure_bgra(image: np.ndarray) -> np.ndarray:
    """Return a BGRA copy of a gray, BGR or BGRA raster; alpha defaults to 255"""
    image = to_uint8(image)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGRA)
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    if channels == 4:
        return image.copy()
    raise ValueError(f"Unsupported channel count: {channels}")


def decode_image(data: bytes) -> np.ndarray:
    """Decode arbitrary image bytes into a BGRA raster"""
    if not data:
        raise DesignDecodeError("Design image is empty")
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise DesignDecodeError("Failed to decode design image")
    return ensure_bgra(image)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Luminance reduction of a color raster, gray rasters pass through"""
    image = to_uint8(image)
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)


def resize(image: np.ndarray, width: int, height: int, interpolation: Optional[int] = None) -> np.ndarray:
    """Resize to exactly width x height.

    Without an explicit kernel, upscaling uses cubic and downscaling uses
    area averaging.
    """
    h, w = image.shape[:2]
    if (w, h) == (width, height):
        return image
    if interpolation is None:
        interpolation = cv2.INTER_CUBIC if (width > w or height > h) else cv2.INTER_AREA
    return cv2.resize(image, (width, height), interpolation=interpolation)


def new_canvas(width: int, height: int, color: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> np.ndarray:
    """BGRA canvas filled with color, given as (r, g, b, a)"""
    r, g, b, a = color
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[:, :] = (b, g, r, a)
    return canvas


def paste_over(base: np.ndarray, overlay: np.ndarray, left: int, top: int, opacity: int = 255) -> np.ndarray:
    """Blend overlay onto base in place at (left, top), clipped to base.

    Both rasters must be BGRA. Returns base for chaining.
    """
    base_h, base_w = base.shape[:2]
    over_h, over_w = overlay.shape[:2]

    x0, y0 = max(left, 0), max(top, 0)
    x1, y1 = min(left + over_w, base_w), min(top + over_h, base_h)
    if x1 <= x0 or y1 <= y0:
        return base

    src = overlay[y0 - top:y1 - top, x0 - left:x1 - left].astype(np.float32) / 255.0
    dst = base[y0:y1, x0:x1].astype(np.float32) / 255.0

    src_alpha = src[:, :, 3:4]
    if opacity < 255:
        src_alpha = src_alpha * (max(opacity, 0) / 255.0)
    dst_alpha = dst[:, :, 3:4]

    out_alpha = src_alpha + dst_alpha * (1.0 - src_alpha)
    safe_alpha = np.where(out_alpha == 0.0, 1.0, out_alpha)
    out_color = (src[:, :, :3] * src_alpha + dst[:, :, :3] * dst_alpha * (1.0 - src_alpha)) / safe_alpha

    region = np.concatenate([out_color, out_alpha], axis=2)
    base[y0:y1, x0:x1] = np.clip(region * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return base
