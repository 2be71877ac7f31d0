from typing import Optional, Tuple

import cv2
import numpy as np

from app.config import settings
from app.implementations.psd.raster import ensure_bgra, new_canvas, paste_over
from app.models.mockup import ImageFit
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception


class DesignFitter:
    """Fits a design image into the placeholder frame, preserving aspect ratio"""

    def __init__(self, letterbox_color: Optional[Tuple[int, int, int]] = None):
        self.logger = get_logger(__name__)
        # Opaque so JPEG export doesn't turn the letterbox into black bars
        r, g, b = letterbox_color or settings.LETTERBOX_COLOR
        self.letterbox_color = (r, g, b, 255)

    @staticmethod
    def _scaled_size(source: Tuple[int, int], scale: float) -> Tuple[int, int]:
        return max(1, int(round(source[0] * scale))), max(1, int(round(source[1] * scale)))

    @debug_exception
    def fit(self, design: np.ndarray, width: int, height: int, mode: ImageFit = ImageFit.COVER) -> np.ndarray:
        """Return a BGRA image of exactly width x height"""
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid fit target: {width}x{height}")

        design = ensure_bgra(design)
        source_h, source_w = design.shape[:2]
        mode = ImageFit.parse(mode)

        if mode == ImageFit.CONTAIN:
            return self._contain(design, (source_w, source_h), width, height)
        return self._cover(design, (source_w, source_h), width, height)

    def _cover(self, design: np.ndarray, source: Tuple[int, int], width: int, height: int) -> np.ndarray:
        scale = max(width / source[0], height / source[1])
        scaled_w, scaled_h = self._scaled_size(source, scale)
        scaled_w, scaled_h = max(scaled_w, width), max(scaled_h, height)

        resized = cv2.resize(design, (scaled_w, scaled_h), interpolation=cv2.INTER_CUBIC)
        left = (scaled_w - width) // 2
        top = (scaled_h - height) // 2
        self.logger.debug(
            f"Cover fit {source[0]}x{source[1]} -> {scaled_w}x{scaled_h}, "
            f"crop at ({left}, {top}) to {width}x{height}"
        )
        return np.ascontiguousarray(resized[top:top + height, left:left + width])

    def _contain(self, design: np.ndarray, source: Tuple[int, int], width: int, height: int) -> np.ndarray:
        scale = min(width / source[0], height / source[1])
        scaled_w, scaled_h = self._scaled_size(source, scale)
        scaled_w, scaled_h = min(scaled_w, width), min(scaled_h, height)

        resized = cv2.resize(design, (scaled_w, scaled_h), interpolation=cv2.INTER_CUBIC)
        left = (width - scaled_w + 1) // 2
        top = (height - scaled_h + 1) // 2
        self.logger.debug(
            f"Contain fit {source[0]}x{source[1]} -> {scaled_w}x{scaled_h}, "
            f"centered at ({left}, {top}) in {width}x{height}"
        )

        canvas = new_canvas(width, height, self.letterbox_color)
        return paste_over(canvas, resized, left, top)
