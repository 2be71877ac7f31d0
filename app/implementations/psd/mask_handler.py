from typing import Optional

import cv2
import numpy as np

from app.implementations.psd.raster import ensure_bgra, to_grayscale, to_uint8
from app.models.document import LayerMask, MaskBuffer
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception


class MaskHandler:
    """Extracts layer masks and multiplies them into the design alpha"""

    def __init__(self):
        self.logger = get_logger(__name__)

    def extract(self, mask: Optional[LayerMask]) -> Optional[MaskBuffer]:
        """Decode a layer mask into a single-channel buffer.

        Returns None when there is no usable mask. A color canvas is reduced
        to luminance; raw image data contributes its red channel.
        """
        if mask is None or mask.disabled:
            return None

        width = int(round((mask.right or 0) - (mask.left or 0)))
        height = int(round((mask.bottom or 0) - (mask.top or 0)))
        if width <= 0 or height <= 0:
            self.logger.debug(f"Ignoring empty mask: {width}x{height}")
            return None

        try:
            if mask.canvas is not None:
                gray = np.ascontiguousarray(to_grayscale(mask.canvas))
                return MaskBuffer(buffer=gray, width=gray.shape[1], height=gray.shape[0])

            if mask.image_data is not None:
                data = to_uint8(np.asarray(mask.image_data))
                red = data[..., 0].ravel() if data.ndim == 3 else data.ravel()
                size = width * height
                if red.size < size:
                    red = np.concatenate([red, np.zeros(size - red.size, dtype=np.uint8)])
                gray = red[:size].reshape(height, width).copy()
                return MaskBuffer(buffer=gray, width=width, height=height)
        except Exception as e:
            self.logger.warning(f"Failed to extract mask: {str(e)}")
            return None

        self.logger.debug("Mask has no raster data")
        return None

    @debug_exception
    def apply(self, design: np.ndarray, mask: MaskBuffer) -> np.ndarray:
        """Multiply the mask into the design alpha channel.

        The mask is stretched to exactly the design size; an exact size match
        is used untouched.
        """
        result = ensure_bgra(design)
        design_height, design_width = result.shape[:2]

        mask_pixels = mask.buffer
        if (mask.width, mask.height) != (design_width, design_height):
            self.logger.debug(
                f"Resizing mask from {mask.width}x{mask.height} to {design_width}x{design_height}"
            )
            mask_pixels = cv2.resize(mask_pixels, (design_width, design_height), interpolation=cv2.INTER_LINEAR)

        alpha = result[:, :, 3].astype(np.float32)
        masked = np.floor(alpha * mask_pixels.astype(np.float32) / 255.0 + 0.5)
        result[:, :, 3] = np.clip(masked, 0, 255).astype(np.uint8)
        return result
