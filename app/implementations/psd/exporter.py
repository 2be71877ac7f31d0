from io import BytesIO
from typing import Optional

import cv2
import numpy as np
from PIL import Image

from app.config import settings
from app.implementations.psd.raster import ensure_bgra, resize
from app.models.mockup import ExportResult
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception, debug_timing

JPEG_FORMATS = ("jpg", "jpeg")


class Exporter:
    """Rescales the final raster for a target DPI and encodes it"""

    def __init__(self, base_dpi: Optional[float] = None):
        self.logger = get_logger(__name__)
        self.base_dpi = base_dpi or settings.BASE_DPI

    @staticmethod
    def is_jpeg(export_format: Optional[str]) -> bool:
        return (export_format or "").strip().lower() in JPEG_FORMATS

    @classmethod
    def mime_type_for(cls, export_format: Optional[str]) -> str:
        return "image/jpeg" if cls.is_jpeg(export_format) else "image/png"

    @classmethod
    def extension_for(cls, export_format: Optional[str]) -> str:
        return "jpg" if cls.is_jpeg(export_format) else "png"

    @debug_timing
    @debug_exception
    def export(
        self,
        raster: np.ndarray,
        target_dpi: Optional[float] = None,
        export_format: str = "jpg",
        quality: int = 90,
    ) -> ExportResult:
        """Encode the raster; pixel size scales by target_dpi / base_dpi"""
        target_dpi = target_dpi if target_dpi and target_dpi > 0 else self.base_dpi
        scale = target_dpi / self.base_dpi

        height, width = raster.shape[:2]
        image = ensure_bgra(raster)
        if scale != 1:
            new_width = max(1, int(round(width * scale)))
            new_height = max(1, int(round(height * scale)))
            self.logger.info(f"Scaling for {target_dpi} DPI: {width}x{height} -> {new_width}x{new_height}")
            image = resize(image, new_width, new_height)

        pil_image = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
        buffer = BytesIO()
        if self.is_jpeg(export_format):
            quality = int(max(0, min(100, quality)))
            pil_image.convert("RGB").save(buffer, "JPEG", quality=quality, dpi=(target_dpi, target_dpi))
        else:
            if (export_format or "").strip().lower() != "png":
                self.logger.warning(f"Unsupported export format \"{export_format}\", exporting PNG")
            pil_image.save(buffer, "PNG", dpi=(target_dpi, target_dpi))

        self.logger.debug(f"Encoded {pil_image.width}x{pil_image.height} {self.extension_for(export_format)}")
        return ExportResult(
            image_bytes=buffer.getvalue(),
            mime_type=self.mime_type_for(export_format),
            extension=self.extension_for(export_format),
            width=pil_image.width,
            height=pil_image.height,
            dpi=target_dpi,
        )
