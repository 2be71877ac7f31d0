from io import BytesIO
from typing import Any, List, Optional

import cv2
import numpy as np
from PIL import Image
from psd_tools import PSDImage

from app.config import settings
from app.exceptions import DocumentDecodeError
from app.interfaces.document_decoder import DocumentDecoder
from app.models.document import Document, Layer, LayerMask
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_timing


def pil_to_bgra(image: Image.Image) -> np.ndarray:
    """Convert a PIL image of any mode to a BGRA array"""
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return cv2.cvtColor(np.asarray(image), cv2.COLOR_RGBA2BGRA)


class PsdToolsDocumentDecoder(DocumentDecoder):
    """Builds the layer tree from PSD/PSB bytes with psd-tools"""

    def __init__(self, max_depth: Optional[int] = None):
        self.logger = get_logger(__name__)
        self.max_depth = max_depth if max_depth is not None else settings.MAX_LAYER_DEPTH

    @debug_timing
    def decode(self, data: bytes) -> Document:
        if not data:
            raise DocumentDecodeError("Failed to parse PSD file: empty input")
        try:
            psd = PSDImage.open(BytesIO(data))
        except Exception as e:
            self.logger.error(f"PSD parse error: {str(e)}")
            raise DocumentDecodeError(f"Failed to parse PSD file: {str(e)}") from e

        try:
            children = self._convert_layers(psd, depth=0)
        except Exception as e:
            self.logger.error(f"PSD layer decode error: {str(e)}")
            raise DocumentDecodeError(f"Failed to read PSD layers: {str(e)}") from e

        return Document(
            width=int(psd.width),
            height=int(psd.height),
            children=children,
            composite=self._composite(psd),
        )

    def _convert_layers(self, group: Any, depth: int) -> List[Layer]:
        layers = []
        for psd_layer in group:
            layer = Layer(
                name=psd_layer.name,
                hidden=not psd_layer.is_visible(),
                left=psd_layer.left,
                top=psd_layer.top,
                right=psd_layer.right,
                bottom=psd_layer.bottom,
                width=psd_layer.width,
                height=psd_layer.height,
                opacity=psd_layer.opacity,
                is_smart_object=psd_layer.kind == "smartobject",
                mask=self._mask(psd_layer),
            )
            if psd_layer.is_group():
                if depth < self.max_depth:
                    layer.children = self._convert_layers(psd_layer, depth + 1)
                else:
                    self.logger.warning(f"Group \"{psd_layer.name}\" nested too deep, children dropped")
            else:
                layer.canvas = self._layer_canvas(psd_layer)
            layers.append(layer)
        return layers

    def _layer_canvas(self, psd_layer: Any) -> Optional[np.ndarray]:
        if not psd_layer.has_pixels():
            return None
        try:
            image = psd_layer.topil()
        except Exception as e:
            self.logger.warning(f"Failed to extract canvas for layer \"{psd_layer.name}\": {str(e)}")
            return None
        return pil_to_bgra(image) if image is not None else None

    def _mask(self, psd_layer: Any) -> Optional[LayerMask]:
        mask = psd_layer.mask
        if mask is None:
            return None
        layer_mask = LayerMask(
            left=mask.left,
            top=mask.top,
            right=mask.right,
            bottom=mask.bottom,
            disabled=mask.disabled,
        )
        try:
            image = mask.topil()
            if image is not None:
                layer_mask.canvas = np.asarray(image.convert("L")).copy()
        except Exception as e:
            self.logger.warning(f"Failed to read mask of layer \"{psd_layer.name}\": {str(e)}")
        return layer_mask

    def _composite(self, psd: PSDImage) -> Optional[np.ndarray]:
        try:
            image = psd.topil()
        except Exception as e:
            self.logger.warning(f"Failed to read PSD composite image: {str(e)}")
            return None
        return pil_to_bgra(image) if image is not None else None
