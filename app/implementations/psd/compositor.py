from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import numpy as np

from app.exceptions import NoRenderableSurfaceError
from app.implementations.psd.bounds_resolver import BoundsResolver
from app.implementations.psd.design_fitter import DesignFitter
from app.implementations.psd.raster import ensure_bgra, new_canvas, paste_over
from app.models.document import Document, Layer, Rect
from app.models.mockup import ImageFit, RenderResult
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception, debug_timing


class RenderStrategy(ABC):
    """One way of rendering the layer stack around the fitted design"""

    name = "abstract"

    def __init__(self, bounds_resolver: BoundsResolver, design_fitter: DesignFitter):
        self.logger = get_logger(__name__)
        self.bounds_resolver = bounds_resolver
        self.design_fitter = design_fitter

    @abstractmethod
    def render(
        self,
        document: Document,
        layers: Sequence[Layer],
        placeholder_index: int,
        design: np.ndarray,
        bounds: Rect,
        image_fit: ImageFit,
    ) -> RenderResult:
        pass

    def place_design(
        self,
        design: np.ndarray,
        bounds: Rect,
        canvas_width: int,
        canvas_height: int,
        image_fit: ImageFit,
    ) -> Tuple[np.ndarray, int, int]:
        """Clamp the paint origin into the canvas and shrink the design to the visible area"""
        design_h, design_w = design.shape[:2]
        left = max(0, min(bounds.left, canvas_width - 1))
        top = max(0, min(bounds.top, canvas_height - 1))
        visible_w = min(design_w, canvas_width - left)
        visible_h = min(design_h, canvas_height - top)

        self.logger.debug(f"Composite position: {left}, {top}")
        self.logger.debug(f"Actual design size: {visible_w} x {visible_h}")

        if (visible_w, visible_h) != (design_w, design_h):
            self.logger.info(
                f"Design overflows canvas, refitting {design_w}x{design_h} "
                f"to visible area {visible_w}x{visible_h}"
            )
            design = self.design_fitter.fit(design, visible_w, visible_h, image_fit)
        return design, left, top


class LayerStackStrategy(RenderStrategy):
    """Paints layers before the placeholder, the design, then layers after it"""

    name = "layer_stack"

    def _collect(self, layers: Sequence[Layer]) -> List[Tuple[Layer, np.ndarray, int, int]]:
        """Visible layer rasters with their paint offsets, in list order"""
        paints = []
        for layer in layers:
            if layer.hidden:
                continue
            if layer.canvas is None:
                if not layer.is_group:
                    self.logger.warning(f"No raster for layer \"{layer.name}\", skipping it")
                continue
            try:
                raster = ensure_bgra(layer.canvas)
            except ValueError as e:
                self.logger.warning(f"Unusable raster for layer \"{layer.name}\", skipping it: {str(e)}")
                continue
            left, top = self.bounds_resolver.resolve_offset(layer)
            paints.append((layer, raster, left, top))
        return paints

    @staticmethod
    def _paint(canvas: np.ndarray, paints: Sequence[Tuple[Layer, np.ndarray, int, int]]) -> None:
        for layer, raster, left, top in paints:
            paste_over(canvas, raster, left, top, opacity=layer.opacity)

    def render(
        self,
        document: Document,
        layers: Sequence[Layer],
        placeholder_index: int,
        design: np.ndarray,
        bounds: Rect,
        image_fit: ImageFit,
    ) -> RenderResult:
        before = self._collect(layers[:placeholder_index])
        after = self._collect(layers[placeholder_index + 1:])
        self.logger.info(
            f"Layer-by-layer compositing: {len(before)} layers before, "
            f"{len(after)} layers after the placeholder"
        )

        # Working canvas covers the document and every before-layer extent to the
        # right and bottom; its origin stays at the document origin
        base_width, base_height = document.width, document.height
        for _, raster, left, top in before:
            base_width = max(base_width, left + raster.shape[1])
            base_height = max(base_height, top + raster.shape[0])
        if (base_width, base_height) != (document.width, document.height):
            self.logger.debug(f"Working canvas grown to {base_width}x{base_height}")

        canvas = new_canvas(base_width, base_height)
        self._paint(canvas, before)

        placed, left, top = self.place_design(design, bounds, document.width, document.height, image_fit)
        paste_over(canvas, placed, left, top)

        self._paint(canvas, after)
        return RenderResult(
            raster=canvas,
            position=(left, top),
            design_size=(placed.shape[1], placed.shape[0]),
            strategy=self.name,
        )


class FlatCompositeStrategy(RenderStrategy):
    """Paints the design over the document's pre-flattened composite.

    Layers that should sit above the design are part of the composite and end
    up underneath it.
    """

    name = "flat_composite"

    def render(
        self,
        document: Document,
        layers: Sequence[Layer],
        placeholder_index: int,
        design: np.ndarray,
        bounds: Rect,
        image_fit: ImageFit,
    ) -> RenderResult:
        if document.composite is None:
            raise NoRenderableSurfaceError(
                "PSD does not contain composite image. The PSD file may need to be saved "
                "with \"Maximize Compatibility\" enabled in Photoshop."
            )

        self.logger.warning(
            "Per-layer rasters unavailable, using flat composite fallback; "
            "layers above the placeholder will render beneath the design"
        )
        canvas = ensure_bgra(document.composite)
        canvas_height, canvas_width = canvas.shape[:2]

        placed, left, top = self.place_design(design, bounds, canvas_width, canvas_height, image_fit)
        paste_over(canvas, placed, left, top)
        return RenderResult(
            raster=canvas,
            position=(left, top),
            design_size=(placed.shape[1], placed.shape[0]),
            strategy=self.name,
        )


class LayerCompositor:
    """Renders the layer stack with the design in place of the placeholder"""

    def __init__(
        self,
        bounds_resolver: Optional[BoundsResolver] = None,
        design_fitter: Optional[DesignFitter] = None,
    ):
        self.logger = get_logger(__name__)
        bounds_resolver = bounds_resolver or BoundsResolver()
        design_fitter = design_fitter or DesignFitter()
        self.layer_stack = LayerStackStrategy(bounds_resolver, design_fitter)
        self.flat_composite = FlatCompositeStrategy(bounds_resolver, design_fitter)

    @staticmethod
    def can_use_layer_stack(layers: Sequence[Layer], placeholder_index: int) -> bool:
        """True when some visible layer other than the placeholder carries its own raster"""
        if not 0 <= placeholder_index < len(layers):
            return False
        return any(
            layer.canvas is not None and not layer.hidden
            for index, layer in enumerate(layers)
            if index != placeholder_index
        )

    def select_strategy(self, layers: Sequence[Layer], placeholder_index: int) -> RenderStrategy:
        if self.can_use_layer_stack(layers, placeholder_index):
            return self.layer_stack
        return self.flat_composite

    @debug_timing
    @debug_exception
    def composite(
        self,
        document: Document,
        layers: Sequence[Layer],
        placeholder_index: int,
        design: np.ndarray,
        bounds: Rect,
        image_fit: ImageFit = ImageFit.COVER,
    ) -> RenderResult:
        strategy = self.select_strategy(layers, placeholder_index)
        self.logger.info(f"Rendering with {strategy.name} strategy")
        return strategy.render(document, layers, placeholder_index, design, bounds, image_fit)
