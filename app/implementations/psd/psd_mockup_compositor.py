from typing import Sequence

import numpy as np

from app.config import settings
from app.exceptions import PlaceholderNotFoundError
from app.interfaces.document_decoder import DocumentDecoder
from app.interfaces.mockup_compositor import MockupCompositor
from app.models.document import Document, Layer
from app.models.mockup import CompositeDiagnostics, CompositeRequest, CompositeResult, ImageFit
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_timing, debug_exception, debug_function_args

from app.implementations.psd.bounds_resolver import BoundsResolver
from app.implementations.psd.compositor import LayerCompositor
from app.implementations.psd.design_fitter import DesignFitter
from app.implementations.psd.exporter import Exporter
from app.implementations.psd.layer_tree import collect_layer_names, flatten_layers
from app.implementations.psd.mask_handler import MaskHandler
from app.implementations.psd.placeholder_locator import PlaceholderLocator
from app.implementations.psd.raster import decode_image


class PsdMockupCompositor(MockupCompositor):
    """Replaces a PSD smart-object placeholder with a design image and flattens the stack"""

    def __init__(self, document_decoder: DocumentDecoder):
        self.logger = get_logger(__name__)
        self.document_decoder = document_decoder
        self.placeholder_locator = PlaceholderLocator()
        self.bounds_resolver = BoundsResolver()
        self.design_fitter = DesignFitter()
        self.mask_handler = MaskHandler()
        self.layer_compositor = LayerCompositor(self.bounds_resolver, self.design_fitter)
        self.exporter = Exporter()

    @debug_timing
    @debug_exception
    @debug_function_args
    def generate_mockup(self, request: CompositeRequest) -> CompositeResult:
        """
        Run the full pipeline on raw bytes.

        Parameters:
        - request: design bytes, document bytes, candidate placeholder names,
          export format/quality/DPI and image fit mode.

        Returns:
        - CompositeResult with the encoded image and placement diagnostics.
        """
        # Step 1: Decode inputs
        self.logger.debug("Step 1: Decoding design image and mockup document")
        design = decode_image(request.design_bytes)
        document = self.document_decoder.decode(request.document_bytes)
        self.logger.info(
            f"PSD parsed successfully. Width: {document.width}, Height: {document.height}, "
            f"has composite: {document.composite is not None}, children: {len(document.children)}"
        )
        return self.compose_document(document, design, request)

    @debug_exception
    def compose_document(self, document: Document, design: np.ndarray, request: CompositeRequest) -> CompositeResult:
        """Run the pipeline on an already decoded document and design raster"""
        candidate_names = list(request.placeholder_names or settings.DEFAULT_PLACEHOLDER_NAMES)
        image_fit = ImageFit.parse(request.image_fit)

        # Step 2: Find the placeholder layer
        self.logger.debug(f"Step 2: Locating placeholder among {candidate_names}")
        placeholder = self.placeholder_locator.locate(document.children, candidate_names)
        if placeholder is None:
            available = collect_layer_names(document.children)[:settings.AVAILABLE_LAYER_NAMES_LIMIT]
            self.logger.warning(f"Smart Object layer not found. Available layers: {available}")
            raise PlaceholderNotFoundError(available, candidate_names)

        # Step 3: Resolve placement bounds
        self.logger.debug("Step 3: Resolving placeholder bounds")
        bounds = self.bounds_resolver.resolve(placeholder)
        self.logger.info(
            f"Calculated bounds (pixel-normalized): {bounds.as_dict()}, "
            f"Smart Object dimensions: {bounds.width} x {bounds.height}"
        )

        # Step 4: Fit the design into the frame and apply the layer mask
        self.logger.debug(f"Step 4: Fitting design with mode {image_fit.value}")
        fitted = self.design_fitter.fit(design, bounds.width, bounds.height, image_fit)
        fitted = self._apply_layer_mask(fitted, placeholder)

        # Step 5: Composite the layer stack around the design
        self.logger.debug("Step 5: Compositing layer stack")
        layers = flatten_layers(document.children)
        placeholder_index = self._index_of(layers, placeholder)
        self.logger.info(f"Smart Object layer found at index {placeholder_index} of {len(layers)} layers")
        render = self.layer_compositor.composite(
            document, layers, placeholder_index, fitted, bounds, image_fit
        )

        # Step 6: Export
        self.logger.debug("Step 6: Exporting final image")
        export = self.exporter.export(
            render.raster,
            target_dpi=request.export_dpi,
            export_format=request.export_format,
            quality=request.export_quality,
        )

        diagnostics = CompositeDiagnostics.build(
            bounds,
            render,
            (document.width, document.height),
            export,
            placeholder_name=placeholder.name,
        )
        self.logger.info(
            f"Mockup processing completed successfully: {export.width}x{export.height} "
            f"{export.mime_type} via {render.strategy}"
        )
        return CompositeResult(
            image_bytes=export.image_bytes,
            mime_type=export.mime_type,
            extension=export.extension,
            diagnostics=diagnostics,
        )

    def _apply_layer_mask(self, design: np.ndarray, placeholder: Layer) -> np.ndarray:
        """Best effort: a failing mask leaves the design unmasked"""
        mask_data = self.mask_handler.extract(placeholder.mask)
        if mask_data is None:
            return design
        try:
            masked = self.mask_handler.apply(design, mask_data)
            self.logger.info("Applied layer mask to design image")
            return masked
        except Exception as e:
            self.logger.warning(f"Could not apply layer mask, using unmasked design: {str(e)}")
            return design

    @staticmethod
    def _index_of(layers: Sequence[Layer], target: Layer) -> int:
        for index, layer in enumerate(layers):
            if layer is target:
                return index
        return -1
