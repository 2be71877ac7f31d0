from typing import List, Optional


class MockupError(Exception):
    """Base class for errors that abort a mockup composite"""


class DocumentDecodeError(MockupError):
    """The mockup document bytes could not be parsed"""


class DesignDecodeError(MockupError):
    """The design image bytes could not be decoded"""


class PlaceholderNotFoundError(MockupError):
    """No visible layer matched any of the candidate placeholder names"""

    def __init__(self, available_layers: List[str], candidate_names: Optional[List[str]] = None):
        self.available_layers = list(available_layers)
        self.candidate_names = list(candidate_names or [])
        super().__init__(
            f"Smart Object layer not found. Tried layer names: {', '.join(self.candidate_names)}. "
            f"Available layers: {', '.join(self.available_layers) or '(none)'}"
        )


class InvalidBoundsError(MockupError):
    """The placeholder layer bounds are degenerate even after all fallbacks"""

    def __init__(self, layer_name: Optional[str], width: int, height: int):
        self.layer_name = layer_name
        self.width = width
        self.height = height
        super().__init__(
            f'Layer "{layer_name}" has invalid bounds. Width: {width}, Height: {height}'
        )


class NoRenderableSurfaceError(MockupError):
    """Neither per-layer rasters nor a document composite raster are available"""
