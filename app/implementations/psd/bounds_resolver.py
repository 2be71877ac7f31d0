import math
from typing import Callable, List, Optional, Tuple

from app.exceptions import InvalidBoundsError
from app.models.document import Layer, Rect
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception

RawRect = Tuple[float, float, float, float]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, like image editors do"""
    return int(math.floor(value + 0.5))


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def normalize_rect(raw: RawRect) -> Rect:
    """Snap a float rectangle to integer pixels.

    Right and bottom are derived from the rounded width and height so the
    rectangle size never drifts by a pixel from rounding both edges.
    """
    left, top, right, bottom = raw
    rounded_left = round_half_up(left)
    rounded_top = round_half_up(top)
    return Rect(
        left=rounded_left,
        top=rounded_top,
        right=rounded_left + round_half_up(right - left),
        bottom=rounded_top + round_half_up(bottom - top),
    )


class BoundsResolver:
    """Derives one integer rectangle from the overlapping positional fields of a layer.

    Representations are tried in order: nested bounds object, direct
    right/bottom edges, origin plus width/height, then the size of the layer's
    own raster. The first one giving a non-degenerate rectangle wins.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._representations: List[Tuple[str, Callable[[Layer], Optional[RawRect]]]] = [
            ("bounds", self._from_bounds_object),
            ("edges", self._from_edges),
            ("origin_size", self._from_origin_and_size),
        ]

    @staticmethod
    def _from_bounds_object(layer: Layer) -> Optional[RawRect]:
        bounds = layer.bounds
        if bounds is None:
            return None
        left = _first(bounds.left, bounds.x, 0)
        top = _first(bounds.top, bounds.y, 0)
        right = _first(bounds.right, left + (bounds.width or 0))
        bottom = _first(bounds.bottom, top + (bounds.height or 0))
        return left, top, right, bottom

    @staticmethod
    def _from_edges(layer: Layer) -> Optional[RawRect]:
        if layer.right is None or layer.bottom is None:
            return None
        return _first(layer.left, 0), _first(layer.top, 0), layer.right, layer.bottom

    @staticmethod
    def _from_origin_and_size(layer: Layer) -> Optional[RawRect]:
        nested = layer.bounds
        width = _first(layer.width, nested.width if nested else None)
        height = _first(layer.height, nested.height if nested else None)
        if width is None and height is None:
            return None
        left = _first(layer.left, layer.x, 0)
        top = _first(layer.top, layer.y, 0)
        return left, top, left + (width or 0), top + (height or 0)

    @staticmethod
    def raster_size(layer: Layer) -> Tuple[int, int]:
        """Intrinsic (width, height) of the layer's own raster, (0, 0) if none"""
        for raster in (layer.canvas, layer.image_data):
            if raster is not None and getattr(raster, "ndim", 0) >= 2:
                return int(raster.shape[1]), int(raster.shape[0])
        return 0, 0

    @debug_exception
    def resolve(self, layer: Layer) -> Rect:
        """Resolve the canonical placement rectangle of a layer"""
        anchor: Optional[Rect] = None
        attempted = (0, 0)

        for label, representation in self._representations:
            raw = representation(layer)
            if raw is None:
                continue
            rect = normalize_rect(raw)
            if anchor is None:
                anchor = rect
            attempted = (rect.width, rect.height)
            if rect.width > 0 and rect.height > 0:
                self.logger.debug(f"Resolved bounds of \"{layer.name}\" from {label}: {rect.as_dict()}")
                return rect
            self.logger.debug(
                f"Bounds of \"{layer.name}\" from {label} are degenerate: "
                f"{rect.width}x{rect.height}"
            )

        # Fall back to the layer's own raster, anchored at the resolved origin
        fallback_width, fallback_height = self.raster_size(layer)
        left = anchor.left if anchor else 0
        top = anchor.top if anchor else 0
        if fallback_width > 0 and fallback_height > 0:
            self.logger.info(
                f"Using fallback dimensions from layer raster for \"{layer.name}\": "
                f"{fallback_width}x{fallback_height}"
            )
            return Rect(left=left, top=top, right=left + fallback_width, bottom=top + fallback_height)

        self.logger.error(
            f"Could not determine valid bounds for layer \"{layer.name}\": "
            f"{attempted[0]}x{attempted[1]}"
        )
        raise InvalidBoundsError(layer.name, attempted[0], attempted[1])

    def resolve_offset(self, layer: Layer) -> Tuple[int, int]:
        """Integer paint offset of a layer raster, without size validation"""
        bounds = layer.bounds
        left = _first(layer.left, bounds.left if bounds else None, bounds.x if bounds else None, layer.x, 0)
        top = _first(layer.top, bounds.top if bounds else None, bounds.y if bounds else None, layer.y, 0)
        return round_half_up(left), round_half_up(top)
