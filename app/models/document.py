from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np


@dataclass
class LayerBounds:
    """Nested bounds record as exposed by permissive document decoders.

    Any field may be missing; the bounds resolver decides how to combine them.
    """
    left: Optional[float] = None
    top: Optional[float] = None
    right: Optional[float] = None
    bottom: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(eq=False)
class LayerMask:
    """User mask attached to a layer, in document coordinates"""
    left: Optional[float] = None
    top: Optional[float] = None
    right: Optional[float] = None
    bottom: Optional[float] = None
    disabled: bool = False
    # Color (BGR/BGRA) or single-channel raster of the mask
    canvas: Optional[np.ndarray] = None
    # Raw RGBA pixel array, red channel carries the intensity
    image_data: Optional[np.ndarray] = None


@dataclass(eq=False)
class Layer:
    """A node of the document layer tree.

    Layers compare by identity so that the same object can be found again in
    the flattened list.
    """
    name: Optional[str] = None
    hidden: bool = False
    left: Optional[float] = None
    top: Optional[float] = None
    right: Optional[float] = None
    bottom: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    bounds: Optional[LayerBounds] = None
    # BGRA raster of this layer alone
    canvas: Optional[np.ndarray] = None
    image_data: Optional[np.ndarray] = None
    mask: Optional[LayerMask] = None
    opacity: int = 255
    is_smart_object: bool = False
    children: List["Layer"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return bool(self.children)


@dataclass(eq=False)
class Document:
    """Decoded layered document"""
    width: int
    height: int
    children: List[Layer] = field(default_factory=list)
    # Flattened preview of the whole document (BGRA), fallback only
    composite: Optional[np.ndarray] = None


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle, right and bottom exclusive"""
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def as_dict(self) -> Dict[str, int]:
        return {"left": self.left, "top": self.top, "right": self.right, "bottom": self.bottom}


@dataclass(eq=False)
class MaskBuffer:
    """Single-channel mask intensity (0 hidden, 255 visible)"""
    buffer: np.ndarray
    width: int
    height: int
